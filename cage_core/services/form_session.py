# =============================================================================
# cage_core/services/form_session.py
# One open form (record + document binding) for the signed-in technician
# =============================================================================

from __future__ import annotations
import copy
from typing import Any, List, Optional
import logging

from cage_core.errors import FormValidationError
from cage_core.forms.form_types import FormRecord, FormType
from cage_core.forms.technician import Technician
from cage_core.offline.history_aggregator import HistoryAggregator, HistoryEntry
from cage_core.offline.identity_resolver import (
    DocumentBinding,
    DocumentIdentityResolver,
    SaveResult,
)

logger = logging.getLogger(__name__)


class FormSession:
    """
    Holds the editable record and the DocumentBinding for one form.

    The binding is only ever replaced with values handed out by the resolver.

    Usage:
        session = FormSession(SERVICE_CALL, resolver, history)
        session.sign_in(technician)
        session.update_fields(shopName="Acme", faultReported="Screen dark")
        result = session.save()
    """

    def __init__(
        self,
        form_type: FormType,
        resolver: DocumentIdentityResolver,
        history: HistoryAggregator,
        technician: Optional[Technician] = None,
    ):
        self.form_type = form_type
        self.resolver = resolver
        self.history_aggregator = history
        self.technician = technician
        self.record: FormRecord = form_type.new_record(technician)
        self._binding: DocumentBinding = resolver.release()

    @property
    def binding(self) -> DocumentBinding:
        return self._binding

    @property
    def doc_id(self) -> Optional[str]:
        return self._binding.doc_id

    @property
    def is_signed_in(self) -> bool:
        return self.technician is not None

    def _require_technician(self) -> Technician:
        if self.technician is None:
            raise FormValidationError(
                "You must be logged in.",
                field="techId",
                form_type=self.form_type.key,
            )
        return self.technician

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    def sign_in(self, technician: Technician) -> None:
        """Start a fresh, unbound draft for a technician."""
        self.technician = technician
        self.history_aggregator.forget(technician.id)
        self.new_draft()
        logger.info(f"{technician.name} opened a {self.form_type.label} session")

    def logout(self) -> None:
        if self.technician is not None:
            self.history_aggregator.forget(self.technician.id)
        self.technician = None
        self.record = self.form_type.new_record()
        self._binding = self.resolver.release()

    def new_draft(self) -> None:
        self.record = self.form_type.new_record(self.technician)
        self._binding = self.resolver.release()

    def apply_profile(self, technician: Technician) -> None:
        """Carry an edited profile into the open record without touching the binding."""
        self.technician = technician
        self.record["techName"] = technician.name
        if self.form_type.prefill_vehicle:
            self.record["vehicleNumber"] = technician.vehicle_number

    # =========================================================================
    # EDITING
    # =========================================================================

    def update_field(self, name: str, value: Any) -> None:
        self.record[name] = value

    def update_fields(self, **values: Any) -> None:
        self.record.update(values)

    def toggle_check(self, index: int) -> None:
        """Flip one checklist item (PM checklist only)."""
        if self.form_type.checklist is None:
            raise FormValidationError(
                f"{self.form_type.label} has no checklist",
                field="checks",
                form_type=self.form_type.key,
            )
        checks = list(self.record.get("checks") or [False] * len(self.form_type.checklist))
        checks[index] = not checks[index]
        self.record["checks"] = checks

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save(self) -> SaveResult:
        """Save through the resolver and keep the binding it returns."""
        technician = self._require_technician()
        result = self.resolver.save(dict(self.record), self._binding, technician.id)
        self._binding = result.binding
        return result

    def history(self) -> List[HistoryEntry]:
        """History as of the last save, delete or refresh."""
        if self.technician is None:
            return []
        return self.history_aggregator.current(self.technician.id)

    def refresh_history(self) -> List[HistoryEntry]:
        if self.technician is None:
            return []
        return self.history_aggregator.refresh(self.technician.id)

    def load(self, entry: HistoryEntry) -> None:
        """Open a history entry; the next save updates that document."""
        data = copy.deepcopy(entry.data)
        data.pop("techId", None)
        self.record = {**self.form_type.initial_record(), **data}
        self._binding = self.resolver.bind(entry.id)

    def delete(self, doc_id: str) -> None:
        """Delete a history entry from both stores; releases the binding if it was bound."""
        technician = self._require_technician()
        self._binding = self.resolver.delete(doc_id, self._binding)
        self.history_aggregator.refresh(technician.id)
