# =============================================================================
# cage_core/offline/identity_resolver.py
# Document identity and dual-write save routing
# =============================================================================
"""
DocumentIdentityResolver - decides where a save goes and which id the session
keeps using afterwards.

Save protocol:
    1. No bound id -> mint "<draft prefix><millis>" and lock the session to it.
    2. Id carries the local-draft marker -> cloud create; on success the binding
       is replaced by the cloud id and the draft id is never used again.
       Id without the marker -> cloud update of that id.
    3. Any cloud failure -> upsert into device storage under the current id.
    4. techId is attached to everything persisted.
    5. History is refreshed once the save has resolved.

A draft id that fell back to device storage keeps the marker, so the next save
of the same session is routed as a create again. The device copy stays where
it is; nothing reconciles it with the new cloud document.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING
import logging

from cage_core.data.cloud_document_store import DocumentStore
from cage_core.errors import CloudStoreError, LocalStorageError
from cage_core.forms.form_types import LOCAL_DRAFT_MARKER, FormRecord, FormType
from cage_core.offline.local_record_store import LocalRecordStore
from cage_core.utils import now_millis

if TYPE_CHECKING:
    from cage_core.offline.history_aggregator import HistoryAggregator

logger = logging.getLogger(__name__)


def is_local_draft_id(doc_id: Optional[str]) -> bool:
    """True for ids that name device-only records."""
    return bool(doc_id) and doc_id.startswith(LOCAL_DRAFT_MARKER)


@dataclass(frozen=True)
class DocumentBinding:
    """The document a form session is currently saving to."""
    doc_id: Optional[str] = None

    @property
    def is_bound(self) -> bool:
        return self.doc_id is not None

    @property
    def is_local_draft(self) -> bool:
        return is_local_draft_id(self.doc_id)


UNBOUND = DocumentBinding()


class SaveOutcome(Enum):
    """Where a save ended up."""
    SUCCESS = "success"     # Cloud create or update succeeded
    LOCAL = "local"         # Cloud unavailable, stored on the device
    FAILURE = "failure"     # Device storage failed too


@dataclass
class SaveResult:
    """Binding to keep using plus the outcome of one save."""
    binding: DocumentBinding
    outcome: SaveOutcome
    error: Optional[str] = None
    error_code: Optional[str] = None
    cloud_error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.outcome != SaveOutcome.FAILURE

    @property
    def doc_id(self) -> Optional[str]:
        return self.binding.doc_id


class DocumentIdentityResolver:
    """
    Routes saves of one form type between the cloud store and device storage.

    Usage:
        resolver = DocumentIdentityResolver(SERVICE_CALL, cloud_store, local_store, history)
        result = resolver.save(record, UNBOUND, technician.id)
        binding = result.binding   # use for every later save of this session
    """

    def __init__(
        self,
        form_type: FormType,
        cloud_store: DocumentStore,
        local_store: LocalRecordStore,
        history: Optional[HistoryAggregator] = None,
        clock: Callable[[], int] = now_millis,
    ):
        self.form_type = form_type
        self.cloud_store = cloud_store
        self.local_store = local_store
        self.history = history
        self._clock = clock
        self._last_minted = 0

    # =========================================================================
    # BINDINGS
    # =========================================================================

    def mint_draft_id(self) -> str:
        """Marker-prefixed id from the current time, strictly increasing per resolver."""
        millis = max(self._clock(), self._last_minted + 1)
        self._last_minted = millis
        return f"{self.form_type.draft_prefix}{millis}"

    def bind(self, doc_id: str) -> DocumentBinding:
        """Binding for a record opened from history (next save updates it)."""
        return DocumentBinding(doc_id)

    def release(self) -> DocumentBinding:
        """Binding for a new draft, logout or a deleted record."""
        return UNBOUND

    # =========================================================================
    # SAVE
    # =========================================================================

    def save(
        self,
        record: FormRecord,
        binding: DocumentBinding,
        technician_id: str,
    ) -> SaveResult:
        """
        Persist a record and return the binding for subsequent saves.

        Never raises: cloud failures fall back to device storage, and a device
        storage failure is reported as SaveOutcome.FAILURE.
        """
        doc_id = binding.doc_id or self.mint_draft_id()
        # Locked from here on, whatever happens below
        current = DocumentBinding(doc_id)
        payload: Dict[str, Any] = {**record, "techId": technician_id}
        collection = self.form_type.cloud_collection

        try:
            if is_local_draft_id(doc_id):
                document = self.cloud_store.create(collection, payload)
                logger.info(f"Promoted {doc_id} to cloud document {collection}/{document.id}")
                current = DocumentBinding(document.id)
            else:
                self.cloud_store.update(collection, doc_id, payload)
                logger.info(f"Updated cloud document {collection}/{doc_id}")
            result = SaveResult(binding=current, outcome=SaveOutcome.SUCCESS)

        except CloudStoreError as cloud_error:
            logger.warning(f"Cloud save failed, saving locally: {cloud_error}")
            result = self._save_locally(record, current, technician_id, cloud_error)

        self._refresh_history(technician_id)
        return result

    def _save_locally(
        self,
        record: FormRecord,
        binding: DocumentBinding,
        technician_id: str,
        cloud_error: CloudStoreError,
    ) -> SaveResult:
        try:
            self.local_store.upsert_record(binding.doc_id, record, technician_id)
        except LocalStorageError as e:
            logger.error(f"Local save failed for {binding.doc_id}: {e}")
            return SaveResult(
                binding=binding,
                outcome=SaveOutcome.FAILURE,
                error=e.message,
                error_code=e.code,
                cloud_error=cloud_error.message,
            )

        logger.info(f"Saved {binding.doc_id} to device storage ({self.local_store.key})")
        return SaveResult(
            binding=binding,
            outcome=SaveOutcome.LOCAL,
            cloud_error=cloud_error.message,
        )

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete(self, doc_id: str, binding: DocumentBinding) -> DocumentBinding:
        """
        Remove a record from both stores.

        The cloud delete is best effort (skipped for draft ids). The device
        delete always runs and its failure propagates as LocalStorageError.

        Returns:
            The binding to keep: released if the deleted record was the bound one
        """
        if not is_local_draft_id(doc_id):
            try:
                self.cloud_store.delete(self.form_type.cloud_collection, doc_id)
            except CloudStoreError as e:
                logger.warning(f"Cloud delete failed: {e}")

        self.local_store.remove(doc_id)

        if binding.doc_id == doc_id:
            return self.release()
        return binding

    def _refresh_history(self, technician_id: str) -> None:
        if self.history is not None:
            self.history.refresh(technician_id)
