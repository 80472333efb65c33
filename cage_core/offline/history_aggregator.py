# =============================================================================
# cage_core/offline/history_aggregator.py
# Merged local + cloud report history
# =============================================================================
"""
HistoryAggregator - one newest-first, id-unique view of a technician's reports
across device storage and the cloud store.

Neither source can break the view: a failed cloud query contributes nothing,
unreadable device storage contributes nothing, and both are logged as warnings.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import pandas as pd

from cage_core.data.cloud_document_store import DocumentStore
from cage_core.errors import CloudStoreError, LocalStorageError
from cage_core.forms.form_types import FormRecord, FormType
from cage_core.offline.local_record_store import LocalRecordStore

logger = logging.getLogger(__name__)

SOURCE_LOCAL = "local"
SOURCE_CLOUD = "cloud"


@dataclass
class HistoryEntry:
    """One persisted form record, whichever store it came from."""
    id: str
    timestamp: int
    data: FormRecord = field(default_factory=dict)
    source: str = SOURCE_LOCAL

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "timestamp": self.timestamp, "data": self.data}


def merge_history(entries: List[HistoryEntry]) -> List[HistoryEntry]:
    """
    Sort newest first, then keep one entry per id.

    An id keeps the position of its first (newest) occurrence and the content
    of its last one.
    """
    ordered = sorted(entries, key=lambda e: e.timestamp, reverse=True)
    unique: Dict[str, HistoryEntry] = {}
    for entry in ordered:
        unique[entry.id] = entry
    return list(unique.values())


class HistoryAggregator:
    """
    Reads both stores for one form type.

    Usage:
        history = HistoryAggregator(SERVICE_CALL, cloud_store, local_store)
        entries = history.list(technician.id)
    """

    def __init__(
        self,
        form_type: FormType,
        cloud_store: DocumentStore,
        local_store: LocalRecordStore,
    ):
        self.form_type = form_type
        self.cloud_store = cloud_store
        self.local_store = local_store
        self._latest: Dict[str, List[HistoryEntry]] = {}

    def list(self, technician_id: str) -> List[HistoryEntry]:
        """Merged history for a technician, newest first."""
        combined = self._local_entries(technician_id) + self._cloud_entries(technician_id)
        return merge_history(combined)

    def _local_entries(self, technician_id: str) -> List[HistoryEntry]:
        try:
            items = self.local_store.records_for(technician_id)
        except LocalStorageError as e:
            logger.warning(f"Error loading local history, treating as empty: {e}")
            return []

        entries = []
        for item in items:
            try:
                timestamp = int(item.get("timestamp") or 0)
            except (TypeError, ValueError):
                timestamp = 0
            entries.append(HistoryEntry(
                id=str(item["id"]),
                timestamp=timestamp,
                data=item["data"],
                source=SOURCE_LOCAL,
            ))
        return entries

    def _cloud_entries(self, technician_id: str) -> List[HistoryEntry]:
        try:
            documents = self.cloud_store.query(
                self.form_type.cloud_collection, "techId", technician_id
            )
        except CloudStoreError as e:
            logger.warning(f"Failed to load cloud history, showing local only: {e}")
            return []

        return [
            HistoryEntry(id=doc.id, timestamp=doc.timestamp, data=doc.data, source=SOURCE_CLOUD)
            for doc in documents
        ]

    # =========================================================================
    # REFRESH + CACHE
    # =========================================================================

    def refresh(self, technician_id: str) -> List[HistoryEntry]:
        """Re-read both stores and cache the result for display."""
        entries = self.list(technician_id)
        self._latest[technician_id] = entries
        return entries

    def latest(self, technician_id: str) -> Optional[List[HistoryEntry]]:
        """Result of the last refresh, or None if never refreshed."""
        return self._latest.get(technician_id)

    def current(self, technician_id: str) -> List[HistoryEntry]:
        """Last refreshed history, refreshing only if there is none yet."""
        entries = self._latest.get(technician_id)
        if entries is None:
            entries = self.refresh(technician_id)
        return entries

    def forget(self, technician_id: str) -> None:
        self._latest.pop(technician_id, None)

    def clear(self) -> None:
        """Drop every cached history (connectivity changed)."""
        self._latest.clear()

    # =========================================================================
    # DISPLAY
    # =========================================================================

    def to_dataframe(self, entries: List[HistoryEntry]) -> pd.DataFrame:
        """
        Tabular view for the history list.

        Columns: id, saved_at (UTC), title, date, source
        """
        columns = ["id", "saved_at", "title", "date", "source"]
        if not entries:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame({
            "id": [e.id for e in entries],
            "saved_at": pd.to_datetime([e.timestamp for e in entries], unit="ms", utc=True),
            "title": [self.form_type.title(e.data) or "Untitled" for e in entries],
            "date": [e.data.get("date", "") for e in entries],
            "source": [e.source for e in entries],
        })
        return df[columns]
