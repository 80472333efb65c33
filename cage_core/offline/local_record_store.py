# =============================================================================
# cage_core/offline/local_record_store.py
# JSON collections on top of device storage
# =============================================================================
"""
LocalRecordStore - one JSON array per logical collection.

Every write is a read-modify-write of the whole array. Sessions are single
threaded, so no merge guard is applied; a background writer would need one.

Report collections hold entries shaped {id, timestamp, data} where data
carries the owning techId. The technician collection holds flat profiles.
"""

from __future__ import annotations
import json
from typing import Any, Callable, Dict, List, Optional
import logging

from cage_core.errors import LocalStorageError
from cage_core.offline.local_database import LocalDatabase
from cage_core.utils import now_millis

logger = logging.getLogger(__name__)


class LocalRecordStore:
    """A named collection persisted as a JSON array under one storage key."""

    def __init__(
        self,
        database: LocalDatabase,
        key: str,
        clock: Callable[[], int] = now_millis,
    ):
        self.database = database
        self.key = key
        self._clock = clock

    # =========================================================================
    # RAW COLLECTION ACCESS
    # =========================================================================

    def load(self) -> List[Dict[str, Any]]:
        """
        Read the whole collection.

        Raises:
            LocalStorageError: If the stored value is not a JSON array
        """
        raw = self.database.get_item(self.key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LocalStorageError(
                f"Corrupt JSON in device storage: {e}", key=self.key
            ) from e
        if not isinstance(items, list):
            raise LocalStorageError(
                f"Expected a JSON array, found {type(items).__name__}", key=self.key
            )
        return items

    def save_all(self, items: List[Dict[str, Any]]) -> None:
        try:
            payload = json.dumps(items)
        except (TypeError, ValueError) as e:
            raise LocalStorageError(f"Record is not JSON serializable: {e}", key=self.key) from e
        self.database.set_item(self.key, payload)

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        for item in self.load():
            if isinstance(item, dict) and item.get("id") == item_id:
                return item
        return None

    def upsert(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the item with the same id in place, or append it."""
        items = self.load()
        for index, existing in enumerate(items):
            if isinstance(existing, dict) and existing.get("id") == item["id"]:
                items[index] = item
                break
        else:
            items.append(item)
        self.save_all(items)
        return item

    def replace(self, item: Dict[str, Any]) -> bool:
        """Replace an existing item; returns False (and writes nothing) if absent."""
        items = self.load()
        for index, existing in enumerate(items):
            if isinstance(existing, dict) and existing.get("id") == item["id"]:
                items[index] = item
                self.save_all(items)
                return True
        return False

    def remove(self, item_id: str) -> bool:
        """Drop every item with this id. Returns True if anything was removed."""
        items = self.load()
        kept = [i for i in items if not (isinstance(i, dict) and i.get("id") == item_id)]
        if len(kept) == len(items):
            return False
        self.save_all(kept)
        return True

    # =========================================================================
    # REPORT ENTRIES
    # =========================================================================

    def upsert_record(
        self,
        record_id: str,
        data: Dict[str, Any],
        technician_id: str,
    ) -> Dict[str, Any]:
        """
        Store a form record under an id, stamped with the client clock.

        Returns:
            The persisted entry {id, timestamp, data}
        """
        entry = {
            "id": record_id,
            "timestamp": self._clock(),
            "data": {**data, "techId": technician_id},
        }
        self.upsert(entry)
        logger.debug(f"Stored {record_id} in {self.key}")
        return entry

    def records_for(self, technician_id: str) -> List[Dict[str, Any]]:
        """Entries owned by one technician. Malformed entries are skipped."""
        owned = []
        for item in self.load():
            if not isinstance(item, dict) or "id" not in item:
                continue
            data = item.get("data")
            if isinstance(data, dict) and data.get("techId") == technician_id:
                owned.append(item)
        return owned
