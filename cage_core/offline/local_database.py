# =============================================================================
# cage_core/offline/local_database.py
# Device Key-Value Storage for Offline Operations
# =============================================================================
"""
LocalDatabase - SQLite-backed string storage scoped to one device.

Exposes the same contract as browser localStorage: get/set/remove a string by
key, with a byte quota across all keys. Collections of records are stored as
one JSON array per key by LocalRecordStore.

Features:
- Automatic schema creation
- Byte quota enforcement (LocalStorageError when full)
- Transaction support
- Thread-local connections
"""

from __future__ import annotations
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from contextlib import contextmanager
import logging

from cage_core.errors import LocalStorageError

logger = logging.getLogger(__name__)


class LocalDatabase:
    """
    Device storage for offline persistence.

    Usage:
        db = LocalDatabase(Path("local_data/cage_device.db"))
        db.initialize()
        db.set_item("cage_last_user_id", "abc123")
        db.get_item("cage_last_user_id")  # "abc123"
    """

    DEFAULT_DB_PATH = Path("local_data") / "cage_device.db"
    DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024

    SCHEMA = {
        "device_storage": """
            CREATE TABLE IF NOT EXISTS device_storage (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """,
    }

    def __init__(self, db_path: Optional[Path] = None, quota_bytes: Optional[int] = None):
        """
        Initialize device storage.

        Args:
            db_path: Path to SQLite database file
            quota_bytes: Maximum total size of all stored values
        """
        self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        self.quota_bytes = quota_bytes if quota_bytes is not None else self.DEFAULT_QUOTA_BYTES
        self._local = threading.local()
        self._initialized = False

    def _ensure_directory(self) -> None:
        """Ensure database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'connection') or self._local.connection is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._local.connection.row_factory = sqlite3.Row
        return self._local.connection

    @contextmanager
    def transaction(self):
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def initialize(self) -> None:
        """Initialize database schema."""
        if self._initialized:
            return

        try:
            self._ensure_directory()
            conn = self._get_connection()
            for table_name, schema in self.SCHEMA.items():
                conn.execute(schema)
                logger.debug(f"Created/verified table: {table_name}")
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise LocalStorageError(f"Device storage unavailable: {e}") from e

        self._initialized = True
        logger.info(f"Device storage initialized at: {self.db_path}")

    # =========================================================================
    # KEY-VALUE OPERATIONS
    # =========================================================================

    def get_item(self, key: str) -> Optional[str]:
        """
        Read the string stored under a key.

        Returns:
            Stored string, or None if the key is absent

        Raises:
            LocalStorageError: If the storage cannot be read
        """
        self.initialize()
        try:
            row = self._get_connection().execute(
                "SELECT value FROM device_storage WHERE key = ?",
                [key]
            ).fetchone()
        except sqlite3.Error as e:
            raise LocalStorageError(f"Failed to read device storage: {e}", key=key) from e
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        """
        Store a string under a key, replacing any previous value.

        Raises:
            LocalStorageError: If the quota would be exceeded or the write fails
        """
        self.initialize()
        try:
            with self.transaction() as conn:
                used = conn.execute(
                    "SELECT COALESCE(SUM(LENGTH(CAST(value AS BLOB))), 0) AS used "
                    "FROM device_storage WHERE key != ?",
                    [key]
                ).fetchone()["used"]
                needed = len(value.encode("utf-8"))
                if used + needed > self.quota_bytes:
                    raise LocalStorageError(
                        "Device storage quota exceeded",
                        key=key,
                        details={"used": used, "needed": needed, "quota": self.quota_bytes},
                    )
                conn.execute(
                    """
                    INSERT OR REPLACE INTO device_storage (key, value, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    [key, value, datetime.now().isoformat()]
                )
        except sqlite3.Error as e:
            raise LocalStorageError(f"Failed to write device storage: {e}", key=key) from e

    def remove_item(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""
        self.initialize()
        try:
            with self.transaction() as conn:
                conn.execute("DELETE FROM device_storage WHERE key = ?", [key])
        except sqlite3.Error as e:
            raise LocalStorageError(f"Failed to write device storage: {e}", key=key) from e

    def keys(self) -> List[str]:
        """All stored keys."""
        self.initialize()
        rows = self._get_connection().execute("SELECT key FROM device_storage ORDER BY key").fetchall()
        return [row["key"] for row in rows]

    def clear(self) -> None:
        """Remove every key (settings reset)."""
        self.initialize()
        with self.transaction() as conn:
            conn.execute("DELETE FROM device_storage")
        logger.info("Device storage cleared")

    def used_bytes(self) -> int:
        """Total size of all stored values."""
        self.initialize()
        row = self._get_connection().execute(
            "SELECT COALESCE(SUM(LENGTH(CAST(value AS BLOB))), 0) AS used FROM device_storage"
        ).fetchone()
        return int(row["used"])

    def close(self) -> None:
        """Close database connection."""
        if hasattr(self._local, 'connection') and self._local.connection:
            self._local.connection.close()
            self._local.connection = None
