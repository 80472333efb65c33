# =============================================================================
# cage_core/data/cloud_document_store.py
# Cloud document store (Supabase/PostgREST) for reports and profiles
# =============================================================================
"""
Each collection is a Supabase table with the layout

    id         uuid primary key default gen_random_uuid()
    timestamp  timestamptz not null default now()
    data       jsonb not null

The server assigns `id` on create and `timestamp` on every write. Equality
filters run against fields inside `data` (e.g. data->>techId).

Every failure coming out of the client is re-raised as CloudStoreError so that
callers have one exception type to fall back on.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional
import logging

import pandas as pd

from cage_core.errors import CloudStoreError, DocumentNotFoundError
from cage_core.utils import now_millis

logger = logging.getLogger(__name__)

# Postgres resolves this literal to the transaction time on the server
SERVER_TIMESTAMP = "now"


def timestamp_to_millis(value: Any) -> int:
    """Server timestamp (ISO string) to epoch millis; missing values read as now."""
    if value in (None, ""):
        return now_millis()
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError):
        logger.debug(f"Unparseable server timestamp {value!r}, using client clock")
        return now_millis()
    if pd.isna(ts):
        return now_millis()
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int(ts.timestamp() * 1000)


@dataclass
class CloudDocument:
    """One document as returned by the cloud store."""
    id: str
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> CloudDocument:
        data = row.get("data") or {}
        return cls(
            id=str(row["id"]),
            timestamp=timestamp_to_millis(row.get("timestamp")),
            data=dict(data),
        )


class DocumentStore(ABC):
    """Cloud document store contract used by the resolver, history and profiles."""

    @abstractmethod
    def create(self, collection: str, data: Dict[str, Any]) -> CloudDocument:
        """Create a document; the store assigns id and timestamp."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[CloudDocument]:
        """One document by id, or None if it does not exist."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> CloudDocument:
        """Replace the body of an existing document and refresh its timestamp."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document by id."""

    @abstractmethod
    def query(self, collection: str, field_name: str, value: Any) -> List[CloudDocument]:
        """All documents whose body field equals value."""

    @abstractmethod
    def list_all(self, collection: str) -> List[CloudDocument]:
        """All documents in a collection."""


class SupabaseDocumentStore(DocumentStore):
    """
    DocumentStore backed by Supabase tables.

    Usage:
        store = SupabaseDocumentStore(client, connection)
        doc = store.create("service_reports", {"shopName": "Acme", "techId": "t1"})
        store.update("service_reports", doc.id, {...})
        store.query("service_reports", "techId", "t1")
    """

    PAGE_SIZE = 1000  # PostgREST default max rows per request

    def __init__(self, client: Any, connection: Any = None):
        """
        Args:
            client: Supabase client (None means local-only mode)
            connection: Optional ConnectionManager; when it reports the cloud
                disabled, calls fail fast without touching the network
        """
        self.client = client
        self.connection = connection

    def is_connected(self) -> bool:
        if self.client is None:
            return False
        if self.connection is not None and not self.connection.cloud_enabled:
            return False
        return True

    @contextmanager
    def _cloud_call(self, operation: str, collection: str) -> Iterator[None]:
        if not self.is_connected():
            raise CloudStoreError(
                "Cloud unavailable (local-only mode)",
                operation=operation,
                collection=collection,
            )
        try:
            yield
        except CloudStoreError:
            raise
        except Exception as e:
            raise CloudStoreError(
                f"Cloud {operation} failed: {e}",
                operation=operation,
                collection=collection,
            ) from e

    def create(self, collection: str, data: Dict[str, Any]) -> CloudDocument:
        with self._cloud_call("create", collection):
            response = self.client.table(collection).insert({"data": data}).execute()
            if not response.data:
                raise CloudStoreError(
                    "Cloud create returned no document",
                    operation="create",
                    collection=collection,
                )
            document = CloudDocument.from_row(response.data[0])

        logger.debug(f"Created {collection}/{document.id}")
        return document

    def get(self, collection: str, doc_id: str) -> Optional[CloudDocument]:
        with self._cloud_call("get", collection):
            response = (
                self.client.table(collection)
                .select("*")
                .eq("id", doc_id)
                .limit(1)
                .execute()
            )
            if not response.data:
                return None
            return CloudDocument.from_row(response.data[0])

    def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> CloudDocument:
        with self._cloud_call("update", collection):
            response = (
                self.client.table(collection)
                .update({"data": data, "timestamp": SERVER_TIMESTAMP})
                .eq("id", doc_id)
                .execute()
            )
            if not response.data:
                raise DocumentNotFoundError(
                    f"No {collection} document with id {doc_id}",
                    doc_id=doc_id,
                    operation="update",
                    collection=collection,
                )
            document = CloudDocument.from_row(response.data[0])

        logger.debug(f"Updated {collection}/{doc_id}")
        return document

    def delete(self, collection: str, doc_id: str) -> None:
        with self._cloud_call("delete", collection):
            response = self.client.table(collection).delete().eq("id", doc_id).execute()
            if not response.data:
                raise DocumentNotFoundError(
                    f"No {collection} document with id {doc_id}",
                    doc_id=doc_id,
                    operation="delete",
                    collection=collection,
                )
        logger.debug(f"Deleted {collection}/{doc_id}")

    def query(self, collection: str, field_name: str, value: Any) -> List[CloudDocument]:
        with self._cloud_call("query", collection):
            rows = self._fetch_pages(collection, f"data->>{field_name}", value)
            return [CloudDocument.from_row(row) for row in rows]

    def list_all(self, collection: str) -> List[CloudDocument]:
        with self._cloud_call("query", collection):
            rows = self._fetch_pages(collection)
            return [CloudDocument.from_row(row) for row in rows]

    def _fetch_pages(
        self,
        collection: str,
        column: Optional[str] = None,
        value: Any = None,
    ) -> List[Dict[str, Any]]:
        """Fetch every matching row, one PAGE_SIZE range at a time."""
        all_rows: List[Dict[str, Any]] = []
        offset = 0

        while True:
            query = self.client.table(collection).select("*")
            if column is not None:
                query = query.eq(column, value)
            response = query.range(offset, offset + self.PAGE_SIZE - 1).execute()

            if not response.data:
                break
            all_rows.extend(response.data)
            if len(response.data) < self.PAGE_SIZE:
                break
            offset += self.PAGE_SIZE

        return all_rows
