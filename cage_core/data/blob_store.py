# =============================================================================
# cage_core/data/blob_store.py
# Cloud blob storage for rendered report PDFs
# =============================================================================

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any
import logging

from cage_core.errors import CloudStoreError

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Write-bytes-to-path contract used by the submission pipeline."""

    @abstractmethod
    def write(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        """Store bytes at a path, replacing any existing object."""


class SupabaseBlobStore(BlobStore):
    """
    BlobStore backed by a Supabase Storage bucket.

    Usage:
        blobs = SupabaseBlobStore(client, "service-sheets", connection)
        blobs.write("service_sheets/<techId>/ServiceCall_Acme_1700000000000.pdf", pdf_bytes)
    """

    def __init__(self, client: Any, bucket_name: str, connection: Any = None):
        self.client = client
        self.bucket_name = bucket_name
        self.connection = connection

    def is_connected(self) -> bool:
        if self.client is None:
            return False
        if self.connection is not None and not self.connection.cloud_enabled:
            return False
        return True

    def write(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        if not self.is_connected():
            raise CloudStoreError(
                "Cloud unavailable (local-only mode)",
                operation="upload",
                collection=self.bucket_name,
            )

        try:
            self.client.storage.from_(self.bucket_name).upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise CloudStoreError(
                f"Upload failed: {e}",
                operation="upload",
                collection=self.bucket_name,
                details={"path": path},
            ) from e

        logger.info(f"Uploaded {path} ({len(data) / 1024:.1f} KB)")
