# =============================================================================
# cage_core/data/__init__.py
# Cloud adapters (Supabase tables and storage)
# =============================================================================

from cage_core.data.supabase_client import (
    create_supabase_client,
    sign_in_anonymously,
)
from cage_core.data.cloud_document_store import (
    CloudDocument,
    DocumentStore,
    SupabaseDocumentStore,
    SERVER_TIMESTAMP,
)
from cage_core.data.blob_store import BlobStore, SupabaseBlobStore

__all__ = [
    "create_supabase_client",
    "sign_in_anonymously",
    "CloudDocument",
    "DocumentStore",
    "SupabaseDocumentStore",
    "SERVER_TIMESTAMP",
    "BlobStore",
    "SupabaseBlobStore",
]
