# =============================================================================
# cage_core/offline/__init__.py
# Offline-First Storage and Sync for Cage Service Sheets
# =============================================================================
"""
Offline-First Architecture Module

Form sessions save through the DocumentIdentityResolver and read history
through the HistoryAggregator. Both sit on two store adapters:

    ┌─────────────────────────────────────────────────────────────┐
    │   FormSession / SubmissionPipeline                          │
    └─────────────────────────────────────────────────────────────┘
                 │ save / delete               │ list
                 ▼                             ▼
    ┌──────────────────────────┐   ┌──────────────────────────┐
    │ DocumentIdentityResolver │──►│    HistoryAggregator     │
    └──────────────────────────┘   └──────────────────────────┘
          │              │               │              │
          ▼              ▼               ▼              ▼
    ┌──────────────┐  ┌──────────────────────────────────────┐
    │ Supabase     │  │ LocalRecordStore (JSON arrays)        │
    │ (cloud docs) │  │   on LocalDatabase (SQLite key-value) │
    └──────────────┘  └──────────────────────────────────────┘

The ConnectionManager decides whether the cloud is attempted at all.

Usage:
------
from cage_core.offline import DocumentIdentityResolver, UNBOUND

result = resolver.save(record, UNBOUND, technician.id)
print(result.outcome)   # SaveOutcome.SUCCESS / LOCAL / FAILURE
print(result.doc_id)    # id to keep saving to
"""

from cage_core.offline.connection_manager import (
    ConnectionManager,
    ConnectionState,
    ConnectionStatus,
)

from cage_core.offline.local_database import LocalDatabase

from cage_core.offline.local_record_store import LocalRecordStore

from cage_core.offline.identity_resolver import (
    DocumentBinding,
    DocumentIdentityResolver,
    SaveOutcome,
    SaveResult,
    UNBOUND,
    is_local_draft_id,
)

from cage_core.offline.history_aggregator import (
    HistoryAggregator,
    HistoryEntry,
    merge_history,
)

__all__ = [
    # Connection Management
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    # Device Storage
    "LocalDatabase",
    "LocalRecordStore",
    # Identity / Save routing
    "DocumentBinding",
    "DocumentIdentityResolver",
    "SaveOutcome",
    "SaveResult",
    "UNBOUND",
    "is_local_draft_id",
    # History
    "HistoryAggregator",
    "HistoryEntry",
    "merge_history",
]
