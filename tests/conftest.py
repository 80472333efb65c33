# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import base64
import itertools
import uuid
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import MagicMock

from cage_core.data.blob_store import BlobStore
from cage_core.data.cloud_document_store import CloudDocument, DocumentStore
from cage_core.errors import CloudStoreError, DocumentNotFoundError

# 1x1 transparent PNG
PNG_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
SIGNATURE_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_PIXEL).decode("ascii")

START_MILLIS = 1_700_000_000_000


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeDocumentStore(DocumentStore):
    """In-memory cloud store with per-operation failure switches."""

    def __init__(self, start_millis: int = START_MILLIS + 500_000):
        self.collections: Dict[str, Dict[str, CloudDocument]] = {}
        self.failing_ops: set = set()
        self.calls: List[tuple] = []
        self._ticks = itertools.count(start_millis, 1000)

    def fail(self, *operations: str) -> None:
        """Make the named operations raise CloudStoreError ("all" for every one)."""
        self.failing_ops.update(operations or ("all",))

    def recover(self) -> None:
        self.failing_ops.clear()

    def _check(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        if operation in self.failing_ops or "all" in self.failing_ops:
            raise CloudStoreError("Simulated outage", operation=operation, collection=collection)

    def _docs(self, collection: str) -> Dict[str, CloudDocument]:
        return self.collections.setdefault(collection, {})

    def create(self, collection, data):
        self._check("create", collection)
        doc = CloudDocument(id=str(uuid.uuid4()), timestamp=next(self._ticks), data=dict(data))
        self._docs(collection)[doc.id] = doc
        return doc

    def get(self, collection, doc_id):
        self._check("get", collection)
        return self._docs(collection).get(doc_id)

    def update(self, collection, doc_id, data):
        self._check("update", collection)
        docs = self._docs(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError("No such document", doc_id=doc_id, collection=collection)
        docs[doc_id] = CloudDocument(id=doc_id, timestamp=next(self._ticks), data=dict(data))
        return docs[doc_id]

    def delete(self, collection, doc_id):
        self._check("delete", collection)
        if self._docs(collection).pop(doc_id, None) is None:
            raise DocumentNotFoundError("No such document", doc_id=doc_id, collection=collection)

    def query(self, collection, field_name, value):
        self._check("query", collection)
        return [d for d in self._docs(collection).values() if d.data.get(field_name) == value]

    def list_all(self, collection):
        self._check("query", collection)
        return list(self._docs(collection).values())

    def count(self, collection: str) -> int:
        return len(self._docs(collection))


class FakeBlobStore(BlobStore):
    """Collects uploads in a dict; can be switched to fail."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.failing = False

    def write(self, path, data, content_type="application/pdf"):
        if self.failing:
            raise CloudStoreError("Bucket unavailable", operation="upload")
        self.objects[path] = data


class FakeRenderer:
    def __init__(self, output: bytes = b"%PDF-1.4 fake"):
        self.output = output
        self.error: Optional[Exception] = None
        self.rendered: List[Dict[str, Any]] = []

    def render(self, record, form_type):
        if self.error is not None:
            raise self.error
        self.rendered.append(dict(record))
        return self.output


class FakeConnection:
    def __init__(self, online: bool = True):
        self.is_online = online
        self.cloud_enabled = online


class Clock:
    """Deterministic millisecond clock; every call advances by one second."""

    def __init__(self, start: int = START_MILLIS):
        self.now = start

    def __call__(self) -> int:
        value = self.now
        self.now += 1000
        return value


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def technician():
    from cage_core.forms.technician import Technician
    return Technician(id="tech-1", name="Dana Joseph", vehicle_number="VAN-12", pin="1234")


@pytest.fixture
def other_technician():
    from cage_core.forms.technician import Technician
    return Technician(id="tech-2", name="Alex Browne", vehicle_number="VAN-7", pin="9999")


@pytest.fixture
def service_record():
    """A filled-in Service Call sheet"""
    from cage_core.forms.form_types import initial_service_record
    record = initial_service_record()
    record.update({
        "callType": "New Service Call",
        "shopName": "Acme",
        "date": "2024-03-01",
        "techName": "Dana Joseph",
        "faultReported": "Screen dark",
        "repairsMade": "Replaced PSU",
    })
    return record


@pytest.fixture
def pm_record():
    """A filled-in PM checklist"""
    from cage_core.forms.form_types import initial_pm_record
    record = initial_pm_record()
    record.update({
        "agentName": "Shop 14",
        "date": "2024-03-02",
        "techName": "Dana Joseph",
    })
    record["checks"][0] = True
    record["checks"][5] = True
    return record


@pytest.fixture
def signature():
    return SIGNATURE_DATA_URL


# =============================================================================
# STORE FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def cloud_store():
    return FakeDocumentStore()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def connection():
    """Online connection stand-in; flip is_online to simulate an outage"""
    return FakeConnection(online=True)


@pytest.fixture
def local_db(tmp_path):
    """Device storage in a temporary directory"""
    from cage_core.offline.local_database import LocalDatabase
    db = LocalDatabase(tmp_path / "device.db")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def service_stack(cloud_store, local_db, clock):
    """Resolver + history for Service Call sheets over the fake cloud store"""
    from cage_core.forms.form_types import SERVICE_CALL
    from cage_core.offline.history_aggregator import HistoryAggregator
    from cage_core.offline.identity_resolver import DocumentIdentityResolver
    from cage_core.offline.local_record_store import LocalRecordStore

    local_store = LocalRecordStore(local_db, SERVICE_CALL.local_key, clock=clock)
    history = HistoryAggregator(SERVICE_CALL, cloud_store, local_store)
    resolver = DocumentIdentityResolver(SERVICE_CALL, cloud_store, local_store, history, clock=clock)
    return resolver, history, local_store


@pytest.fixture
def pm_stack(cloud_store, local_db, clock):
    """Resolver + history for PM checklists over the fake cloud store"""
    from cage_core.forms.form_types import PM_CHECKLIST
    from cage_core.offline.history_aggregator import HistoryAggregator
    from cage_core.offline.identity_resolver import DocumentIdentityResolver
    from cage_core.offline.local_record_store import LocalRecordStore

    local_store = LocalRecordStore(local_db, PM_CHECKLIST.local_key, clock=clock)
    history = HistoryAggregator(PM_CHECKLIST, cloud_store, local_store)
    resolver = DocumentIdentityResolver(PM_CHECKLIST, cloud_store, local_store, history, clock=clock)
    return resolver, history, local_store


@pytest.fixture
def service_session(service_stack, technician):
    """Signed-in Service Call session"""
    from cage_core.forms.form_types import SERVICE_CALL
    from cage_core.services.form_session import FormSession

    resolver, history, _ = service_stack
    session = FormSession(SERVICE_CALL, resolver, history)
    session.sign_in(technician)
    return session


# =============================================================================
# MOCK FIXTURES
# =============================================================================

@pytest.fixture
def mock_streamlit(monkeypatch):
    """Mock Streamlit for testing"""
    import sys

    mock_st = MagicMock()
    mock_st.session_state = {}
    mock_st.cache_data = lambda f: f
    mock_st.cache_resource = lambda f: f

    monkeypatch.setitem(sys.modules, "streamlit", mock_st)
    yield mock_st


@pytest.fixture
def mock_supabase():
    """Mock Supabase client"""
    mock_client = MagicMock()
    mock_client.table.return_value.select.return_value.execute.return_value.data = []
    mock_client.table.return_value.insert.return_value.execute.return_value = MagicMock()
    return mock_client
