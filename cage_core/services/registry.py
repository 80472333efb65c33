# =============================================================================
# cage_core/services/registry.py
# Process-wide wiring of stores, resolvers and services
# =============================================================================
"""
Everything is constructed once here and handed to its users by reference.
Core classes never look collaborators up themselves.

Usage:
    services = get_services()
    session = services.open_session("service", technician)
    result = session.save()
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging

from cage_core.config import AppConfig, load_config
from cage_core.data.blob_store import BlobStore, SupabaseBlobStore
from cage_core.data.cloud_document_store import DocumentStore, SupabaseDocumentStore
from cage_core.data.supabase_client import create_supabase_client
from cage_core.forms.form_types import get_form_type, list_form_types
from cage_core.forms.technician import Technician
from cage_core.offline.connection_manager import ConnectionManager
from cage_core.offline.history_aggregator import HistoryAggregator
from cage_core.offline.identity_resolver import DocumentIdentityResolver
from cage_core.offline.local_database import LocalDatabase
from cage_core.offline.local_record_store import LocalRecordStore
from cage_core.reports.delivery import ArtifactDelivery, DirectoryDelivery
from cage_core.reports.pdf_renderer import PdfReportRenderer, ReportRenderer
from cage_core.services.form_session import FormSession
from cage_core.services.submission_service import SubmissionPipeline
from cage_core.services.technician_service import LOCAL_TECHNICIANS_KEY, TechnicianDirectory

logger = logging.getLogger(__name__)


@dataclass
class CageServices:
    """The wired object graph for one process."""
    config: AppConfig
    connection: ConnectionManager
    database: LocalDatabase
    cloud_store: DocumentStore
    blob_store: BlobStore
    directory: TechnicianDirectory
    pipeline: SubmissionPipeline
    resolvers: Dict[str, DocumentIdentityResolver] = field(default_factory=dict)
    histories: Dict[str, HistoryAggregator] = field(default_factory=dict)

    def resolver(self, form_key: str) -> DocumentIdentityResolver:
        return self.resolvers[get_form_type(form_key).key]

    def history(self, form_key: str) -> HistoryAggregator:
        return self.histories[get_form_type(form_key).key]

    def open_session(self, form_key: str, technician: Optional[Technician] = None) -> FormSession:
        """New form session with an unbound draft."""
        form_type = get_form_type(form_key)
        session = FormSession(
            form_type,
            self.resolvers[form_type.key],
            self.histories[form_type.key],
        )
        if technician is not None:
            session.sign_in(technician)
        return session


def build_services(
    config: Optional[AppConfig] = None,
    client: Any = None,
    cloud_store: Optional[DocumentStore] = None,
    blob_store: Optional[BlobStore] = None,
    renderer: Optional[ReportRenderer] = None,
    delivery: Optional[ArtifactDelivery] = None,
    connection: Optional[ConnectionManager] = None,
) -> CageServices:
    """
    Wire the application.

    Args:
        config: Configuration (loaded from secrets/environment if None)
        client: Supabase client (created from config if None)
        cloud_store, blob_store, renderer, delivery, connection: Replacements
            for the default adapters, mainly for tests
    """
    config = config or load_config()
    if client is None and (cloud_store is None or blob_store is None):
        client = create_supabase_client(config)

    if connection is None:
        connection = ConnectionManager(client, config.supabase_url)
    connection.initialize()

    database = LocalDatabase(config.local_db_path, config.local_quota_bytes)
    cloud_store = cloud_store or SupabaseDocumentStore(client, connection)
    blob_store = blob_store or SupabaseBlobStore(client, config.reports_bucket, connection)

    resolvers: Dict[str, DocumentIdentityResolver] = {}
    histories: Dict[str, HistoryAggregator] = {}
    for form_type in list_form_types():
        local_store = LocalRecordStore(database, form_type.local_key)
        history = HistoryAggregator(form_type, cloud_store, local_store)
        histories[form_type.key] = history
        resolvers[form_type.key] = DocumentIdentityResolver(
            form_type, cloud_store, local_store, history
        )

    def drop_cached_histories(state) -> None:
        for history in histories.values():
            history.clear()

    connection.register_callback(drop_cached_histories)

    directory = TechnicianDirectory(
        cloud_store,
        LocalRecordStore(database, LOCAL_TECHNICIANS_KEY),
        database,
    )
    pipeline = SubmissionPipeline(
        renderer or PdfReportRenderer(),
        blob_store,
        delivery or DirectoryDelivery(config.downloads_dir),
        connection,
    )

    logger.info(f"Services ready (connection: {connection.status.value})")
    return CageServices(
        config=config,
        connection=connection,
        database=database,
        cloud_store=cloud_store,
        blob_store=blob_store,
        directory=directory,
        pipeline=pipeline,
        resolvers=resolvers,
        histories=histories,
    )


_services: Optional[CageServices] = None


def get_services() -> CageServices:
    """The process-wide CageServices, built on first use."""
    global _services
    if _services is None:
        _services = build_services()
    return _services


def reset_services() -> None:
    """Drop the process-wide instance (tests, settings reset)."""
    global _services
    if _services is not None:
        _services.database.close()
    _services = None
