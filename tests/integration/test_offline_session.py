# =============================================================================
# tests/integration/test_offline_session.py
# Integration Tests for the wired application (Registry → Session → Stores)
# =============================================================================

import pytest
from unittest.mock import MagicMock


@pytest.fixture
def app_config(tmp_path):
    from cage_core.config import AppConfig
    return AppConfig(
        local_db_path=tmp_path / "device" / "cage.db",
        downloads_dir=tmp_path / "downloads",
    )


@pytest.fixture
def online_connection(mock_supabase):
    from cage_core.offline.connection_manager import ConnectionManager
    return ConnectionManager(mock_supabase, "https://example.supabase.co")


@pytest.fixture
def services(app_config, cloud_store, blob_store, online_connection):
    """Registry wired with in-memory cloud stores and the real fpdf2 renderer"""
    from cage_core.services.registry import build_services

    services = build_services(
        config=app_config,
        cloud_store=cloud_store,
        blob_store=blob_store,
        connection=online_connection,
    )
    yield services
    services.database.close()


@pytest.fixture
def session(services, technician):
    return services.open_session("service", technician)


class TestRegistryWiring:
    """Test build_services / get_services"""

    def test_one_resolver_and_history_per_form_type(self, services):
        assert set(services.resolvers) == {"service", "pm"}
        assert services.history("pm").form_type.key == "pm"
        assert services.resolver("service").history is services.history("service")

    def test_sessions_share_stores(self, services, technician):
        service = services.open_session("service", technician)
        pm = services.open_session("pm", technician)

        assert service.resolver.cloud_store is pm.resolver.cloud_store
        assert service.resolver.local_store.database is pm.resolver.local_store.database

    def test_connectivity_change_drops_cached_history(self, services, session, cloud_store):
        session.save()
        assert services.history("service").latest("tech-1")

        services.connection.force_offline()

        assert services.history("service").latest("tech-1") is None
        cloud_store.create("service_reports", {"shopName": "Other van", "techId": "tech-1"})
        assert len(session.history()) == 2

    def test_unknown_form_key(self, services):
        with pytest.raises(KeyError):
            services.open_session("invoice")

    def test_without_credentials_runs_local_only(self, app_config, monkeypatch):
        from cage_core.offline.connection_manager import ConnectionStatus
        from cage_core.services import registry

        monkeypatch.setattr(registry, "load_config", lambda: app_config)
        monkeypatch.setattr(registry, "_services", None)

        services = registry.get_services()
        try:
            assert services is registry.get_services()
            assert services.connection.status == ConnectionStatus.LOCAL_ONLY
        finally:
            registry.reset_services()

        assert registry._services is None


class TestOfflineFirstProperties:
    """End-to-end save/history behaviour across both stores"""

    def test_identity_stable_across_saves(self, session):
        session.update_field("shopName", "Acme")
        first = session.save()
        session.update_field("repairsMade", "Replaced PSU")
        second = session.save()
        third = session.save()

        assert first.doc_id == second.doc_id == third.doc_id

    def test_back_to_back_saves_do_not_duplicate(self, session, cloud_store, technician):
        session.save()
        session.save()

        assert cloud_store.count("service_reports") == 1
        assert len(session.history()) == 1

    def test_cloud_down_gives_one_stable_local_id(self, session, cloud_store):
        from cage_core.offline.identity_resolver import SaveOutcome

        cloud_store.fail("all")

        results = [session.save() for _ in range(3)]

        assert {r.outcome for r in results} == {SaveOutcome.LOCAL}
        assert len({r.doc_id for r in results}) == 1
        assert results[0].doc_id.startswith("local_draft_")
        history = session.history()
        assert [entry.id for entry in history] == [results[0].doc_id]
        assert history[0].source == "local"

    def test_shared_id_listed_once(self, session, cloud_store):
        """A cloud document that also has a local fallback copy appears once"""
        cloud_id = session.save().doc_id
        cloud_store.fail("update")
        session.update_field("shopName", "Edited offline")
        session.save()
        cloud_store.recover()

        ids = [entry.id for entry in session.history()]

        assert ids.count(cloud_id) == 1
        assert len(ids) == 1

    def test_submission_with_cloud_and_bucket_down(
        self, services, session, cloud_store, blob_store, app_config, service_record, signature
    ):
        from cage_core.offline.identity_resolver import SaveOutcome

        cloud_store.fail("all")
        blob_store.failing = True
        session.update_fields(**service_record)
        session.update_field("techSignature", signature)

        result = services.pipeline.submit(session)

        assert not result.uploaded
        assert result.saved_locally
        assert result.save_result.outcome == SaveOutcome.LOCAL
        delivered = app_config.downloads_dir / result.file_name
        assert delivered.read_bytes().startswith(b"%PDF")
        local = services.resolver("service").local_store.get(result.save_result.doc_id)
        assert local["data"]["techId"] == "tech-1"

    def test_offline_draft_is_created_again_once_cloud_returns(self, session, cloud_store, technician):
        """The local copy of a draft is not reconciled after it reaches the cloud"""
        cloud_store.fail("create")
        session.update_field("shopName", "Acme")
        offline = session.save()
        local_store = session.resolver.local_store

        assert offline.doc_id.startswith("local_")
        assert local_store.get(offline.doc_id)["data"]["techId"] == technician.id

        cloud_store.recover()
        online = session.save()

        assert cloud_store.calls[-2:] == [("create", "service_reports"), ("query", "service_reports")]
        assert online.doc_id in cloud_store.collections["service_reports"]
        assert local_store.get(offline.doc_id) is not None
        assert {entry.id for entry in session.history()} == {offline.doc_id, online.doc_id}

    def test_history_survives_corrupt_device_storage(self, services, session, cloud_store):
        session.save()
        services.database.set_item("cage_service_reports_local", "{not json")

        assert len(session.refresh_history()) == 1


class TestTechnicianFlow:
    """Profile creation and sign-in across stores"""

    def test_offline_profile_can_save_forms(self, services, cloud_store):
        cloud_store.fail("all")

        technician = services.directory.create("Sam Lake", "v-3", "4321").data
        session = services.open_session("pm", technician)
        session.toggle_check(0)
        result = session.save()

        assert technician.id.startswith("local_")
        assert result.doc_id.startswith("local_pm_")
        assert session.history()[0].data["checks"][0] is True
        technicians, offline = services.directory.list_technicians()
        assert offline and technicians == [technician]

    def test_streamlit_session_state_helpers(self, services, technician, monkeypatch):
        from cage_core.state import session as state

        mock_st = MagicMock()
        mock_st.session_state = {}
        monkeypatch.setattr(state, "st", mock_st)

        state.init_state()
        form = state.get_form_session(services, "service")
        state.sign_in(services, technician)

        assert state.current_technician() == technician
        assert form.record["techName"] == "Dana Joseph"
        assert services.directory.last_user_id() == "tech-1"

        state.sign_out(services)

        assert state.current_technician() is None
        assert not form.is_signed_in
        assert services.directory.last_user_id() is None
        assert set(mock_st.session_state) == set(state.SESSION_DEFAULTS)
