# =============================================================================
# tests/unit/test_submission_service.py
# Unit Tests for SubmissionPipeline
# =============================================================================

from urllib.parse import parse_qs, urlparse

import pytest


@pytest.fixture
def delivery(tmp_path):
    from cage_core.reports.delivery import DirectoryDelivery
    return DirectoryDelivery(tmp_path / "downloads")


@pytest.fixture
def pipeline(renderer, blob_store, delivery, connection, clock):
    from cage_core.services.submission_service import SubmissionPipeline
    return SubmissionPipeline(renderer, blob_store, delivery, connection, clock=clock)


@pytest.fixture
def signed_session(service_session, service_record, signature):
    service_session.update_fields(**service_record)
    service_session.update_field("techSignature", signature)
    return service_session


class TestFileNaming:
    """Test artifact names and upload paths"""

    @pytest.mark.parametrize("title,expected", [
        ("Acme", "Acme"),
        ("Lucky  Star Shop", "Lucky_Star_Shop"),
        ("Joe's Bar/Grill", "Joes_BarGrill"),
        ("", "Untitled"),
    ])
    def test_sanitize_title(self, title, expected):
        from cage_core.services.submission_service import sanitize_title
        assert sanitize_title(title) == expected

    def test_service_file_name(self, service_record):
        from cage_core.forms import SERVICE_CALL
        from cage_core.services.submission_service import build_file_name

        assert build_file_name(SERVICE_CALL, service_record, 1700) == "ServiceCall_Acme_1700.pdf"

    def test_pm_file_name_and_path(self, pm_record):
        from cage_core.forms import PM_CHECKLIST
        from cage_core.services.submission_service import build_file_name, build_upload_path

        name = build_file_name(PM_CHECKLIST, pm_record, 5)

        assert name == "PM_Shop_14_5.pdf"
        assert build_upload_path(PM_CHECKLIST, "tech-1", name) == "pm_reports/tech-1/PM_Shop_14_5.pdf"

    def test_email_url_is_encoded(self, service_record):
        from cage_core.forms import SERVICE_CALL
        from cage_core.services.submission_service import build_email_url

        url = build_email_url(SERVICE_CALL, service_record)
        query = parse_qs(urlparse(url).query)

        assert url.startswith("mailto:?subject=")
        assert query["subject"] == ["Service Call Sheet - Acme - 2024-03-01"]
        assert query["body"] == ["Service Call Sheet attached.\n\nTech: Dana Joseph\nShop: Acme"]


class TestValidation:
    """Test preconditions checked before any I/O"""

    def test_unsigned_form_rejected(self, pipeline, service_session, renderer, blob_store):
        from cage_core.errors import FormValidationError

        with pytest.raises(FormValidationError) as exc_info:
            pipeline.submit(service_session)

        assert exc_info.value.details["field"] == "techSignature"
        assert renderer.rendered == []
        assert blob_store.objects == {}

    def test_signed_out_session_rejected(self, pipeline, signed_session):
        from cage_core.errors import FormValidationError

        signed_session.technician = None

        with pytest.raises(FormValidationError):
            pipeline.submit(signed_session)


class TestSubmit:
    """Test the render -> upload -> save -> deliver sequence"""

    def test_happy_path(self, pipeline, signed_session, blob_store, cloud_store, delivery):
        from cage_core.offline.identity_resolver import SaveOutcome

        result = pipeline.submit(signed_session)

        assert result.file_name.startswith("ServiceCall_Acme_")
        assert result.uploaded
        assert f"service_sheets/tech-1/{result.file_name}" in blob_store.objects
        assert result.save_result.outcome == SaveOutcome.SUCCESS
        assert cloud_store.count("service_reports") == 1
        assert (delivery.downloads_dir / result.file_name).read_bytes() == result.artifact
        assert delivery.last_email_url == result.email_url

    def test_submission_binds_session_like_a_save(self, pipeline, signed_session):
        result = pipeline.submit(signed_session)
        assert signed_session.doc_id == result.save_result.doc_id

    def test_upload_failure_is_not_fatal(self, pipeline, signed_session, blob_store):
        blob_store.failing = True

        result = pipeline.submit(signed_session)

        assert not result.uploaded
        assert result.delivered_to is not None

    def test_offline_skips_upload(self, pipeline, signed_session, blob_store, connection):
        connection.is_online = False

        result = pipeline.submit(signed_session)

        assert not result.uploaded
        assert blob_store.objects == {}

    def test_full_device_storage_reports_failure(
        self, pipeline, tmp_path, cloud_store, clock, technician, service_record, signature, delivery
    ):
        """With the cloud down and no device space, the save fails but the PDF is still handed over"""
        from cage_core.forms import SERVICE_CALL
        from cage_core.offline.history_aggregator import HistoryAggregator
        from cage_core.offline.identity_resolver import DocumentIdentityResolver, SaveOutcome
        from cage_core.offline.local_database import LocalDatabase
        from cage_core.offline.local_record_store import LocalRecordStore
        from cage_core.services.form_session import FormSession

        database = LocalDatabase(tmp_path / "full.db", quota_bytes=10)
        local_store = LocalRecordStore(database, SERVICE_CALL.local_key, clock=clock)
        history = HistoryAggregator(SERVICE_CALL, cloud_store, local_store)
        resolver = DocumentIdentityResolver(SERVICE_CALL, cloud_store, local_store, history, clock=clock)
        session = FormSession(SERVICE_CALL, resolver, history)
        session.sign_in(technician)
        session.update_fields(**service_record)
        session.update_field("techSignature", signature)
        cloud_store.fail("all")

        try:
            result = pipeline.submit(session)
        finally:
            database.close()

        assert result.save_result.outcome == SaveOutcome.FAILURE
        assert result.save_result.error_code == "LOCAL_001"
        assert not result.saved_locally
        assert (delivery.downloads_dir / result.file_name).exists()

    def test_render_failure_is_fatal(self, pipeline, signed_session, renderer, cloud_store, delivery):
        from cage_core.errors import ReportRenderError

        renderer.error = MemoryError("image too large")

        with pytest.raises(ReportRenderError) as exc_info:
            pipeline.submit(signed_session)

        assert "image too large" in exc_info.value.message
        assert cloud_store.count("service_reports") == 0
        assert not delivery.downloads_dir.exists()

    def test_render_error_passes_through_unchanged(self, pipeline, signed_session, renderer):
        from cage_core.errors import ReportRenderError

        original = ReportRenderError("layout missing", form_type="service")
        renderer.error = original

        with pytest.raises(ReportRenderError) as exc_info:
            pipeline.submit(signed_session)

        assert exc_info.value is original

    def test_delivery_failure_raises(self, pipeline, signed_session, tmp_path):
        from cage_core.errors import DeliveryError
        from cage_core.reports.delivery import DirectoryDelivery

        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file in the way")
        pipeline.delivery = DirectoryDelivery(blocker)

        with pytest.raises(DeliveryError):
            pipeline.submit(signed_session)


class TestDelivery:
    """Test the delivery back-ends"""

    def test_directory_delivery_creates_folder(self, tmp_path):
        from cage_core.reports.delivery import DirectoryDelivery

        delivery = DirectoryDelivery(tmp_path / "a" / "b")
        path = delivery.deliver("x.pdf", b"%PDF")

        assert (tmp_path / "a" / "b" / "x.pdf").read_bytes() == b"%PDF"
        assert path.endswith("x.pdf")

    def test_streamlit_delivery(self, mock_streamlit):
        from cage_core.reports.delivery import StreamlitDelivery

        delivery = StreamlitDelivery()
        delivery.deliver("x.pdf", b"%PDF")
        delivery.offer_email("mailto:?subject=a")

        kwargs = mock_streamlit.download_button.call_args.kwargs
        assert kwargs["file_name"] == "x.pdf"
        assert kwargs["mime"] == "application/pdf"
        mock_streamlit.link_button.assert_called_once_with("Open email app", "mailto:?subject=a")

    def test_mailto_recipient(self):
        from cage_core.reports.delivery import build_mailto_url

        assert build_mailto_url("a b", "c&d", "ops@example.com") == (
            "mailto:ops@example.com?subject=a%20b&body=c%26d"
        )
