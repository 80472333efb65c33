# =============================================================================
# cage_core/services/submission_service.py
# Render -> upload -> save -> deliver for a signed form
# =============================================================================

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from cage_core.data.blob_store import BlobStore
from cage_core.errors import CloudStoreError, FormValidationError, ReportRenderError
from cage_core.forms.form_types import FormRecord, FormType
from cage_core.offline.identity_resolver import SaveOutcome, SaveResult
from cage_core.reports.delivery import ArtifactDelivery, build_mailto_url
from cage_core.reports.pdf_renderer import ReportRenderer
from cage_core.services.base_service import BaseService
from cage_core.services.form_session import FormSession
from cage_core.utils import now_millis

_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^A-Za-z0-9_.\-]")


def sanitize_title(title: str) -> str:
    """Whitespace runs become underscores; characters unsafe in paths are dropped."""
    cleaned = _UNSAFE.sub("", _WHITESPACE.sub("_", title.strip()))
    return cleaned or "Untitled"


def build_file_name(form_type: FormType, record: FormRecord, millis: int) -> str:
    """<prefix>_<sanitized title>_<millis>.pdf"""
    return f"{form_type.file_prefix}_{sanitize_title(form_type.title(record))}_{millis}.pdf"


def build_upload_path(form_type: FormType, technician_id: str, file_name: str) -> str:
    return f"{form_type.upload_folder}/{technician_id}/{file_name}"


def build_email_url(form_type: FormType, record: FormRecord) -> str:
    return build_mailto_url(
        form_type.build_email_subject(record),
        form_type.build_email_body(record),
    )


@dataclass
class SubmissionResult:
    """Everything a submission produced. Upload and cloud save may have degraded."""
    file_name: str
    artifact: bytes
    save_result: SaveResult
    uploaded: bool
    email_url: str
    delivered_to: Optional[str] = None

    @property
    def saved_locally(self) -> bool:
        return self.save_result.outcome == SaveOutcome.LOCAL


class SubmissionPipeline(BaseService):
    """
    Turns a signed form into a delivered PDF.

    Steps:
        1. Render the record (fatal on failure)
        2. Upload to <folder>/<techId>/<file> (skipped offline, failure logged only)
        3. Save through the session's resolver (same path as a manual save)
        4. Deliver the file, then offer the email compose link

    Usage:
        pipeline = SubmissionPipeline(PdfReportRenderer(), blobs, DirectoryDelivery(path), connection)
        result = pipeline.submit(session)
    """

    def __init__(
        self,
        renderer: ReportRenderer,
        blob_store: BlobStore,
        delivery: ArtifactDelivery,
        connection: Any = None,
        clock: Callable[[], int] = now_millis,
    ):
        super().__init__()
        self.renderer = renderer
        self.blob_store = blob_store
        self.delivery = delivery
        self.connection = connection
        self._clock = clock

    def validate(self, session: FormSession) -> None:
        """Raise FormValidationError before any I/O if the form cannot be submitted."""
        form_type = session.form_type
        if session.technician is None:
            raise FormValidationError(
                "You must be logged in.", field="techId", form_type=form_type.key
            )
        if not form_type.has_authorizing_signature(session.record):
            raise FormValidationError(
                "Please sign the document before submitting.",
                field=form_type.signature_field,
                form_type=form_type.key,
            )

    def submit(self, session: FormSession) -> SubmissionResult:
        """
        Submit the session's current record.

        Raises:
            FormValidationError: Missing technician or authorizing signature
            ReportRenderError: The PDF could not be produced
            DeliveryError: The file could not be handed over
        """
        self.validate(session)
        form_type = session.form_type
        technician = session.technician
        record = dict(session.record)
        file_name = build_file_name(form_type, record, self._clock())

        with self.log_operation(f"Submitting {file_name}"):
            artifact = self._render(record, form_type)
            uploaded = self._upload(build_upload_path(form_type, technician.id, file_name), artifact)
            save_result = session.save()
            if save_result.outcome == SaveOutcome.FAILURE:
                self.logger.error(f"{file_name} was not saved anywhere: {save_result.error}")
            delivered_to = self.delivery.deliver(file_name, artifact)

            email_url = build_email_url(form_type, record)
            self.delivery.offer_email(email_url)

        return SubmissionResult(
            file_name=file_name,
            artifact=artifact,
            save_result=save_result,
            uploaded=uploaded,
            email_url=email_url,
            delivered_to=delivered_to,
        )

    def _render(self, record: FormRecord, form_type: FormType) -> bytes:
        try:
            return self.renderer.render(record, form_type)
        except ReportRenderError:
            raise
        except Exception as e:
            raise ReportRenderError(f"PDF generation failed: {e}", form_type=form_type.key) from e

    def _upload(self, path: str, artifact: bytes) -> bool:
        if self.connection is not None and not self.connection.is_online:
            self.logger.info(f"Offline, skipping upload of {path}")
            return False
        try:
            self.blob_store.write(path, artifact)
        except CloudStoreError as e:
            self.logger.warning(f"Upload failed, continuing with local delivery: {e}")
            return False
        return True
