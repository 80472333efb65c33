# =============================================================================
# cage_core/services/__init__.py
# Service Layer for Cage Service Sheets
# =============================================================================
"""
Service layer between the Streamlit pages and the offline-first core.

Usage Example:
-------------
    from cage_core.services import get_services

    services = get_services()

    # Sign in
    technicians, offline = services.directory.list_technicians()
    technician = technicians[0]
    services.directory.remember_last_user(technician)

    # Fill in and save a Service Call sheet
    session = services.open_session("service", technician)
    session.update_fields(shopName="Acme", faultReported="Screen dark")
    result = session.save()          # SUCCESS, LOCAL or FAILURE

    # Submit once signed
    session.update_field("techSignature", signature_data_url)
    submission = services.pipeline.submit(session)
    print(submission.file_name, submission.email_url)
"""

from .base_service import BaseService, ServiceResult
from .form_session import FormSession
from .technician_service import TechnicianDirectory
from .submission_service import (
    SubmissionPipeline,
    SubmissionResult,
    build_file_name,
    build_upload_path,
    build_email_url,
    sanitize_title,
)
from .registry import CageServices, build_services, get_services, reset_services

__all__ = [
    # Base classes
    "BaseService",
    "ServiceResult",
    # Forms
    "FormSession",
    # Profiles
    "TechnicianDirectory",
    # Submission
    "SubmissionPipeline",
    "SubmissionResult",
    "build_file_name",
    "build_upload_path",
    "build_email_url",
    "sanitize_title",
    # Wiring
    "CageServices",
    "build_services",
    "get_services",
    "reset_services",
]
