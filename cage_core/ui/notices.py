# =============================================================================
# cage_core/ui/notices.py
# Save and submission notices shared by the Service Call and PM tabs
# =============================================================================

import logging

import streamlit as st

from cage_core.offline.identity_resolver import SaveOutcome, SaveResult
from cage_core.services.submission_service import SubmissionResult

logger = logging.getLogger(__name__)


def show_save_outcome(result: SaveResult) -> None:
    """Tell the technician where a save ended up."""
    if result.outcome == SaveOutcome.SUCCESS:
        st.success("Saved to cloud.")
    elif result.outcome == SaveOutcome.LOCAL:
        st.warning("Cloud unavailable - saved on this device.")
    else:
        logger.error(f"[{result.error_code}] Save failed: {result.error}")
        st.error(f"Critical Error: Could not save locally. Device storage may be full. ({result.error})")


def show_submission(submission: SubmissionResult) -> None:
    """
    Report a finished submission.

    The report is delivered even when the save behind it failed, so the save
    notice is shown alongside the delivery line rather than instead of it.
    """
    show_save_outcome(submission.save_result)
    if submission.save_result.outcome != SaveOutcome.FAILURE:
        st.session_state["last_submission"] = submission.file_name
    if not submission.uploaded:
        st.caption("Report copy not uploaded; it was delivered from this device.")
