# =============================================================================
# cage_core/errors/handlers.py
# Error Handling Utilities for Cage Service Sheets
# =============================================================================

from __future__ import annotations
from typing import Any, Callable, Dict, Optional, Tuple, TypeVar
import streamlit as st

from cage_core.logging import get_logger
from .exceptions import CageServiceError, FormValidationError

logger = get_logger(__name__)

T = TypeVar("T")


def _summarize(error: Exception, user_message: Optional[str]) -> Tuple[str, str, Dict[str, Any], bool]:
    """(message, code, details, recoverable) for any exception."""
    if isinstance(error, CageServiceError):
        return user_message or error.message, error.code, error.details, error.recoverable
    return user_message or str(error), "UNKNOWN", {"error_type": type(error).__name__}, True


def handle_error(
    error: Exception,
    show_user_message: bool = True,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> None:
    """
    Log an error and show it to the technician.

    Non-recoverable errors (device storage) get the "Critical Error" banner.
    With debug_mode on, the error details are shown in an expander.

    Args:
        error: The exception to report
        show_user_message: Show the st.error banner
        log_error: Log at ERROR with the traceback
        user_message: Replaces the exception message in the banner
    """
    message, code, details, recoverable = _summarize(error, user_message)

    if log_error:
        logger.error(f"[{code}] {message}", exc_info=error)

    if not show_user_message:
        return

    if recoverable:
        st.error(f"Error: {message}")
    else:
        st.error(f"Critical Error: {message}. Device storage may be full.")
    if details and st.session_state.get("debug_mode", False):
        with st.expander("Error details", expanded=False):
            st.json(details)


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Run a UI action, reporting any failure through handle_error.

    Usage:
        technician = safe_execute(
            directory.restore_last_user,
            default=None,
            error_message="Could not restore the last technician",
        )
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Run one UI action and report its failure instead of crashing the page.

    Validation problems are shown with st.warning. Other CageServiceErrors go
    through handle_error with their own message, and anything unexpected is
    reported as "<operation> failed". After the block, ``failed`` tells the
    caller whether the action completed.

    Usage:
        with ErrorContext("Submitting PM checklist") as action:
            submission = pipeline.submit(session)
        if not action.failed:
            show_submission(submission)
    """

    def __init__(self, operation: str, recoverable: bool = True):
        self.operation = operation
        self.recoverable = recoverable
        self.failed = False

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"Completed: {self.operation}")
            return False
        # Streamlit's rerun/stop signals are not failures
        if not issubclass(exc_type, Exception):
            return False

        self.failed = True
        if isinstance(exc_val, FormValidationError):
            logger.info(f"{self.operation} refused: {exc_val.message}")
            st.warning(exc_val.message)
            return True

        if isinstance(exc_val, CageServiceError):
            handle_error(exc_val)
        else:
            handle_error(exc_val, user_message=f"{self.operation} failed")
        return self.recoverable

