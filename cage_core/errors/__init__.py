# =============================================================================
# cage_core/errors/__init__.py
# Centralized Error Handling for Cage Service Sheets
# =============================================================================

from .exceptions import (
    CageServiceError,
    CloudStoreError,
    DocumentNotFoundError,
    LocalStorageError,
    FormValidationError,
    ReportRenderError,
    DeliveryError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    safe_execute,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "CageServiceError",
    "CloudStoreError",
    "DocumentNotFoundError",
    "LocalStorageError",
    "FormValidationError",
    "ReportRenderError",
    "DeliveryError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "safe_execute",
    "ErrorContext",
]
