# =============================================================================
# cage_core/errors/exceptions.py
# Custom Exception Hierarchy for Cage Service Sheets
# =============================================================================

from typing import Optional, Dict, Any


class CageServiceError(Exception):
    """
    Base exception for all Cage Service Sheets errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "CLOUD_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "CAGE_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# CLOUD STORE EXCEPTIONS
# =============================================================================

class CloudStoreError(CageServiceError):
    """
    Raised when a cloud document or blob operation cannot be completed.

    Network absence, permission and quota errors all land here; callers treat
    them identically as "cloud unavailable".
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection: Optional[str] = None,
        code: str = "CLOUD_001",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if operation:
            details["operation"] = operation
        if collection:
            details["collection"] = collection

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class DocumentNotFoundError(CloudStoreError):
    """Raised when an update or delete targets a document id the cloud does not hold"""

    def __init__(self, message: str, doc_id: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if doc_id:
            details["doc_id"] = doc_id

        super().__init__(
            message=message,
            code="CLOUD_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# LOCAL STORAGE EXCEPTIONS
# =============================================================================

class LocalStorageError(CageServiceError):
    """Raised when device storage is unavailable, full or corrupt"""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code="LOCAL_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# FORM EXCEPTIONS
# =============================================================================

class FormValidationError(CageServiceError):
    """Raised when a form or profile is missing a required value"""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        form_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if form_type:
            details["form_type"] = form_type

        super().__init__(
            message=message,
            code="FORM_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# REPORT EXCEPTIONS
# =============================================================================

class ReportRenderError(CageServiceError):
    """Raised when the PDF renderer fails to produce an artifact"""

    def __init__(
        self,
        message: str,
        form_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if form_type:
            details["form_type"] = form_type

        super().__init__(
            message=message,
            code="REPORT_001",
            details=details,
            **kwargs,
        )


class DeliveryError(CageServiceError):
    """Raised when a rendered artifact cannot be handed to the technician"""

    def __init__(
        self,
        message: str,
        file_name: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if file_name:
            details["file_name"] = file_name

        super().__init__(
            message=message,
            code="REPORT_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(CageServiceError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
