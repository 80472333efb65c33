# =============================================================================
# cage_core/forms/__init__.py
# Form definitions for Service Call and PM Checklist sheets
# =============================================================================

from cage_core.forms.technician import Technician
from cage_core.forms.form_types import (
    LOCAL_DRAFT_MARKER,
    FormRecord,
    FormType,
    SERVICE_CALL,
    PM_CHECKLIST,
    PM_CHECKLIST_ITEMS,
    CALL_TYPES,
    ASSESSMENT_TYPES,
    get_form_type,
    list_form_types,
)

__all__ = [
    "Technician",
    "LOCAL_DRAFT_MARKER",
    "FormRecord",
    "FormType",
    "SERVICE_CALL",
    "PM_CHECKLIST",
    "PM_CHECKLIST_ITEMS",
    "CALL_TYPES",
    "ASSESSMENT_TYPES",
    "get_form_type",
    "list_form_types",
]
