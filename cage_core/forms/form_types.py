# =============================================================================
# cage_core/forms/form_types.py
# Service Call and PM Checklist form definitions
# =============================================================================
"""
Form definitions shared by the sync core, the submission pipeline and the UI.

The core treats a FormRecord as an opaque flat dict. What differs between the
two forms is where records live (cloud collection, device storage key), how
drafts are named, which signature authorizes a submission and how the output
file and email hand-off are titled. All of that is captured by FormType.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from cage_core.forms.technician import Technician

# Ids starting with this prefix name device-only records. Every other id names a
# cloud document. This is the only routing discriminant used on save.
LOCAL_DRAFT_MARKER = "local_"

FormRecord = Dict[str, Any]

CALL_TYPES = ("New Service Call", "Repeat Call", "Schedule Maintenance")
ASSESSMENT_TYPES = ("Excellent", "Satisfactory", "Unsatisfactory")

PM_CHECKLIST_ITEMS = [
    "Check to ensure screens are functioning correctly.",
    "Check if the V-Deck / keyboard are working.",
    "Check to ensure the internet is connected and functioning.",
    "Check to ensure cables aren't damaged. (LAN, Power etc.)",
    "Check Mikrotik and Switch for functionality.",
    "Ensure (PT) / (POS & Kiosk) are functional.",
    "Clean all Cages / MEU including cooling fan vent.",
    "Check Printers for functionality.",
    "Check door switch for functionality.",
    "Clean external part of cabinet & screen using (lint free Fabric)",
    "Confirm physical condition is ok.",
]


def _today() -> str:
    return date.today().isoformat()


def initial_service_record() -> FormRecord:
    """Blank Service Call sheet."""
    today = _today()
    return {
        "callType": None,
        "shopName": "",
        "systemType": "",
        "terminalNumber": "",
        "date": today,
        "arrivalTime": "",
        "departureTime": "",
        "vehicleNumber": "",
        "techName": "",
        "faultReported": "",
        "faultEncountered": "",
        "repairsMade": "",
        "partsUsed": "",
        "otherComments": "",
        "agentAssessment": None,
        "techSignature": None,
        "agentSignature": None,
        "techSignDate": today,
        "agentSignDate": today,
        "officialDispatcherSignature": None,
        "officialDispatcherDate": "",
        "receiptImage": None,
    }


def initial_pm_record() -> FormRecord:
    """Blank PM Checklist."""
    today = _today()
    return {
        "agentName": "",
        "date": today,
        "arrivalTime": "",
        "departureTime": "",
        "systemType": "Novomatic",
        "checks": [False] * len(PM_CHECKLIST_ITEMS),
        "partsUsed": "",
        "comments": "",
        "techSignature": None,
        "agentSignature": None,
        "supervisorSignature": None,
        "techSignDate": today,
        "agentSignDate": today,
        "supervisorSignDate": "",
        "techName": "",
    }


@dataclass(frozen=True)
class FormType:
    """Storage, naming and hand-off rules for one kind of form."""
    key: str
    label: str
    cloud_collection: str
    local_key: str
    draft_prefix: str
    file_prefix: str
    title_field: str
    upload_folder: str
    email_subject: str
    email_body: str
    initial_record: Callable[[], FormRecord]
    signature_field: str = "techSignature"
    # (signature field, caption, date field) drawn in the PDF signature block
    signature_blocks: Tuple[Tuple[str, str, str], ...] = ()
    checklist: Optional[Tuple[str, ...]] = None
    prefill_vehicle: bool = False

    def __post_init__(self):
        if not self.draft_prefix.startswith(LOCAL_DRAFT_MARKER):
            raise ValueError(
                f"Draft prefix {self.draft_prefix!r} must start with {LOCAL_DRAFT_MARKER!r}"
            )

    def new_record(self, technician: Optional[Technician] = None) -> FormRecord:
        """Fresh record, pre-filled with the signed-in technician."""
        record = self.initial_record()
        if technician is not None:
            record["techName"] = technician.name
            if self.prefill_vehicle:
                record["vehicleNumber"] = technician.vehicle_number
        return record

    def title(self, record: FormRecord) -> str:
        return str(record.get(self.title_field) or "")

    def has_authorizing_signature(self, record: FormRecord) -> bool:
        return bool(record.get(self.signature_field))

    def _fill(self, template: str, record: FormRecord) -> str:
        values = defaultdict(str, {k: "" if v is None else v for k, v in record.items()})
        return template.format_map(values)

    def build_email_subject(self, record: FormRecord) -> str:
        return self._fill(self.email_subject, record)

    def build_email_body(self, record: FormRecord) -> str:
        return self._fill(self.email_body, record)


SERVICE_CALL = FormType(
    key="service",
    label="Service Call",
    cloud_collection="service_reports",
    local_key="cage_service_reports_local",
    draft_prefix="local_draft_",
    file_prefix="ServiceCall",
    title_field="shopName",
    upload_folder="service_sheets",
    email_subject="Service Call Sheet - {shopName} - {date}",
    email_body="Service Call Sheet attached.\n\nTech: {techName}\nShop: {shopName}",
    initial_record=initial_service_record,
    signature_blocks=(
        ("techSignature", "Technician", "techSignDate"),
        ("agentSignature", "Agent", "agentSignDate"),
        ("officialDispatcherSignature", "Official Dispatcher", "officialDispatcherDate"),
    ),
    prefill_vehicle=True,
)

PM_CHECKLIST = FormType(
    key="pm",
    label="PM Checklist",
    cloud_collection="pm_reports",
    local_key="cage_pm_reports_local",
    draft_prefix="local_pm_",
    file_prefix="PM",
    title_field="agentName",
    upload_folder="pm_reports",
    email_subject="PM Checklist - {agentName} - {date}",
    email_body="PM Checklist attached.\n\nTech: {techName}\nAgent: {agentName}",
    initial_record=initial_pm_record,
    signature_blocks=(
        ("techSignature", "Technician", "techSignDate"),
        ("agentSignature", "Agent", "agentSignDate"),
        ("supervisorSignature", "Supervisor", "supervisorSignDate"),
    ),
    checklist=tuple(PM_CHECKLIST_ITEMS),
)

FORM_TYPES: Dict[str, FormType] = {
    SERVICE_CALL.key: SERVICE_CALL,
    PM_CHECKLIST.key: PM_CHECKLIST,
}


def get_form_type(key: str) -> FormType:
    """Look up a form type by key ("service" or "pm")."""
    try:
        return FORM_TYPES[key]
    except KeyError:
        raise KeyError(f"Unknown form type: {key!r}. Expected one of {sorted(FORM_TYPES)}")


def list_form_types() -> List[FormType]:
    return list(FORM_TYPES.values())
