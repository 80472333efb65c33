# =============================================================================
# cage_core/forms/technician.py
# Technician profile model
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class Technician:
    """A field technician profile. Records are owned through `id` (stored as techId)."""
    id: str
    name: str
    vehicle_number: str = ""
    pin: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Storage layout, shared by device storage and the cloud document body."""
        return {
            "id": self.id,
            "name": self.name,
            "vehicleNumber": self.vehicle_number,
            "pin": self.pin,
        }

    def profile_fields(self) -> Dict[str, Any]:
        """Document body without the id (the cloud assigns its own)."""
        data = self.to_dict()
        data.pop("id")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: str = None) -> Technician:
        return cls(
            id=str(doc_id if doc_id is not None else data.get("id", "")),
            name=str(data.get("name", "")),
            vehicle_number=str(data.get("vehicleNumber", "")),
            pin=str(data.get("pin", "")),
        )
