# =============================================================================
# cage_core/services/technician_service.py
# Technician profiles with cloud-first, device-fallback persistence
# =============================================================================

from __future__ import annotations
from typing import Callable, List, Optional, Tuple

from cage_core.data.cloud_document_store import DocumentStore
from cage_core.errors import CloudStoreError, FormValidationError, LocalStorageError
from cage_core.forms.form_types import LOCAL_DRAFT_MARKER
from cage_core.forms.technician import Technician
from cage_core.offline.local_database import LocalDatabase
from cage_core.offline.local_record_store import LocalRecordStore
from cage_core.services.base_service import BaseService, ServiceResult
from cage_core.utils import now_millis

TECHNICIANS_COLLECTION = "technicians"
LOCAL_TECHNICIANS_KEY = "cage_technicians_local"
LAST_USER_KEY = "cage_last_user_id"


class TechnicianDirectory(BaseService):
    """
    Lists, creates and edits technician profiles.

    Profiles created while the cloud is unavailable get a "local_<millis>" id
    and live only on this device.

    Usage:
        directory = TechnicianDirectory(cloud_store, local_store, database)
        technicians, offline = directory.list_technicians()
        result = directory.create("Dana", "van-12", "1234")
        if result.success:
            directory.remember_last_user(result.data)
    """

    def __init__(
        self,
        cloud_store: DocumentStore,
        local_store: LocalRecordStore,
        database: LocalDatabase,
        clock: Callable[[], int] = now_millis,
    ):
        super().__init__()
        self.cloud_store = cloud_store
        self.local_store = local_store
        self.database = database
        self._clock = clock

    # =========================================================================
    # LISTING
    # =========================================================================

    def list_technicians(self) -> Tuple[List[Technician], bool]:
        """
        All profiles sorted by name.

        Returns:
            (technicians, offline) where offline is True when the list came
            from device storage because the cloud could not be read
        """
        try:
            documents = self.cloud_store.list_all(TECHNICIANS_COLLECTION)
        except CloudStoreError as e:
            self.logger.warning(f"Technician list unavailable from cloud, using device: {e}")
            return self._local_technicians(), True

        technicians = [Technician.from_dict(doc.data, doc_id=doc.id) for doc in documents]
        return self._sorted(technicians), False

    def _local_technicians(self) -> List[Technician]:
        try:
            items = self.local_store.load()
        except LocalStorageError as e:
            self.logger.error(f"Local technician load failed: {e}")
            return []
        return self._sorted([Technician.from_dict(i) for i in items if isinstance(i, dict)])

    @staticmethod
    def _sorted(technicians: List[Technician]) -> List[Technician]:
        return sorted(technicians, key=lambda t: t.name.casefold())

    def find(self, technician_id: str) -> Optional[Technician]:
        """Look a profile up by id, cloud first and then device storage."""
        if not technician_id.startswith(LOCAL_DRAFT_MARKER):
            try:
                document = self.cloud_store.get(TECHNICIANS_COLLECTION, technician_id)
                if document is not None:
                    return Technician.from_dict(document.data, doc_id=document.id)
            except CloudStoreError as e:
                self.logger.warning(f"Cloud profile lookup failed, trying device: {e}")

        try:
            item = self.local_store.get(technician_id)
        except LocalStorageError as e:
            self.logger.error(f"Local profile lookup failed: {e}")
            return None
        return Technician.from_dict(item) if item else None

    # =========================================================================
    # CREATE / UPDATE / DELETE
    # =========================================================================

    def create(self, name: str, vehicle_number: str, pin: str) -> ServiceResult:
        """
        Create a profile. Every field is required; the vehicle number is upper-cased.

        Returns:
            ServiceResult with the Technician in data; metadata["offline"] is
            True when the profile was stored on the device only
        """
        name = (name or "").strip()
        vehicle_number = (vehicle_number or "").strip()
        pin = (pin or "").strip()
        if not name or not vehicle_number or not pin:
            return ServiceResult.from_exception(
                FormValidationError("All fields are required", form_type="technician")
            )

        profile = Technician(id="", name=name, vehicle_number=vehicle_number.upper(), pin=pin)

        try:
            document = self.cloud_store.create(TECHNICIANS_COLLECTION, profile.profile_fields())
            profile.id = document.id
            self.logger.info(f"Created technician {profile.name} ({profile.id})")
            return ServiceResult.ok(profile, metadata={"offline": False})
        except CloudStoreError as e:
            self.logger.warning(f"Cloud profile create failed, saving to device: {e}")

        profile.id = f"{LOCAL_DRAFT_MARKER}{self._clock()}"
        try:
            self.local_store.upsert(profile.to_dict())
        except LocalStorageError as e:
            self.logger.error(f"Local profile create failed: {e}")
            return ServiceResult.from_exception(e)

        self.logger.info(f"Created device-only technician {profile.name} ({profile.id})")
        return ServiceResult.ok(profile, metadata={"offline": True})

    def update_profile(self, technician: Technician) -> ServiceResult:
        """
        Save edited name, vehicle number and PIN.

        The device copy is only replaced when the cloud update fails and the
        profile already exists on the device.
        """
        try:
            self.cloud_store.update(
                TECHNICIANS_COLLECTION, technician.id, technician.profile_fields()
            )
            return ServiceResult.ok(technician, metadata={"offline": False})
        except CloudStoreError as e:
            self.logger.warning(f"Failed to update profile in cloud, trying device: {e}")

        try:
            replaced = self.local_store.replace(technician.to_dict())
        except LocalStorageError as e:
            self.logger.error(f"Failed local profile update: {e}")
            return ServiceResult.from_exception(e)

        return ServiceResult.ok(
            technician, metadata={"offline": True, "stored_on_device": replaced}
        )

    def delete_account(self, technician: Technician) -> None:
        """Remove a profile everywhere and forget it as the last user."""
        if not technician.id.startswith(LOCAL_DRAFT_MARKER):
            try:
                self.cloud_store.delete(TECHNICIANS_COLLECTION, technician.id)
            except CloudStoreError as e:
                self.logger.warning(f"Cloud profile delete failed: {e}")

        try:
            self.local_store.remove(technician.id)
        except LocalStorageError as e:
            self.logger.error(f"Local profile delete failed: {e}")

        self.forget_last_user()
        self.logger.info(f"Deleted technician account {technician.id}")

    # =========================================================================
    # SIGN-IN HELPERS
    # =========================================================================

    @staticmethod
    def verify_pin(technician: Technician, pin: str) -> bool:
        return bool(technician.pin) and pin == technician.pin

    def remember_last_user(self, technician: Technician) -> None:
        self.database.set_item(LAST_USER_KEY, technician.id)

    def last_user_id(self) -> Optional[str]:
        return self.database.get_item(LAST_USER_KEY)

    def forget_last_user(self) -> None:
        self.database.remove_item(LAST_USER_KEY)

    def restore_last_user(self) -> Optional[Technician]:
        """Profile of the technician who signed in last on this device, if any."""
        last_id = self.last_user_id()
        if not last_id:
            return None
        return self.find(last_id)
