from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError
)
from ..core.security import Identity, UserRole
from ..models.doctor import Doctor
from ..models.user import User
from ..realtime.notifier import ChangeNotifier, get_notifier
from ..schemas.auth import UserResponse
from ..stores.appointment_store import AppointmentStore
from ..stores.directory_store import DirectoryStore

logger = logging.getLogger(__name__)

SAMPLE_DOCTORS = [
    ("DOC001", "Dr. Johnson", "General Practice", True),
    ("DOC002", "Dr. Lee", "Cardiology", True),
    ("DOC003", "Dr. Brown", "Dermatology", False),
    ("DOC004", "Dr. Davis", "Orthopedics", True),
]

DOCTOR_FIELDS = ("doctor_code", "name", "specialty", "available")


def _require_admin(identity: Identity):
    if identity.role != UserRole.ADMIN:
        raise ForbiddenError("Admin access required")


class DirectoryService:
    def __init__(self, db: Session, notifier: Optional[ChangeNotifier] = None):
        self.db = db
        self.directory = DirectoryStore(db)
        self.appointments = AppointmentStore(db)
        self.notifier = notifier or get_notifier()

    def list_available_doctors(self) -> List[Doctor]:
        """Doctors offered for new bookings. Public."""
        return self.directory.list_doctors(available_only=True)

    def list_doctors(self, identity: Identity) -> List[Doctor]:
        _require_admin(identity)
        return self.directory.list_doctors()

    def upsert_doctor(
        self, identity: Identity, doctor_id: Optional[int], fields: dict
    ) -> Doctor:
        """Create a doctor when ``doctor_id`` is None, otherwise update it."""
        _require_admin(identity)
        fields = {key: value for key, value in fields.items() if key in DOCTOR_FIELDS}
        if "doctor_code" in fields:
            fields["doctor_code"] = (fields["doctor_code"] or "").strip() or None

        for required in ("name", "specialty"):
            value = fields.get(required)
            # Required on create; may be omitted on update but never blanked
            if (doctor_id is None or value is not None) and not (value or "").strip():
                raise ValidationError(f"{required} is required", field=required)

        if doctor_id is None:
            doctor = Doctor(available=True)
        else:
            doctor = self.directory.get_doctor(doctor_id)
            if not doctor:
                raise NotFoundError("Doctor not found")

        code = fields.get("doctor_code")
        if code:
            holder = self.directory.get_doctor_by_code(code)
            if holder is not None and holder.id != doctor.id:
                raise ConflictError("Doctor ID already registered", field="doctor_code")

        for key, value in fields.items():
            if key != "doctor_code" and value is None:
                continue
            setattr(doctor, key, value.strip() if isinstance(value, str) else value)

        if doctor_id is None:
            self.directory.add_doctor(doctor)
        self._commit(conflict_message="Doctor ID already registered")
        self.db.refresh(doctor)

        logger.info(f"Doctor {doctor.id} {'created' if doctor_id is None else 'updated'} by admin {identity.id}")
        self.notifier.notify()
        return doctor

    def delete_doctor(self, identity: Identity, doctor_id: int) -> None:
        """Hard delete. Booked appointments keep their doctor name snapshot."""
        _require_admin(identity)
        doctor = self.directory.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")

        detached = self.appointments.detach_doctor(doctor.id)
        self.directory.delete_doctor(doctor)
        self._commit()

        logger.info(f"Doctor {doctor_id} deleted by admin {identity.id}; {detached} appointments detached")
        self.notifier.notify()

    def list_users(self, identity: Identity) -> List[User]:
        _require_admin(identity)
        return self.directory.list_users()

    def delete_user(self, identity: Identity, user_id: int) -> UserResponse:
        """Delete an account and, with it, the appointments it booked."""
        if not identity.is_admin and identity.id != user_id:
            raise ForbiddenError("Unauthorized to delete this account")

        user = self.directory.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        deleted = UserResponse.model_validate(user)

        self.directory.delete_user(user)
        self._commit()

        logger.info(f"User {user_id} deleted by {identity.role.value} {identity.id}")
        self.notifier.notify()
        return deleted

    def seed_doctors(self) -> int:
        """Insert the sample doctors into an empty directory."""
        if self.directory.count_doctors():
            return 0
        for code, name, specialty, available in SAMPLE_DOCTORS:
            self.directory.add_doctor(
                Doctor(doctor_code=code, name=name, specialty=specialty, available=available)
            )
        self._commit()
        logger.info(f"Seeded {len(SAMPLE_DOCTORS)} sample doctors")
        return len(SAMPLE_DOCTORS)

    def _commit(self, conflict_message: str = "Conflicting directory change") -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(conflict_message) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to commit directory change: {str(e)}")
            raise InternalError("Failed to save directory change") from e
