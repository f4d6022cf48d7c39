from datetime import date, time
from typing import Dict, List, Optional, Set
import logging

from sqlalchemy import and_, false, or_, true
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ..core.config import settings
from ..core.exceptions import (
    ConflictError, ForbiddenError, InternalError, NotFoundError, ValidationError
)
from ..core.security import Identity, UserRole
from ..models.appointment import Appointment, AppointmentStatus
from ..realtime.notifier import ChangeNotifier, get_notifier
from ..schemas.appointment import (
    AppointmentCreate, AppointmentStats, AppointmentUpdate, AppointmentWithPatient
)
from ..stores.appointment_store import AppointmentStore
from ..stores.directory_store import DirectoryStore

logger = logging.getLogger(__name__)

# Completed and cancelled are terminal
ALLOWED_TRANSITIONS: Dict[AppointmentStatus, Set[AppointmentStatus]] = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

EDITABLE_STATUSES = {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Re-applying the current status is always accepted."""
    return target == current or target in ALLOWED_TRANSITIONS[current]


def allowed_sources(target: AppointmentStatus) -> Set[AppointmentStatus]:
    """Statuses from which ``target`` may be reached."""
    return {status for status in AppointmentStatus if can_transition(status, target)}


def parse_status(value: Optional[str]) -> AppointmentStatus:
    if not value:
        raise ValidationError("status is required", field="status")
    try:
        return AppointmentStatus(value.strip().lower())
    except ValueError:
        allowed = ", ".join(status.value for status in AppointmentStatus)
        raise ValidationError(f"Invalid status. Allowed values: {allowed}", field="status")


def _required(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


def _parse_date(value: Optional[str], field: str) -> date:
    raw = _required(value, field)
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", field=field)


def _parse_time(value: Optional[str], field: str) -> time:
    raw = _required(value, field)
    try:
        return time.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO time (HH:MM)", field=field)


class SchedulingService:
    """Appointment lifecycle: booking, status changes, edits and reads.

    Ownership is never checked separately from the read or write it guards.
    Each operation builds a scope clause from the caller identity and the
    store applies it in the same statement, so a row the caller may not see
    is reported as missing.
    """

    def __init__(self, db: Session, notifier: Optional[ChangeNotifier] = None):
        self.db = db
        self.appointments = AppointmentStore(db)
        self.directory = DirectoryStore(db)
        self.notifier = notifier or get_notifier()

    def create_appointment(self, identity: Identity, data: AppointmentCreate) -> Appointment:
        """Book a new appointment for the calling patient."""
        if identity.role != UserRole.PATIENT:
            raise ForbiddenError("Only patients can book appointments")

        if data.doctor_id is None:
            raise ValidationError("doctor_id is required", field="doctor_id")
        appointment_date = _parse_date(data.appointment_date, "appointment_date")
        appointment_time = _parse_time(data.appointment_time, "appointment_time")
        appointment_type = _required(data.appointment_type, "appointment_type")

        # Availability is advisory; it is not re-checked at commit
        doctor = self.directory.get_doctor(data.doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found", field="doctor_id")
        if not doctor.available:
            raise ValidationError("Doctor is not accepting new appointments", field="doctor_id")

        if settings.PREVENT_DOUBLE_BOOKING and self.appointments.slot_taken(
            doctor.id, appointment_date, appointment_time
        ):
            raise ConflictError("This time slot is already booked", field="appointment_time")

        doctor_name = (data.doctor_name or "").strip() or doctor.name

        appointment = Appointment(
            patient_id=identity.id,
            patient_name=identity.name,
            doctor_id=doctor.id,
            doctor_name=doctor_name,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            appointment_type=appointment_type,
            status=AppointmentStatus.PENDING,
        )
        self.appointments.add(appointment)
        self._commit()
        self.db.refresh(appointment)

        logger.info(
            f"Appointment {appointment.id} booked by patient {identity.id} "
            f"with {doctor_name} on {appointment_date} {appointment_time}"
        )
        self.notifier.notify()
        return appointment

    def list_for_patient(self, identity: Identity) -> List[Appointment]:
        return self.appointments.list(Appointment.patient_id == identity.id)

    def list_for_doctor(self, identity: Identity) -> List[AppointmentWithPatient]:
        if identity.role != UserRole.DOCTOR:
            raise ForbiddenError("Doctor access required")
        rows = self.appointments.list_with_patient_email(self._doctor_scope(identity))
        return [self._with_email(appointment, email) for appointment, email in rows]

    def list_all(self, identity: Identity) -> List[AppointmentWithPatient]:
        if identity.role != UserRole.ADMIN:
            raise ForbiddenError("Admin access required")
        rows = self.appointments.list_with_patient_email()
        return [self._with_email(appointment, email) for appointment, email in rows]

    def get_appointment(self, identity: Identity, appointment_id: int) -> AppointmentWithPatient:
        row = self.appointments.get_with_patient_email(appointment_id, self._scope_for(identity))
        if row is None:
            raise NotFoundError("Appointment not found")
        appointment, email = row
        return self._with_email(appointment, email)

    def update_status(
        self, identity: Identity, appointment_id: int, new_status: Optional[str]
    ) -> Appointment:
        """Move an appointment to ``new_status``.

        Patients may change their own appointments, doctors the ones booked
        with them, admins any. The state machine guard is part of the UPDATE,
        so two racing callers cannot both pass it from a stale read.
        """
        status = parse_status(new_status)
        scope = self._scope_for(identity)

        criteria = []
        if settings.ENFORCE_STATUS_TRANSITIONS:
            criteria.append(Appointment.status.in_(allowed_sources(status)))

        updated = self.appointments.update_where(
            appointment_id, scope, {"status": status}, criteria
        )
        if not updated:
            self.db.rollback()
            existing = self.appointments.get(appointment_id, scope)
            if existing is None:
                raise NotFoundError("Appointment not found")
            raise ConflictError(
                f"Cannot change status from {existing.status.value} to {status.value}",
                field="status",
            )
        self._commit()

        logger.info(
            f"Appointment {appointment_id} set to {status.value} by {identity.role.value} {identity.id}"
        )
        self.notifier.notify()
        return self.appointments.get(appointment_id, scope)

    def update_status_as_doctor(
        self, identity: Identity, appointment_id: int, new_status: Optional[str]
    ) -> Appointment:
        if identity.role != UserRole.DOCTOR:
            raise ForbiddenError("Doctor access required")
        return self.update_status(identity, appointment_id, new_status)

    def update_details(
        self, identity: Identity, appointment_id: int, data: AppointmentUpdate
    ) -> Appointment:
        """Edit date, time or type. Status is left untouched."""
        if identity.role not in (UserRole.PATIENT, UserRole.ADMIN):
            raise ForbiddenError("Only patients can edit appointment details")
        scope = self._owner_scope(identity)

        values = {}
        if data.date is not None:
            values["appointment_date"] = _parse_date(data.date, "date")
        if data.time is not None:
            values["appointment_time"] = _parse_time(data.time, "time")
        if data.type is not None:
            values["appointment_type"] = _required(data.type, "type")
        if not values:
            raise ValidationError("Nothing to update; provide date, time or type")

        current = self.appointments.get(appointment_id, scope)
        if current is None:
            raise NotFoundError("Appointment not found")

        if settings.PREVENT_DOUBLE_BOOKING and current.doctor_id is not None and (
            "appointment_date" in values or "appointment_time" in values
        ):
            if self.appointments.slot_taken(
                current.doctor_id,
                values.get("appointment_date", current.appointment_date),
                values.get("appointment_time", current.appointment_time),
                exclude_id=current.id,
            ):
                raise ConflictError("This time slot is already booked", field="time")

        criteria = []
        if settings.ENFORCE_STATUS_TRANSITIONS:
            criteria.append(Appointment.status.in_(EDITABLE_STATUSES))

        updated = self.appointments.update_where(appointment_id, scope, values, criteria)
        if not updated:
            self.db.rollback()
            existing = self.appointments.get(appointment_id, scope)
            if existing is None:
                raise NotFoundError("Appointment not found")
            raise ConflictError(f"Cannot edit a {existing.status.value} appointment")
        self._commit()

        logger.info(f"Appointment {appointment_id} details updated by {identity.role.value} {identity.id}")
        self.notifier.notify()
        return self.appointments.get(appointment_id, scope)

    def delete_appointment(self, identity: Identity, appointment_id: int) -> None:
        """Hard delete of one of the caller's own appointments."""
        if identity.role != UserRole.PATIENT:
            raise ForbiddenError("Only patients can delete appointments")

        deleted = self.appointments.delete_where(
            appointment_id, Appointment.patient_id == identity.id
        )
        if not deleted:
            self.db.rollback()
            raise NotFoundError("Appointment not found")
        self._commit()

        logger.info(f"Appointment {appointment_id} deleted by patient {identity.id}")
        self.notifier.notify()

    def stats(self, identity: Identity) -> AppointmentStats:
        """Dashboard counters over the appointments the caller can see."""
        scope = self._scope_for(identity)
        counts = self.appointments.count_by_status(scope)
        return AppointmentStats(
            total=sum(counts.values()),
            pending=counts.get(AppointmentStatus.PENDING, 0),
            confirmed=counts.get(AppointmentStatus.CONFIRMED, 0),
            completed=counts.get(AppointmentStatus.COMPLETED, 0),
            cancelled=counts.get(AppointmentStatus.CANCELLED, 0),
            distinct_doctors=self.appointments.count_distinct_doctors(scope),
        )

    def _scope_for(self, identity: Identity) -> ColumnElement:
        if identity.role == UserRole.ADMIN:
            return true()
        if identity.role == UserRole.DOCTOR:
            return self._doctor_scope(identity)
        return Appointment.patient_id == identity.id

    def _owner_scope(self, identity: Identity) -> ColumnElement:
        if identity.role == UserRole.ADMIN:
            return true()
        return Appointment.patient_id == identity.id

    def _doctor_scope(self, identity: Identity) -> ColumnElement:
        """Appointments booked with the caller.

        Matches on the linked doctor record. The booked name only matches
        rows with no doctor record at all, such as legacy rows or rows whose
        doctor was deleted.
        """
        clauses = []
        doctor = self.directory.get_doctor_for_user(identity.id)
        if doctor is not None:
            clauses.append(Appointment.doctor_id == doctor.id)
        if settings.DOCTOR_NAME_FALLBACK:
            clauses.append(and_(
                Appointment.doctor_id.is_(None),
                Appointment.doctor_name == identity.name,
            ))
        return or_(*clauses) if clauses else false()

    @staticmethod
    def _with_email(appointment: Appointment, email: Optional[str]) -> AppointmentWithPatient:
        result = AppointmentWithPatient.model_validate(appointment)
        result.patient_email = email
        return result

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to commit appointment change: {str(e)}")
            raise InternalError("Failed to save appointment") from e
