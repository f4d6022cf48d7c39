from datetime import date, datetime, time
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, true
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ..models.appointment import Appointment, AppointmentStatus
from ..models.user import User


class AppointmentStore:
    """Query layer over the appointments table.

    Every read and write takes a ``scope`` clause built by the caller from
    the verified identity, so ownership is part of the same statement that
    reads or mutates the row. Committing is left to the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def list(self, scope: Optional[ColumnElement] = None) -> List[Appointment]:
        return (
            self.db.query(Appointment)
            .filter(scope if scope is not None else true())
            .order_by(*self._newest_first())
            .all()
        )

    def list_with_patient_email(
        self, scope: Optional[ColumnElement] = None
    ) -> List[Tuple[Appointment, str]]:
        return (
            self.db.query(Appointment, User.email)
            .join(User, Appointment.patient_id == User.id)
            .filter(scope if scope is not None else true())
            .order_by(*self._newest_first())
            .all()
        )

    def get(self, appointment_id: int, scope: ColumnElement) -> Optional[Appointment]:
        return (
            self.db.query(Appointment)
            .filter(Appointment.id == appointment_id, scope)
            .first()
        )

    def get_with_patient_email(
        self, appointment_id: int, scope: ColumnElement
    ) -> Optional[Tuple[Appointment, str]]:
        return (
            self.db.query(Appointment, User.email)
            .join(User, Appointment.patient_id == User.id)
            .filter(Appointment.id == appointment_id, scope)
            .first()
        )

    def update_where(
        self,
        appointment_id: int,
        scope: ColumnElement,
        values: dict,
        criteria: Iterable[ColumnElement] = (),
    ) -> int:
        """Single conditional UPDATE; returns the number of rows changed."""
        values = dict(values, updated_at=datetime.utcnow())
        return (
            self.db.query(Appointment)
            .filter(Appointment.id == appointment_id, scope, *criteria)
            .update(values, synchronize_session=False)
        )

    def delete_where(self, appointment_id: int, scope: ColumnElement) -> int:
        return (
            self.db.query(Appointment)
            .filter(Appointment.id == appointment_id, scope)
            .delete(synchronize_session=False)
        )

    def slot_taken(
        self,
        doctor_id: int,
        appointment_date: date,
        appointment_time: time,
        exclude_id: Optional[int] = None,
    ) -> bool:
        query = self.db.query(Appointment.id).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.appointment_date == appointment_date,
            Appointment.appointment_time == appointment_time,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        if exclude_id is not None:
            query = query.filter(Appointment.id != exclude_id)
        return query.first() is not None

    def detach_doctor(self, doctor_id: int) -> int:
        """Drop the weak doctor reference; the name snapshot stays."""
        return (
            self.db.query(Appointment)
            .filter(Appointment.doctor_id == doctor_id)
            .update({"doctor_id": None}, synchronize_session=False)
        )

    def count_by_status(self, scope: Optional[ColumnElement] = None) -> dict:
        rows = (
            self.db.query(Appointment.status, func.count(Appointment.id))
            .filter(scope if scope is not None else true())
            .group_by(Appointment.status)
            .all()
        )
        return {status: count for status, count in rows}

    def count_distinct_doctors(self, scope: Optional[ColumnElement] = None) -> int:
        return (
            self.db.query(func.count(func.distinct(Appointment.doctor_name)))
            .filter(scope if scope is not None else true())
            .scalar()
        ) or 0

    @staticmethod
    def _newest_first():
        return (Appointment.appointment_date.desc(), Appointment.appointment_time.desc(), Appointment.id.desc())
