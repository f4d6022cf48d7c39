"""
Appointment schemas.

Request fields are optional strings on purpose: presence and format are
checked by the scheduling service so that every failure is reported with the
same field-level ``ValidationError``. Any ``patient_id``/``patient_name`` a
client sends is ignored.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.appointment import AppointmentStatus


class AppointmentCreate(BaseModel):
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    appointment_date: Optional[str] = Field(default=None, description="ISO date, e.g. 2025-06-25")
    appointment_time: Optional[str] = Field(default=None, description="ISO time, e.g. 10:00")
    appointment_type: Optional[str] = None


class AppointmentUpdate(BaseModel):
    """Editable details; status is changed through its own endpoint."""

    date: Optional[str] = None
    time: Optional[str] = None
    type: Optional[str] = None


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    patient_name: str
    doctor_id: Optional[int] = None
    doctor_name: str
    appointment_date: date
    appointment_time: time
    appointment_type: str
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AppointmentWithPatient(AppointmentResponse):
    """Doctor and admin views carry the patient's contact email."""

    patient_email: Optional[str] = None


class AppointmentStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    distinct_doctors: int = 0
