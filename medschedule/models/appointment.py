from datetime import datetime
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, Time, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base

class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Ownership; never reassigned after creation
    patient_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    patient_name = Column(String(255), nullable=False)

    # Weak reference plus a name snapshot taken at booking time
    doctor_id = Column(
        Integer,
        ForeignKey("doctors.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    doctor_name = Column(String(255), nullable=False, index=True)

    # Appointment details
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    appointment_type = Column(String(255), nullable=False)
    status = Column(
        SQLEnum(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )

    # Tracking; set in Python so consecutive updates get distinct values
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    patient = relationship("User", back_populates="appointments")

    __table_args__ = (
        Index("ix_appointments_doctor_slot", "doctor_id", "appointment_date", "appointment_time"),
    )

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, "
            f"doctor='{self.doctor_name}', date='{self.appointment_date}', status='{self.status}')>"
        )
