from typing import List

from fastapi import APIRouter, Depends

from ...api.deps import get_current_identity, get_directory_service, get_scheduling_service
from ...core.security import Identity
from ...schemas.appointment import AppointmentResponse, AppointmentWithPatient, StatusUpdate
from ...schemas.doctor import DoctorPublic
from ...services.directory_service import DirectoryService
from ...services.scheduling_service import SchedulingService

router = APIRouter(tags=["Doctors"])

@router.get("/doctors", response_model=List[DoctorPublic])
async def list_available_doctors(
    service: DirectoryService = Depends(get_directory_service)
):
    """Doctors currently accepting bookings. No authentication required."""
    return service.list_available_doctors()

@router.get("/doctor/appointments", response_model=List[AppointmentWithPatient])
async def list_doctor_appointments(
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    """Appointments booked with the current doctor."""
    return service.list_for_doctor(identity)

@router.put("/doctor/appointments/{appointment_id}/status", response_model=AppointmentResponse)
async def update_doctor_appointment_status(
    appointment_id: int,
    data: StatusUpdate,
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    """Confirm, complete or cancel an appointment booked with the current doctor."""
    return service.update_status_as_doctor(identity, appointment_id, data.status)
