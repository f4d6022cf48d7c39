from typing import List

from fastapi import APIRouter, Depends, status

from ...api.deps import get_current_identity, get_scheduling_service
from ...core.security import Identity
from ...schemas.appointment import (
    AppointmentCreate, AppointmentResponse, AppointmentStats, AppointmentUpdate,
    AppointmentWithPatient, StatusUpdate
)
from ...services.scheduling_service import SchedulingService

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    data: AppointmentCreate,
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    """Book an appointment for the current patient."""
    return service.create_appointment(identity, data)

@router.get("", response_model=List[AppointmentResponse])
async def list_my_appointments(
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    """List the current patient's appointments, most recent first."""
    return service.list_for_patient(identity)

@router.get("/stats", response_model=AppointmentStats)
async def appointment_stats(
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    return service.stats(identity)

@router.get("/{appointment_id}", response_model=AppointmentWithPatient)
async def get_appointment(
    appointment_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    return service.get_appointment(identity, appointment_id)

@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    data: AppointmentUpdate,
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    """Change the date, time or type of an appointment."""
    return service.update_details(identity, appointment_id, data)

@router.put("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    data: StatusUpdate,
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    return service.update_status(identity, appointment_id, data.status)

@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    service.delete_appointment(identity, appointment_id)
    return {"message": "Appointment deleted successfully"}
