from typing import List

from fastapi import APIRouter, Depends, status

from ...api.deps import get_current_identity, get_directory_service, get_scheduling_service
from ...core.security import Identity
from ...schemas.appointment import AppointmentWithPatient
from ...schemas.auth import UserResponse
from ...schemas.doctor import DoctorCreate, DoctorResponse, DoctorUpdate
from ...services.directory_service import DirectoryService
from ...services.scheduling_service import SchedulingService

router = APIRouter(prefix="/admin", tags=["Admin"])

@router.get("/users", response_model=List[UserResponse])
async def list_users(
    identity: Identity = Depends(get_current_identity),
    service: DirectoryService = Depends(get_directory_service)
):
    """List all users (admin only)."""
    return service.list_users(identity)

@router.get("/appointments", response_model=List[AppointmentWithPatient])
async def list_all_appointments(
    identity: Identity = Depends(get_current_identity),
    service: SchedulingService = Depends(get_scheduling_service)
):
    """List every appointment with the patient's email (admin only)."""
    return service.list_all(identity)

@router.get("/doctors", response_model=List[DoctorResponse])
async def list_doctors(
    identity: Identity = Depends(get_current_identity),
    service: DirectoryService = Depends(get_directory_service)
):
    return service.list_doctors(identity)

@router.post("/doctors", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    data: DoctorCreate,
    identity: Identity = Depends(get_current_identity),
    service: DirectoryService = Depends(get_directory_service)
):
    return service.upsert_doctor(identity, None, data.model_dump())

@router.put("/doctors/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: int,
    data: DoctorUpdate,
    identity: Identity = Depends(get_current_identity),
    service: DirectoryService = Depends(get_directory_service)
):
    return service.upsert_doctor(identity, doctor_id, data.model_dump(exclude_unset=True))

@router.delete("/doctors/{doctor_id}")
async def delete_doctor(
    doctor_id: int,
    identity: Identity = Depends(get_current_identity),
    service: DirectoryService = Depends(get_directory_service)
):
    service.delete_doctor(identity, doctor_id)
    return {"message": "Doctor deleted successfully"}
