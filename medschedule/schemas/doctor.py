from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DoctorCreate(BaseModel):
    doctor_code: Optional[str] = Field(default=None, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    specialty: str = Field(..., min_length=1, max_length=255)
    available: bool = True


class DoctorUpdate(BaseModel):
    doctor_code: Optional[str] = Field(default=None, max_length=20)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    specialty: Optional[str] = Field(default=None, min_length=1, max_length=255)
    available: Optional[bool] = None


class DoctorPublic(BaseModel):
    """Shape offered to the booking form."""

    id: int
    name: str
    specialty: str
    available: bool

    model_config = ConfigDict(from_attributes=True)


class DoctorResponse(DoctorPublic):
    doctor_code: Optional[str] = None
    user_id: Optional[int] = None
