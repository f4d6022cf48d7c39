"""
Authentication schemas.

Request and response models for registration, login and the current user.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ..core.security import UserRole


class UserRegister(BaseModel):
    """Patient self-registration."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., description="At least MIN_PASSWORD_LENGTH characters")
    role: UserRole = Field(default=UserRole.PATIENT, description="Only 'patient' is accepted here")


class DoctorRegister(BaseModel):
    """Doctor registration, verified against the issued doctor codes."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    doctor_code: str = Field(..., min_length=1, max_length=20, description="Issued doctor id, e.g. DOC001")
    specialty: str = Field(..., min_length=1, max_length=255)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
