from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, get_current_user_token, rate_limit_check
from ...services.auth_service import AuthService
from ...schemas.auth import (
    DoctorRegister, TokenResponse, UserLogin, UserRegister, UserResponse
)
from ...models.user import User

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new patient and log them in."""
    auth_service = AuthService(db)
    user = auth_service.register_user(user_data)
    return auth_service.issue_token(user)

@router.post("/register/doctor", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register_doctor(
    doctor_data: DoctorRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a doctor with an issued doctor id."""
    auth_service = AuthService(db)
    user = auth_service.register_doctor(doctor_data)
    return auth_service.issue_token(user)

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return an access token."""
    auth_service = AuthService(db)
    return auth_service.authenticate_user(login_data)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user information."""
    return UserResponse.model_validate(current_user)

@router.post("/verify-token")
async def verify_token_endpoint(
    token_payload = Depends(get_current_user_token)
):
    """Verify if token is valid."""
    return {
        "valid": True,
        "user_id": int(token_payload.sub),
        "email": token_payload.email,
        "name": token_payload.name,
        "role": token_payload.role,
        "expires": token_payload.exp
    }
