from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
import logging

from ..core.config import settings
from ..core.exceptions import ConflictError, ForbiddenError, UnauthenticatedError, ValidationError
from ..core.security import (
    verify_password, get_password_hash, create_token_for_user, UserRole
)
from ..models.doctor import Doctor
from ..models.user import User
from ..schemas.auth import DoctorRegister, TokenResponse, UserLogin, UserRegister, UserResponse
from ..stores.directory_store import DirectoryStore

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.directory = DirectoryStore(db)

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new patient."""
        if user_data.role != UserRole.PATIENT:
            raise ForbiddenError("Only patient accounts can be self-registered")

        self._check_password(user_data.password)
        self._check_email_free(user_data.email)

        new_user = User(
            name=user_data.name.strip(),
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            role=UserRole.PATIENT
        )
        self.directory.add_user(new_user)
        self._commit()
        self.db.refresh(new_user)

        logger.info(f"Registered patient {new_user.id}")
        return new_user

    def register_doctor(self, doctor_data: DoctorRegister) -> User:
        """Register a doctor and link it to its directory record.

        The doctor code must be one of the issued codes. An unlinked record
        with the same code, or else with the same name and specialty, is
        claimed; otherwise a new record is created.
        """
        code = doctor_data.doctor_code.strip()
        if code not in settings.VALID_DOCTOR_CODES:
            raise ValidationError(
                "Invalid Doctor ID. Please contact administration.", field="doctor_code"
            )

        self._check_password(doctor_data.password)
        self._check_email_free(doctor_data.email)

        doctor = self.directory.get_doctor_by_code(code)
        if doctor is not None and doctor.user_id is not None:
            raise ConflictError("Doctor ID already registered", field="doctor_code")

        name = doctor_data.name.strip()
        specialty = doctor_data.specialty.strip()
        if doctor is None:
            doctor = self.directory.find_unlinked_doctor(name, specialty)

        new_user = User(
            name=name,
            email=doctor_data.email,
            password_hash=get_password_hash(doctor_data.password),
            role=UserRole.DOCTOR
        )
        self.directory.add_user(new_user)

        if doctor is None:
            doctor = self.directory.add_doctor(
                Doctor(name=name, specialty=specialty, available=True)
            )
        doctor.user_id = new_user.id
        doctor.doctor_code = code

        self._commit()
        self.db.refresh(new_user)

        logger.info(f"Registered doctor {new_user.id} as {code} (directory record {doctor.id})")
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return an access token."""
        user = self.directory.get_user_by_email(login_data.email)

        if not user or not verify_password(login_data.password, user.password_hash):
            logger.info(f"Failed login for {login_data.email}")
            raise UnauthenticatedError("Invalid email or password")

        return self.issue_token(user)

    def issue_token(self, user: User) -> TokenResponse:
        tokens = create_token_for_user(user.id, user.email, user.name, user.role)
        return TokenResponse(
            access_token=tokens.access_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.model_validate(user)
        )

    def ensure_admin(self, email: str, password: str, name: Optional[str] = None) -> User:
        """Create the bootstrap admin account if it does not exist yet."""
        user = self.directory.get_user_by_email(email)
        if user:
            if user.role != UserRole.ADMIN:
                logger.warning(f"Bootstrap admin email {email} belongs to a {user.role.value} account")
            return user

        user = User(
            name=name or settings.ADMIN_NAME,
            email=email,
            password_hash=get_password_hash(password),
            role=UserRole.ADMIN
        )
        self.directory.add_user(user)
        self._commit()
        self.db.refresh(user)

        logger.info(f"Created bootstrap admin {user.id}")
        return user

    def _check_password(self, password: str):
        if len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters",
                field="password"
            )

    def _check_email_free(self, email: str):
        if self.directory.get_user_by_email(email):
            raise ConflictError("Email already exists", field="email")

    def _commit(self):
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race on the unique email or doctor code
            self.db.rollback()
            raise ConflictError("Email or Doctor ID already registered") from e
