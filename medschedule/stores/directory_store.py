from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.doctor import Doctor
from ..models.user import User


class DirectoryStore:
    """Users and doctors. Read-mostly; committing is left to the caller."""

    def __init__(self, db: Session):
        self.db = db

    # Users
    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    def add_user(self, user: User) -> User:
        self.db.add(user)
        self.db.flush()
        return user

    def delete_user(self, user: User) -> None:
        self.db.delete(user)
        self.db.flush()

    # Doctors
    def get_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.id == doctor_id).first()

    def get_doctor_by_code(self, doctor_code: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.doctor_code == doctor_code).first()

    def get_doctor_for_user(self, user_id: int) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.user_id == user_id).first()

    def find_unlinked_doctor(self, name: str, specialty: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(
            Doctor.name == name,
            Doctor.specialty == specialty,
            Doctor.user_id.is_(None)
        ).first()

    def list_doctors(self, available_only: bool = False) -> List[Doctor]:
        query = self.db.query(Doctor)
        if available_only:
            query = query.filter(Doctor.available.is_(True))
        return query.order_by(Doctor.name, Doctor.id).all()

    def count_doctors(self) -> int:
        return self.db.query(Doctor).count()

    def add_doctor(self, doctor: Doctor) -> Doctor:
        self.db.add(doctor)
        self.db.flush()
        return doctor

    def delete_doctor(self, doctor: Doctor) -> None:
        self.db.delete(doctor)
        self.db.flush()
