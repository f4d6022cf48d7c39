import pytest

from medschedule.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ValidationError
)
from medschedule.models.appointment import Appointment
from medschedule.models.doctor import Doctor
from medschedule.models.user import User
from medschedule.schemas.appointment import AppointmentCreate
from medschedule.services.directory_service import DirectoryService, SAMPLE_DOCTORS
from medschedule.services.scheduling_service import SchedulingService


@pytest.fixture
def directory(db_session, notifier):
    return DirectoryService(db_session, notifier)


@pytest.fixture
def scheduling(db_session, notifier):
    return SchedulingService(db_session, notifier)


def book_with_lee(scheduling, people, identity=None):
    return scheduling.create_appointment(identity or people.patient, AppointmentCreate(
        doctor_id=people.lee_doctor_id,
        doctor_name="Dr. Lee",
        appointment_date="2025-06-25",
        appointment_time="10:00",
        appointment_type="General Checkup",
    ))


class TestDoctors:

    def test_available_doctors_exclude_unavailable(self, directory, people):
        names = [d.name for d in directory.list_available_doctors()]
        assert "Dr. Davis" not in names
        assert set(names) == {"Dr. Lee", "Dr. Brown"}

    def test_admin_lists_all_doctors(self, directory, people):
        assert len(directory.list_doctors(people.admin)) == 3

    def test_listing_all_requires_admin(self, directory, people):
        with pytest.raises(ForbiddenError):
            directory.list_doctors(people.lee)

    def test_create_doctor(self, directory, people, notifier):
        doctor = directory.upsert_doctor(people.admin, None, {
            "doctor_code": "DOC005", "name": "Dr. Kim", "specialty": "Neurology", "available": True,
        })
        assert doctor.id
        assert doctor.doctor_code == "DOC005"
        assert doctor.user_id is None
        assert notifier.notifications == 1

    def test_create_requires_name_and_specialty(self, directory, people):
        with pytest.raises(ValidationError) as exc_info:
            directory.upsert_doctor(people.admin, None, {"name": "Dr. Kim"})
        assert exc_info.value.field == "specialty"

    def test_duplicate_code_is_a_conflict(self, directory, people):
        with pytest.raises(ConflictError):
            directory.upsert_doctor(people.admin, None, {
                "doctor_code": "DOC002", "name": "Dr. Lee Jr.", "specialty": "Cardiology",
            })

    def test_update_doctor(self, directory, people):
        doctor = directory.upsert_doctor(people.admin, people.away_doctor_id, {"available": True})
        assert doctor.available is True
        assert doctor.name == "Dr. Davis"

    @pytest.mark.parametrize("field", ["name", "specialty"])
    def test_update_cannot_blank_required_field(self, directory, people, db_session, notifier, field):
        with pytest.raises(ValidationError) as exc_info:
            directory.upsert_doctor(people.admin, people.lee_doctor_id, {field: "   "})
        assert exc_info.value.field == field

        db_session.expire_all()
        doctor = db_session.get(Doctor, people.lee_doctor_id)
        assert (doctor.name, doctor.specialty) == ("Dr. Lee", "Cardiology")
        assert notifier.notifications == 0

    def test_update_can_keep_own_code(self, directory, people):
        doctor = directory.upsert_doctor(people.admin, people.lee_doctor_id, {
            "doctor_code": "DOC002", "specialty": "Cardiology & Vascular",
        })
        assert doctor.specialty == "Cardiology & Vascular"

    def test_update_unknown_doctor(self, directory, people):
        with pytest.raises(NotFoundError):
            directory.upsert_doctor(people.admin, 4242, {"available": False})

    def test_upsert_requires_admin(self, directory, people):
        with pytest.raises(ForbiddenError):
            directory.upsert_doctor(people.patient, None, {"name": "Dr. X", "specialty": "Y"})

    def test_deleted_doctor_history_stays_readable(self, directory, scheduling, people, db_session):
        """Appointments keep the booked doctor name after the doctor is removed."""
        appointment = book_with_lee(scheduling, people)

        directory.delete_doctor(people.admin, people.lee_doctor_id)

        assert db_session.get(Doctor, people.lee_doctor_id) is None
        rows = scheduling.list_for_patient(people.patient)
        assert [a.id for a in rows] == [appointment.id]
        assert rows[0].doctor_name == "Dr. Lee"
        assert rows[0].doctor_id is None
        assert scheduling.list_all(people.admin)[0].doctor_name == "Dr. Lee"

    def test_delete_unknown_doctor(self, directory, people):
        with pytest.raises(NotFoundError):
            directory.delete_doctor(people.admin, 4242)

    def test_seed_only_fills_empty_directory(self, db_session, notifier):
        directory = DirectoryService(db_session, notifier)
        assert directory.seed_doctors() == len(SAMPLE_DOCTORS)
        assert directory.seed_doctors() == 0
        assert db_session.query(Doctor).count() == len(SAMPLE_DOCTORS)


class TestUsers:

    def test_admin_lists_users(self, directory, people):
        assert len(directory.list_users(people.admin)) == 5

    def test_listing_users_requires_admin(self, directory, people):
        with pytest.raises(ForbiddenError):
            directory.list_users(people.patient)

    def test_deleting_patient_cascades_appointments(self, directory, scheduling, people, db_session, notifier):
        book_with_lee(scheduling, people)

        deleted = directory.delete_user(people.admin, people.patient.id)

        assert deleted.email == "pat@example.com"
        assert db_session.get(User, people.patient.id) is None
        assert db_session.query(Appointment).count() == 0
        assert notifier.notifications == 2

    def test_self_delete(self, directory, people, db_session):
        directory.delete_user(people.other_patient, people.other_patient.id)
        assert db_session.get(User, people.other_patient.id) is None

    def test_deleting_doctor_account_unlinks_record(self, directory, people, db_session):
        directory.delete_user(people.admin, people.lee.id)

        doctor = db_session.get(Doctor, people.lee_doctor_id)
        assert doctor is not None
        assert doctor.user_id is None

    def test_cannot_delete_someone_else(self, directory, people):
        with pytest.raises(ForbiddenError):
            directory.delete_user(people.patient, people.other_patient.id)

    def test_delete_unknown_user(self, directory, people):
        with pytest.raises(NotFoundError):
            directory.delete_user(people.admin, 4242)
