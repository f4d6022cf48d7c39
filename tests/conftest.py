import os

# Must be set before the application settings are imported
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASSWORD", "AdminPassword123")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medschedule.main import app
from medschedule.core.config import settings
from medschedule.core.database import Base, get_db, get_redis
from medschedule.core.security import Identity, UserRole
from medschedule.models.doctor import Doctor
from medschedule.models.user import User
from medschedule.realtime.notifier import ChangeNotifier

# Test database shared with the application's startup hooks
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


class FakeRedis:
    """Dict-backed double for the Redis commands used by the rate limiter."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, seconds, value):
        self.data[key] = str(value)
        return True

    def incr(self, key):
        self.data[key] = str(int(self.data.get(key, 0)) + 1)
        return int(self.data[key])


class RecordingNotifier(ChangeNotifier):
    """Counts broadcast requests instead of sending them."""

    def __init__(self):
        super().__init__()
        self.notifications = 0

    def notify(self):
        self.notifications += 1


@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client(test_db):
    redis_double = FakeRedis()
    app.dependency_overrides[get_redis] = lambda: redis_double
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_redis, None)

@pytest.fixture
def register(client):
    """Register a patient or doctor and return (headers, user)."""
    def _register(name, email, password="Password123", doctor_code=None, specialty=None):
        if doctor_code:
            response = client.post("/api/v1/auth/register/doctor", json={
                "name": name,
                "email": email,
                "password": password,
                "doctor_code": doctor_code,
                "specialty": specialty,
            })
        else:
            response = client.post("/api/v1/auth/register", json={
                "name": name,
                "email": email,
                "password": password,
            })
        assert response.status_code == 201, response.text
        data = response.json()
        return {"Authorization": f"Bearer {data['access_token']}"}, data["user"]

    return _register

@pytest.fixture
def admin_headers(client):
    response = client.post("/api/v1/auth/login", json={
        "email": settings.ADMIN_EMAIL,
        "password": settings.ADMIN_PASSWORD,
    })
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


# Service-level fixtures: private in-memory database per test

@pytest.fixture
def db_session():
    memory_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(memory_engine)
    session = sessionmaker(bind=memory_engine, autoflush=False)()

    yield session

    session.close()
    Base.metadata.drop_all(memory_engine)

@pytest.fixture
def notifier():
    return RecordingNotifier()

@pytest.fixture
def people(db_session):
    """Two patients, two linked doctors, one unavailable doctor and an admin."""
    def add_user(name, email, role):
        user = User(name=name, email=email, password_hash="not-a-real-hash", role=role)
        db_session.add(user)
        db_session.flush()
        return user

    def identity(user):
        return Identity(id=user.id, role=user.role, name=user.name, email=user.email)

    patient = add_user("Pat Patient", "pat@example.com", UserRole.PATIENT)
    other_patient = add_user("Olive Other", "olive@example.com", UserRole.PATIENT)
    lee_user = add_user("Dr. Lee", "lee@example.com", UserRole.DOCTOR)
    brown_user = add_user("Dr. Brown", "brown@example.com", UserRole.DOCTOR)
    admin = add_user("Ada Admin", "ada@example.com", UserRole.ADMIN)

    lee = Doctor(user_id=lee_user.id, doctor_code="DOC002", name="Dr. Lee",
                 specialty="Cardiology", available=True)
    brown = Doctor(user_id=brown_user.id, doctor_code="DOC003", name="Dr. Brown",
                   specialty="Dermatology", available=True)
    away = Doctor(doctor_code="DOC004", name="Dr. Davis",
                  specialty="Orthopedics", available=False)
    db_session.add_all([lee, brown, away])
    db_session.commit()

    return SimpleNamespace(
        patient=identity(patient),
        other_patient=identity(other_patient),
        lee=identity(lee_user),
        brown=identity(brown_user),
        admin=identity(admin),
        lee_doctor_id=lee.id,
        brown_doctor_id=brown.id,
        away_doctor_id=away.id,
    )
