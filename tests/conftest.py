import itertools
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from medcrm import cache
from medcrm.database import get_db, init_db
from medcrm.models.all_models import (
    Appointment, AppointmentStatus, Base, Department, Doctor, Patient, Staff, User, UserRole,
)
from medcrm.utils.auth import create_access_token, hash_password


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False)()
    yield session
    session.close()


class Factory:
    """Builds users with linked profile rows; passwords are only hashed when asked for."""

    def __init__(self, db):
        self.db = db
        self._seq = itertools.count(1)

    def _save(self, *rows):
        self.db.add_all(rows)
        self.db.commit()
        return rows[-1]

    def user(self, role, name=None, password=None, **fields):
        n = next(self._seq)
        return self._save(User(
            name=name or f"{role.value.title()} {n}",
            email=f"{role.value}{n}@example.com",
            password=hash_password(password) if password else None,
            role=role,
            **fields,
        ))

    def admin(self, **fields):
        return self.user(UserRole.ADMIN, **fields)

    def department(self, name=None, **fields):
        return self._save(Department(name=name or f"Department {next(self._seq)}", **fields))

    def patient(self, name=None, **fields):
        account = self.user(UserRole.PATIENT, name=name)
        return self._save(Patient(user_id=account.id, **fields))

    def doctor(self, name=None, department=None, **fields):
        account = self.user(UserRole.DOCTOR, name=name)
        fields.setdefault("license_number", f"LIC{next(self._seq):05d}")
        fields.setdefault("specialty", "General Practice")
        return self._save(Doctor(
            user_id=account.id,
            department_id=department.id if department else None,
            **fields,
        ))

    def staff(self, name=None, department=None, **fields):
        account = self.user(UserRole.STAFF, name=name)
        fields.setdefault("employee_id", f"EMP{next(self._seq):05d}")
        fields.setdefault("position", "Nurse")
        fields.setdefault("hire_date", date(2023, 1, 9))
        return self._save(Staff(
            user_id=account.id,
            department_id=department.id if department else None,
            **fields,
        ))

    def appointment(self, patient, doctor, day, time, status=AppointmentStatus.SCHEDULED, **fields):
        fields.setdefault("type", "consultation")
        return self._save(Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=day,
            appointment_time=time,
            status=status,
            **fields,
        ))


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def revalidated():
    paths = []
    listener = cache.on_revalidate(paths.append)
    yield paths
    cache.remove_listener(listener)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user_id):
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}
    return headers
