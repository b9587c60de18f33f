import os
from datetime import date, timedelta
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_backend.auth.jwt_handler import Identity  # noqa: E402
from clinic_backend.core import timeutils  # noqa: E402
from clinic_backend.database import Base, build_engine  # noqa: E402
from clinic_backend.models.appointment import STATUS_SCHEDULED, Appointment  # noqa: E402
from clinic_backend.models.audit_log import AuditLog  # noqa: E402, F401
from clinic_backend.models.doctor import Doctor  # noqa: E402
from clinic_backend.models.patient import Patient  # noqa: E402
from clinic_backend.models.schedule import WeeklySchedule  # noqa: E402
from clinic_backend.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, User  # noqa: E402


class ClinicFactory:
    """Inserts directory, schedule and appointment rows for a test."""

    def __init__(self, db):
        self.db = db
        self._sequence = count(1)

    def user(self, role: str, full_name: str = 'Test User', is_active: bool = True) -> User:
        user = User(
            email=f'{role}{next(self._sequence)}@clinic.test',
            full_name=full_name,
            hashed_password='',
            role=role,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def patient(self, full_name: str = 'Maria Lopez') -> tuple[Patient, Identity]:
        user = self.user(ROLE_PATIENT, full_name=full_name)
        patient = Patient(user_id=user.id)
        self.db.add(patient)
        self.db.commit()
        self.db.refresh(patient)
        return patient, Identity(user_id=user.id, role=ROLE_PATIENT, email=user.email)

    def doctor(
        self,
        full_name: str = 'Dr. Ana Ruiz',
        specialization: str = 'Cardiology',
        is_available: bool = True,
        is_active: bool = True,
    ) -> tuple[Doctor, Identity]:
        user = self.user(ROLE_DOCTOR, full_name=full_name, is_active=is_active)
        doctor = Doctor(user_id=user.id, specialization=specialization, is_available=is_available)
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)
        return doctor, Identity(user_id=user.id, role=ROLE_DOCTOR, email=user.email)

    def admin(self) -> Identity:
        user = self.user(ROLE_ADMIN, full_name='Clinic Admin')
        return Identity(user_id=user.id, role=ROLE_ADMIN, email=user.email)

    def schedule(
        self,
        doctor: Doctor,
        day_of_week: int,
        start: str = '08:00',
        end: str = '17:00',
        is_active: bool = True,
    ) -> WeeklySchedule:
        entry = WeeklySchedule(
            doctor_id=doctor.id,
            day_of_week=day_of_week,
            start_time=timeutils.parse_time(start),
            end_time=timeutils.parse_time(end),
            is_active=is_active,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def appointment(
        self,
        patient: Patient,
        doctor: Doctor,
        appointment_date: date,
        appointment_time: str,
        duration_minutes: int = 30,
        status: str = STATUS_SCHEDULED,
    ) -> Appointment:
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            appointment_date=appointment_date,
            appointment_time=timeutils.parse_time(appointment_time),
            duration_minutes=duration_minutes,
            status=status,
            appointment_type='routine',
            reason='Routine check-up visit',
            reminder_sent=False,
        )
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """A file-backed engine built the way the application builds its own."""
    engine = build_engine(f'sqlite:///{tmp_path / "clinic.db"}', timeout_seconds=10)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clinic(db) -> ClinicFactory:
    return ClinicFactory(db)


@pytest.fixture
def make_clinic():
    return ClinicFactory


@pytest.fixture
def upcoming_monday() -> date:
    today = timeutils.utc_today()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


@pytest.fixture
def monday_doctor(clinic, upcoming_monday):
    """A bookable doctor who works Mondays 08:00-17:00, plus a patient."""
    doctor, doctor_identity = clinic.doctor()
    clinic.schedule(doctor, day_of_week=1, start='08:00', end='17:00')
    patient, patient_identity = clinic.patient()
    return doctor, doctor_identity, patient, patient_identity
