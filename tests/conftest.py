import os
from datetime import date, timedelta

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('ANTHROPIC_API_KEY', 'test-anthropic-key')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import backend.models  # noqa: E402,F401
from backend.auth import jwt_handler  # noqa: E402
from backend.auth.dependencies import CurrentUser  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models import Doctor, Patient, Treatment, TreatmentCategory, Weekday, WeeklySchedule  # noqa: E402


def next_weekday(weekday: Weekday, after: date | None = None) -> date:
    start = (after or date.today()) + timedelta(days=1)
    offset = (list(Weekday).index(weekday) - start.weekday()) % 7
    return start + timedelta(days=offset)


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def doctor(db) -> Doctor:
    record = Doctor(
        name='Dr. Ada Molar',
        email='ada@clinic.test',
        hashed_password='not-a-bcrypt-hash',
        specialization='General Dentistry',
        experience=12,
        fees=80.0,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def patient(db) -> Patient:
    record = Patient(
        name='Pat Smile',
        email='pat@example.test',
        hashed_password='not-a-bcrypt-hash',
        phone='+1 555 0100',
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def treatment(db, doctor) -> Treatment:
    record = Treatment(
        doctor_id=doctor.id,
        name='Composite Filling',
        category=TreatmentCategory.FILLING,
        description='tooth-coloured filling',
        duration=45,
        price=120.0,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def open_week(db, doctor) -> list[WeeklySchedule]:
    """Every weekday open with no off slots."""
    schedules = [WeeklySchedule(doctor_id=doctor.id, day=day, is_off=False, off_slots=[]) for day in Weekday]
    db.add_all(schedules)
    db.commit()
    return schedules


@pytest.fixture
def doctor_user(doctor) -> CurrentUser:
    return CurrentUser(id=doctor.id, role=jwt_handler.ROLE_DOCTOR, record=doctor)


@pytest.fixture
def patient_user(patient) -> CurrentUser:
    return CurrentUser(id=patient.id, role=jwt_handler.ROLE_PATIENT, record=patient)


@pytest.fixture
def upcoming():
    """Factory returning the next date after today (or ``after``) falling on a weekday."""
    return next_weekday
