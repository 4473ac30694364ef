import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.auth import jwt_handler
from backend.auth.dependencies import get_current_user, require_doctor
from backend.auth.passwords import hash_password, verify_password
from backend.models import Doctor, Patient
from backend.routes.auth_routes import (
    DoctorRegisterRequest,
    LoginRequest,
    PatientRegisterRequest,
    login,
    me,
    register_doctor,
    register_patient,
)


class _Credentials:
    def __init__(self, token: str) -> None:
        self.credentials = token


def test_register_request_normalizes_name_and_email() -> None:
    request = PatientRegisterRequest(name='  Pat Smile ', email=' PAT@Example.TEST ', password='secret1')

    assert request.name == 'Pat Smile'
    assert request.email == 'pat@example.test'


@pytest.mark.parametrize(
    'payload',
    [
        {'name': 'P', 'email': 'pat@example.test', 'password': 'secret1'},
        {'name': 'Pat', 'email': 'not-an-email', 'password': 'secret1'},
        {'name': 'Pat', 'email': 'pat@example.test', 'password': '123'},
    ],
)
def test_register_request_rejects_invalid_payloads(payload: dict) -> None:
    with pytest.raises(ValidationError):
        PatientRegisterRequest(**payload)


def test_passwords_are_hashed_with_bcrypt() -> None:
    hashed = hash_password('secret1')

    assert hashed != 'secret1'
    assert verify_password('secret1', hashed) is True
    assert verify_password('wrong', hashed) is False
    assert verify_password('secret1', 'plain-text') is False
    assert verify_password('secret1', None) is False


def test_register_patient_returns_token_for_new_patient(db) -> None:
    response = register_patient(
        PatientRegisterRequest(name='Pat Smile', email='pat@example.test', password='secret1'),
        db=db,
    )

    payload = jwt_handler.decode_access_token(response.token)
    stored = db.query(Patient).filter(Patient.email == 'pat@example.test').one()
    assert response.role == 'patient'
    assert payload['sub'] == str(stored.id)
    assert payload['role'] == 'patient'
    assert stored.hashed_password != 'secret1'


def test_register_doctor_rejects_email_used_by_patient(db, patient) -> None:
    with pytest.raises(HTTPException) as exception_info:
        register_doctor(
            DoctorRegisterRequest(
                name='Dr. Who',
                email=patient.email,
                password='secret1',
                specialization='Orthodontics',
            ),
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert db.query(Doctor).count() == 0


def test_login_finds_doctor_and_issues_doctor_token(db) -> None:
    register_doctor(
        DoctorRegisterRequest(name='Dr. Ada', email='ada@clinic.test', password='secret1', specialization='Surgery'),
        db=db,
    )

    response = login(LoginRequest(email=' ADA@clinic.test ', password='secret1'), db=db)

    assert response.role == 'doctor'
    assert response.user.email == 'ada@clinic.test'


def test_login_rejects_wrong_password(db) -> None:
    register_patient(
        PatientRegisterRequest(name='Pat Smile', email='pat@example.test', password='secret1'),
        db=db,
    )

    with pytest.raises(HTTPException) as exception_info:
        login(LoginRequest(email='pat@example.test', password='wrong-password'), db=db)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid credentials'


def test_get_current_user_resolves_token_to_record(db, doctor) -> None:
    token = jwt_handler.create_access_token(subject=doctor.id, role=jwt_handler.ROLE_DOCTOR)

    current_user = get_current_user(credentials=_Credentials(token), db=db)

    assert current_user.id == doctor.id
    assert current_user.is_doctor is True
    assert me(current_user=current_user).user.name == doctor.name


@pytest.mark.parametrize(
    'token',
    [
        'garbage',
        jwt_handler.create_access_token(subject=999, role=jwt_handler.ROLE_PATIENT),
        jwt_handler.create_access_token(subject=1, role='admin'),
        jwt_handler.create_access_token(subject=1, role=jwt_handler.ROLE_DOCTOR, expires_minutes=-1),
    ],
)
def test_get_current_user_rejects_bad_tokens(db, token: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=_Credentials(token), db=db)

    assert exception_info.value.status_code == 401


def test_require_doctor_rejects_patient(patient_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        require_doctor(current_user=patient_user)

    assert exception_info.value.status_code == 403
