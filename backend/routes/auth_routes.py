import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.dependencies import CurrentUser, get_current_user
from backend.auth.passwords import hash_password, verify_password
from backend.database import database_unavailable, get_db
from backend.models import Doctor, Patient
from backend.schemas import DoctorResponse, PatientResponse, normalize_email

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class _RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2)
    email: str
    password: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Name must be at least 2 characters')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
        return value


class DoctorRegisterRequest(_RegisterRequest):
    specialization: str = Field(..., min_length=2)
    experience: int = Field(default=0, ge=0)
    fees: float = Field(default=0.0, ge=0)


class PatientRegisterRequest(_RegisterRequest):
    phone: str | None = None
    address: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.strip().lower()


class AuthResponse(BaseModel):
    user: DoctorResponse | PatientResponse
    token: str
    role: str


class MeResponse(BaseModel):
    user: DoctorResponse | PatientResponse
    role: str


def _email_taken(db: Session, email: str) -> bool:
    return (
        db.query(Doctor.id).filter(Doctor.email == email).first() is not None
        or db.query(Patient.id).filter(Patient.email == email).first() is not None
    )


def _serialize_user(record: Doctor | Patient, role: str) -> DoctorResponse | PatientResponse:
    if role == jwt_handler.ROLE_DOCTOR:
        return DoctorResponse.model_validate(record)
    return PatientResponse.model_validate(record)


@router.post('/register/doctor', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_doctor(data: DoctorRegisterRequest, db: Session = Depends(get_db)):
    try:
        if _email_taken(db, data.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Doctor already exists with this email',
            )

        doctor = Doctor(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            specialization=data.specialization.strip(),
            experience=data.experience,
            fees=data.fees,
        )
        db.add(doctor)
        db.commit()
        db.refresh(doctor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Registered doctor %s', doctor.id)
    token = jwt_handler.create_access_token(subject=doctor.id, role=jwt_handler.ROLE_DOCTOR)
    return AuthResponse(user=DoctorResponse.model_validate(doctor), token=token, role=jwt_handler.ROLE_DOCTOR)


@router.post('/register/patient', response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_patient(data: PatientRegisterRequest, db: Session = Depends(get_db)):
    try:
        if _email_taken(db, data.email):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Patient already exists with this email',
            )

        patient = Patient(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            phone=data.phone,
            address=data.address,
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Registered patient %s', patient.id)
    token = jwt_handler.create_access_token(subject=patient.id, role=jwt_handler.ROLE_PATIENT)
    return AuthResponse(user=PatientResponse.model_validate(patient), token=token, role=jwt_handler.ROLE_PATIENT)


@router.post('/login', response_model=AuthResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(Doctor).filter(Doctor.email == data.email).first()
        role = jwt_handler.ROLE_DOCTOR
        if user is None:
            user = db.query(Patient).filter(Patient.email == data.email).first()
            role = jwt_handler.ROLE_PATIENT
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if user is None or not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Invalid credentials')

    token = jwt_handler.create_access_token(subject=user.id, role=role)
    return AuthResponse(user=_serialize_user(user, role), token=token, role=role)


@router.get('/me', response_model=MeResponse)
def me(current_user: CurrentUser = Depends(get_current_user)):
    return MeResponse(user=_serialize_user(current_user.record, current_user.role), role=current_user.role)


@router.post('/logout')
def logout(current_user: CurrentUser = Depends(get_current_user)):
    del current_user
    return {'success': True, 'message': 'Logged out successfully'}
