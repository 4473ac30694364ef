from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.auth.dependencies import CurrentUser, get_current_user, require_doctor, require_patient
from backend.database import database_unavailable, get_db
from backend.models import Appointment, Patient
from backend.schemas import AppointmentResponse, PatientResponse

router = APIRouter(tags=['patients'])


class PatientListItem(PatientResponse):
    appointment_count: int = 0


class PatientDetailResponse(PatientResponse):
    appointments: list[AppointmentResponse] = []


class PatientUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2)
    phone: str | None = None
    address: str | None = Field(default=None, min_length=5)
    profile_pic: str | None = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        digits = [character for character in normalized if character.isdigit()]
        if len(digits) < 7 or any(character not in '+-() 0123456789' for character in normalized):
            raise ValueError('Please provide a valid phone number')
        return normalized

    @field_validator('profile_pic')
    @classmethod
    def validate_profile_pic(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized.startswith(('http://', 'https://')):
            raise ValueError('Profile picture must be a valid URL')
        return normalized


@router.get('/', response_model=list[PatientListItem])
def list_patients(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    del current_user

    try:
        appointment_counts = dict(
            db.query(Appointment.patient_id, func.count(Appointment.id)).group_by(Appointment.patient_id).all()
        )
        patients = db.query(Patient).order_by(Patient.created_at.desc(), Patient.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        PatientListItem(
            **PatientResponse.model_validate(patient).model_dump(),
            appointment_count=appointment_counts.get(patient.id, 0),
        )
        for patient in patients
    ]


@router.get('/{patient_id}', response_model=PatientDetailResponse)
def get_patient(
    patient_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.is_patient and current_user.id != patient_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Not authorized to access this patient data',
        )

    try:
        patient = db.query(Patient).filter(Patient.id == patient_id).first()
        if patient is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Patient not found')

        appointments = db.query(Appointment).options(
            selectinload(Appointment.doctor),
            selectinload(Appointment.treatment),
        ).filter(Appointment.patient_id == patient_id).order_by(Appointment.date.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return PatientDetailResponse(
        **PatientResponse.model_validate(patient).model_dump(),
        appointments=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
    )


@router.put('/{patient_id}', response_model=PatientResponse)
def update_patient(
    patient_id: int,
    data: PatientUpdateRequest,
    current_user: CurrentUser = Depends(require_patient),
    db: Session = Depends(get_db),
):
    if current_user.id != patient_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Not authorized to update this profile',
        )

    patient = current_user.record
    for field_name, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(patient, field_name, value.strip() if isinstance(value, str) else value)

    try:
        db.commit()
        db.refresh(patient)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return patient
