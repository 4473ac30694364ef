import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.auth.dependencies import CurrentUser, get_current_user, require_patient
from backend.database import database_unavailable, ensure_database_ready, get_db
from backend.models import ALLOWED_STATUS_TRANSITIONS, Appointment, AppointmentStatus, Doctor, Treatment
from backend.schemas import AppointmentResponse
from backend.services.availability import SLOT_CATALOG, is_catalog_slot, is_slot_offered

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_NOTES_LENGTH = 600
TERMINAL_STATUSES = {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}

OptionalDate = date | None


def _validate_time_slot(value: str) -> str:
    normalized = value.strip()
    if not is_catalog_slot(normalized):
        raise ValueError(f'Time slot must be one of: {", ".join(SLOT_CATALOG)}.')
    return normalized


def _validate_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    treatment_id: int
    date: date
    time_slot: str
    notes: str | None = None

    @field_validator('time_slot')
    @classmethod
    def validate_time_slot(cls, value: str) -> str:
        return _validate_time_slot(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class UpdateAppointmentRequest(BaseModel):
    date: OptionalDate = None
    time_slot: str | None = None
    status: AppointmentStatus | None = None
    notes: str | None = None

    @field_validator('time_slot')
    @classmethod
    def validate_time_slot(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_time_slot(value)

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


def _slot_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail='This time slot is already booked.',
    )


def _ensure_slot_offered(db: Session, doctor_id: int, day: date, time_slot: str) -> None:
    if day < date.today():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments must be scheduled in the future.',
        )
    if not is_slot_offered(db, doctor_id, day, time_slot):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='The doctor is not available at this time.',
        )


def _load_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).options(
        selectinload(Appointment.patient),
        selectinload(Appointment.doctor),
        selectinload(Appointment.treatment),
    ).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found')
    return appointment


def _is_participant(appointment: Appointment, current_user: CurrentUser) -> bool:
    if current_user.is_doctor:
        return appointment.doctor_id == current_user.id
    return appointment.patient_id == current_user.id


def validate_status_transition(current: AppointmentStatus, requested: AppointmentStatus) -> None:
    current = AppointmentStatus(current)
    if requested == current:
        return
    if requested not in ALLOWED_STATUS_TRANSITIONS[current]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Cannot change appointment status from {current.value} to {requested.value}.',
        )


@router.post('/', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: CurrentUser = Depends(require_patient),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        doctor = db.query(Doctor).filter(Doctor.id == data.doctor_id).first()
        if doctor is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor not found')

        treatment = db.query(Treatment).filter(
            Treatment.id == data.treatment_id,
            Treatment.doctor_id == data.doctor_id,
        ).first()
        if treatment is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Treatment is not offered by this doctor.',
            )

        _ensure_slot_offered(db, data.doctor_id, data.date, data.time_slot)

        appointment = Appointment(
            patient_id=current_user.id,
            doctor_id=data.doctor_id,
            treatment_id=data.treatment_id,
            date=data.date,
            time_slot=data.time_slot,
            notes=data.notes,
            status=AppointmentStatus.PENDING,
        )
        db.add(appointment)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.info(
            'Rejected double booking for doctor %s on %s %s',
            data.doctor_id, data.date.isoformat(), data.time_slot,
        )
        raise _slot_taken() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return _load_appointment(db, appointment.id)


@router.get('/', response_model=list[AppointmentResponse])
def list_appointments(current_user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        query = db.query(Appointment).options(
            selectinload(Appointment.patient),
            selectinload(Appointment.doctor),
            selectinload(Appointment.treatment),
        )
        if current_user.is_doctor:
            query = query.filter(Appointment.doctor_id == current_user.id)
        else:
            query = query.filter(Appointment.patient_id == current_user.id)

        return query.order_by(Appointment.date.desc(), Appointment.time_slot.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointment = _load_appointment(db, appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    if not _is_participant(appointment, current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Not authorized to view this appointment')
    return appointment


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = _load_appointment(db, appointment_id)
        if not _is_participant(appointment, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Not authorized to update this appointment',
            )

        if data.status is not None:
            if not current_user.is_doctor:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Only the doctor can change the appointment status.',
                )
            validate_status_transition(appointment.status, data.status)

        new_date = data.date or appointment.date
        new_time_slot = data.time_slot or appointment.time_slot
        if (new_date, new_time_slot) != (appointment.date, appointment.time_slot):
            if AppointmentStatus(appointment.status) in TERMINAL_STATUSES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail='Completed or cancelled appointments cannot be rescheduled.',
                )
            _ensure_slot_offered(db, appointment.doctor_id, new_date, new_time_slot)
            appointment.date = new_date
            appointment.time_slot = new_time_slot

        if data.status is not None:
            appointment.status = data.status
        if 'notes' in data.model_fields_set:
            appointment.notes = data.notes

        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _slot_taken() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Appointment %s updated by %s %s', appointment_id, current_user.role, current_user.id)
    return _load_appointment(db, appointment_id)


@router.delete('/{appointment_id}')
def delete_appointment(
    appointment_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointment = _load_appointment(db, appointment_id)
        if not _is_participant(appointment, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Not authorized to delete this appointment',
            )

        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'success': True, 'message': 'Appointment deleted successfully'}
