import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from backend.auth.dependencies import CurrentUser, require_doctor
from backend.database import database_unavailable, get_db
from backend.models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    Review,
    ScheduleOverride,
    Treatment,
    TreatmentCategory,
    WeeklySchedule,
    Weekday,
)
from backend.schemas import (
    AppointmentResponse,
    AvailabilityResponse,
    AvailabilityScheduleResponse,
    AvailableSlotResponse,
    DoctorResponse,
    ReviewResponse,
    ScheduleOverrideResponse,
    TreatmentResponse,
    WeeklyScheduleResponse,
    normalize_off_slots,
)
from backend.services.availability import InvalidInputError, get_schedule_and_availability, list_weekly_schedules

router = APIRouter(tags=['doctors'])

logger = logging.getLogger(__name__)

RECENT_REVIEWS_LIMIT = 10
TIME_OF_DAY_FORMAT = '%H:%M'


class DoctorListItem(DoctorResponse):
    appointment_count: int = 0
    review_count: int = 0


class DoctorDetailResponse(DoctorResponse):
    schedules: list[WeeklyScheduleResponse] = []
    treatments: list[TreatmentResponse] = []
    reviews: list[ReviewResponse] = []


class DoctorMeResponse(DoctorResponse):
    schedules: list[WeeklyScheduleResponse] = []


class DashboardStats(BaseModel):
    total_appointments: int
    total_patients: int
    average_rating: float
    today_appointments: int


class DashboardResponse(BaseModel):
    stats: DashboardStats
    today_appointments: list[AppointmentResponse]
    recent_reviews: list[ReviewResponse]


class ReviewStats(BaseModel):
    average_rating: float
    total_reviews: int


class DoctorReviewsResponse(BaseModel):
    reviews: list[ReviewResponse]
    stats: ReviewStats


class DoctorProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2)
    specialization: str | None = Field(default=None, min_length=2)
    experience: int | None = Field(default=None, ge=0)
    description: str | None = None
    fees: float | None = Field(default=None, ge=0)
    profile_pic: str | None = None

    @field_validator('profile_pic')
    @classmethod
    def validate_profile_pic(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized.startswith(('http://', 'https://')):
            raise ValueError('Profile picture must be a valid URL')
        return normalized


class WeeklyScheduleEntry(BaseModel):
    day: Weekday
    is_off: bool = False
    off_slots: list[str] = []

    @field_validator('day', mode='before')
    @classmethod
    def normalize_day(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator('off_slots')
    @classmethod
    def validate_off_slots(cls, value: list[str]) -> list[str]:
        return normalize_off_slots(value)


class ScheduleUpdateRequest(BaseModel):
    schedules: list[WeeklyScheduleEntry]

    @field_validator('schedules')
    @classmethod
    def validate_unique_days(cls, value: list[WeeklyScheduleEntry]) -> list[WeeklyScheduleEntry]:
        days = [entry.day for entry in value]
        if len(days) != len(set(days)):
            raise ValueError('Each weekday may appear only once.')
        return value


class ScheduleOverrideRequest(BaseModel):
    date: date
    is_off: bool = False
    start_time: str | None = None
    end_time: str | None = None
    off_slots: list[str] = []

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_of_day(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        normalized = value.strip()
        try:
            datetime.strptime(normalized, TIME_OF_DAY_FORMAT)
        except ValueError as exc:
            raise ValueError('Times must use the HH:MM format.') from exc
        return normalized

    @field_validator('off_slots')
    @classmethod
    def validate_off_slots(cls, value: list[str]) -> list[str]:
        return normalize_off_slots(value)


class TreatmentCreateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    category: TreatmentCategory
    description: str | None = None
    duration: int = Field(..., gt=0)
    price: float = Field(..., ge=0)


class TreatmentUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2)
    category: TreatmentCategory | None = None
    description: str | None = None
    duration: int | None = Field(default=None, gt=0)
    price: float | None = Field(default=None, ge=0)


def _get_doctor_or_404(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor not found')
    return doctor


def _average_rating(db: Session, doctor_id: int) -> tuple[float, int]:
    average, count = db.query(func.avg(Review.rating), func.count(Review.id)).filter(
        Review.doctor_id == doctor_id,
    ).one()
    return float(average or 0), int(count or 0)


@router.get('/', response_model=list[DoctorListItem])
def list_doctors(db: Session = Depends(get_db)):
    try:
        appointment_counts = dict(
            db.query(Appointment.doctor_id, func.count(Appointment.id)).group_by(Appointment.doctor_id).all()
        )
        review_counts = dict(
            db.query(Review.doctor_id, func.count(Review.id)).group_by(Review.doctor_id).all()
        )
        doctors = db.query(Doctor).order_by(Doctor.created_at.desc(), Doctor.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return [
        DoctorListItem(
            **DoctorResponse.model_validate(doctor).model_dump(),
            appointment_count=appointment_counts.get(doctor.id, 0),
            review_count=review_counts.get(doctor.id, 0),
        )
        for doctor in doctors
    ]


@router.get('/me', response_model=DoctorMeResponse)
def get_me(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    doctor = current_user.record
    schedules = list_weekly_schedules(db, doctor.id)
    return DoctorMeResponse(
        **DoctorResponse.model_validate(doctor).model_dump(),
        schedules=[WeeklyScheduleResponse.model_validate(schedule) for schedule in schedules],
    )


@router.get('/schedules', response_model=list[WeeklyScheduleResponse])
def get_schedules(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    try:
        return list_weekly_schedules(db, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/schedule', response_model=list[WeeklyScheduleResponse])
def set_schedule(
    data: ScheduleUpdateRequest,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        existing = {
            Weekday(schedule.day): schedule
            for schedule in db.query(WeeklySchedule).filter(WeeklySchedule.doctor_id == current_user.id).all()
        }

        updated: list[WeeklySchedule] = []
        for entry in data.schedules:
            schedule = existing.get(entry.day)
            if schedule is None:
                schedule = WeeklySchedule(doctor_id=current_user.id, day=entry.day)
                db.add(schedule)
            schedule.is_off = entry.is_off
            # An off day keeps no individual off slots.
            schedule.off_slots = [] if entry.is_off else list(entry.off_slots)
            updated.append(schedule)

        db.commit()
        for schedule in updated:
            db.refresh(schedule)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    logger.info('Doctor %s updated %d weekly schedule row(s)', current_user.id, len(updated))
    return updated


@router.get('/schedule-overrides', response_model=list[ScheduleOverrideResponse])
def get_schedule_overrides(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    try:
        return db.query(ScheduleOverride).filter(
            ScheduleOverride.doctor_id == current_user.id,
        ).order_by(ScheduleOverride.date.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/schedule-overrides', response_model=ScheduleOverrideResponse)
def set_schedule_override(
    data: ScheduleOverrideRequest,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        override = db.query(ScheduleOverride).filter(
            ScheduleOverride.doctor_id == current_user.id,
            ScheduleOverride.date == data.date,
        ).first()
        if override is None:
            override = ScheduleOverride(doctor_id=current_user.id, date=data.date)
            db.add(override)

        override.is_off = data.is_off
        override.start_time = data.start_time
        override.end_time = data.end_time
        override.off_slots = [] if data.is_off else list(data.off_slots)

        db.commit()
        db.refresh(override)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return override


@router.delete('/schedule-overrides/{override_id}')
def delete_schedule_override(
    override_id: int,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        override = db.query(ScheduleOverride).filter(
            ScheduleOverride.id == override_id,
            ScheduleOverride.doctor_id == current_user.id,
        ).first()
        if override is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Schedule override not found')

        db.delete(override)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'success': True, 'message': 'Schedule override deleted'}


@router.get('/dashboard', response_model=DashboardResponse)
def get_dashboard(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    doctor_id = current_user.id

    try:
        total_appointments = db.query(func.count(Appointment.id)).filter(Appointment.doctor_id == doctor_id).scalar()
        total_patients = db.query(func.count(func.distinct(Appointment.patient_id))).filter(
            Appointment.doctor_id == doctor_id,
        ).scalar()
        average_rating, _ = _average_rating(db, doctor_id)
        today_appointments = db.query(Appointment).options(
            selectinload(Appointment.patient),
            selectinload(Appointment.treatment),
        ).filter(
            Appointment.doctor_id == doctor_id,
            Appointment.date == date.today(),
        ).order_by(Appointment.time_slot.asc()).all()
        recent_reviews = db.query(Review).options(selectinload(Review.patient)).filter(
            Review.doctor_id == doctor_id,
        ).order_by(Review.created_at.desc(), Review.id.desc()).limit(RECENT_REVIEWS_LIMIT).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return DashboardResponse(
        stats=DashboardStats(
            total_appointments=total_appointments or 0,
            total_patients=total_patients or 0,
            average_rating=average_rating,
            today_appointments=len(today_appointments),
        ),
        today_appointments=[AppointmentResponse.model_validate(item) for item in today_appointments],
        recent_reviews=[ReviewResponse.model_validate(review) for review in recent_reviews],
    )


@router.get('/appointments', response_model=list[AppointmentResponse])
def get_doctor_appointments(
    appointment_status: AppointmentStatus | None = Query(default=None, alias='status'),
    appointment_date: date | None = Query(default=None, alias='date'),
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Appointment).options(
            selectinload(Appointment.patient),
            selectinload(Appointment.treatment),
        ).filter(Appointment.doctor_id == current_user.id)
        if appointment_status is not None:
            query = query.filter(Appointment.status == appointment_status)
        if appointment_date is not None:
            query = query.filter(Appointment.date == appointment_date)

        return query.order_by(Appointment.date.asc(), Appointment.time_slot.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/reviews', response_model=DoctorReviewsResponse)
def get_doctor_reviews(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    try:
        reviews = db.query(Review).options(selectinload(Review.patient)).filter(
            Review.doctor_id == current_user.id,
        ).order_by(Review.created_at.desc(), Review.id.desc()).all()
        average_rating, total_reviews = _average_rating(db, current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return DoctorReviewsResponse(
        reviews=[ReviewResponse.model_validate(review) for review in reviews],
        stats=ReviewStats(average_rating=average_rating, total_reviews=total_reviews),
    )


@router.put('/profile', response_model=DoctorResponse)
def update_profile(
    data: DoctorProfileUpdateRequest,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    doctor = current_user.record
    for field_name, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(doctor, field_name, value.strip() if isinstance(value, str) else value)

    try:
        db.commit()
        db.refresh(doctor)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return doctor


@router.get('/treatments', response_model=list[TreatmentResponse])
def get_treatments(current_user: CurrentUser = Depends(require_doctor), db: Session = Depends(get_db)):
    try:
        return db.query(Treatment).filter(
            Treatment.doctor_id == current_user.id,
        ).order_by(Treatment.created_at.desc(), Treatment.id.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/treatments', response_model=TreatmentResponse, status_code=status.HTTP_201_CREATED)
def add_treatment(
    data: TreatmentCreateRequest,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    treatment = Treatment(
        doctor_id=current_user.id,
        name=data.name.strip(),
        category=data.category,
        description=data.description,
        duration=data.duration,
        price=data.price,
    )
    try:
        db.add(treatment)
        db.commit()
        db.refresh(treatment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return treatment


def _get_own_treatment_or_404(db: Session, treatment_id: int, doctor_id: int) -> Treatment:
    treatment = db.query(Treatment).filter(
        Treatment.id == treatment_id,
        Treatment.doctor_id == doctor_id,
    ).first()
    if treatment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Treatment not found')
    return treatment


@router.put('/treatments/{treatment_id}', response_model=TreatmentResponse)
def update_treatment(
    treatment_id: int,
    data: TreatmentUpdateRequest,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        treatment = _get_own_treatment_or_404(db, treatment_id, current_user.id)
        for field_name, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(treatment, field_name, value)
        db.commit()
        db.refresh(treatment)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return treatment


@router.delete('/treatments/{treatment_id}')
def delete_treatment(
    treatment_id: int,
    current_user: CurrentUser = Depends(require_doctor),
    db: Session = Depends(get_db),
):
    try:
        treatment = _get_own_treatment_or_404(db, treatment_id, current_user.id)
        in_use = db.query(Appointment.id).filter(Appointment.treatment_id == treatment.id).first()
        if in_use is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Treatment is referenced by existing appointments',
            )
        db.delete(treatment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return {'success': True, 'message': 'Treatment deleted successfully'}


@router.get('/{doctor_id}/availability', response_model=AvailabilityResponse)
def get_doctor_availability(
    doctor_id: int,
    start_date: str | None = Query(default=None),
    end_date: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        _get_doctor_or_404(db, doctor_id)
        result = get_schedule_and_availability(db, doctor_id, start_date, end_date)
    except InvalidInputError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc

    return AvailabilityResponse(
        schedules=[AvailabilityScheduleResponse.model_validate(schedule) for schedule in result.schedules],
        available_slots=[AvailableSlotResponse.model_validate(slot) for slot in result.available_slots],
    )


@router.get('/{doctor_id}/treatments', response_model=list[TreatmentResponse])
def list_doctor_treatments(doctor_id: int, db: Session = Depends(get_db)):
    try:
        _get_doctor_or_404(db, doctor_id)
        return db.query(Treatment).filter(Treatment.doctor_id == doctor_id).order_by(Treatment.id.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{doctor_id}', response_model=DoctorDetailResponse)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
    try:
        doctor = _get_doctor_or_404(db, doctor_id)
        reviews = db.query(Review).options(selectinload(Review.patient)).filter(
            Review.doctor_id == doctor_id,
        ).order_by(Review.created_at.desc(), Review.id.desc()).all()

        return DoctorDetailResponse(
            **DoctorResponse.model_validate(doctor).model_dump(),
            schedules=[WeeklyScheduleResponse.model_validate(schedule) for schedule in doctor.schedules],
            treatments=[TreatmentResponse.model_validate(treatment) for treatment in doctor.treatments],
            reviews=[ReviewResponse.model_validate(review) for review in reviews],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


