"""Pydantic response models shared by several route modules."""

from datetime import date, datetime

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from backend.models import AppointmentStatus, TreatmentCategory, Weekday
from backend.services.availability import SLOT_CATALOG


def normalize_off_slots(values: list[str] | None) -> list[str]:
    """Strip, de-duplicate and catalog-order off-slot identifiers."""
    if not values:
        return []

    requested = {value.strip() for value in values}
    unknown = sorted(requested.difference(SLOT_CATALOG))
    if unknown:
        raise ValueError(f'Unknown time slot(s): {", ".join(unknown)}.')

    return [time_slot for time_slot in SLOT_CATALOG if time_slot in requested]


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized or '@' not in normalized:
        raise ValueError('A valid email is required.')
    return normalized


class DoctorResponse(BaseModel):
    id: int
    name: str
    email: str
    specialization: str
    experience: int | None = None
    fees: float | None = None
    description: str | None = None
    profile_pic: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class PatientResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str | None = None
    address: str | None = None
    profile_pic: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class NamedRecord(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class TreatmentResponse(BaseModel):
    id: int
    doctor_id: int
    name: str
    category: TreatmentCategory
    description: str | None = None
    duration: int
    price: float

    class Config:
        from_attributes = True


class WeeklyScheduleResponse(BaseModel):
    id: int
    day: Weekday
    is_off: bool
    off_slots: list[str]

    class Config:
        from_attributes = True


class ScheduleOverrideResponse(BaseModel):
    id: int
    date: date
    is_off: bool
    start_time: str | None = None
    end_time: str | None = None
    off_slots: list[str]

    class Config:
        from_attributes = True


class AppointmentResponse(BaseModel):
    id: int
    patient_id: int
    doctor_id: int
    treatment_id: int
    date: date
    time_slot: str
    status: AppointmentStatus
    notes: str | None = None
    created_at: datetime | None = None
    patient: NamedRecord | None = None
    doctor: NamedRecord | None = None
    treatment: NamedRecord | None = None

    class Config:
        from_attributes = True


class ReviewResponse(BaseModel):
    id: int
    appointment_id: int
    doctor_id: int
    patient_id: int
    rating: int
    comment: str | None = None
    created_at: datetime | None = None
    patient: NamedRecord | None = None

    class Config:
        from_attributes = True


class AvailableSlotResponse(BaseModel):
    date: date
    time_slot: str

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class AvailabilityScheduleResponse(BaseModel):
    day: Weekday
    is_off: bool
    off_slots: list[str]

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class AvailabilityResponse(BaseModel):
    schedules: list[AvailabilityScheduleResponse]
    available_slots: list[AvailableSlotResponse]

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
