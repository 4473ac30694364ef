"""Open appointment slots for one doctor over a range of calendar dates.

Each date is governed by exactly one rule: a ``ScheduleOverride`` for that
date when one exists, otherwise the ``WeeklySchedule`` row for the date's
weekday. A date with neither has no bookable slots. Slots always come from
``SLOT_CATALOG``; the rule can only switch the whole day off or remove
individual catalog entries, and non-cancelled appointments remove the slot
they occupy.

The result is a point-in-time read. Booking is the authority on whether a
slot is still free (see the partial unique index on ``appointments``).
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Mapping

from sqlalchemy.orm import Session

from backend.models import Appointment, AppointmentStatus, ScheduleOverride, WeeklySchedule, Weekday

logger = logging.getLogger(__name__)

SLOT_CATALOG = (
    '09:00-10:00',
    '10:00-11:00',
    '11:00-12:00',
    '14:00-15:00',
    '15:00-16:00',
    '16:00-17:00',
)
MAX_AVAILABLE_SLOTS = 10


class InvalidInputError(ValueError):
    """Raised when the requested date range cannot be used."""


@dataclass(frozen=True)
class AvailableSlot:
    date: date
    time_slot: str


@dataclass
class AvailabilityResult:
    schedules: list[WeeklySchedule]
    available_slots: list[AvailableSlot]


def is_catalog_slot(time_slot: str) -> bool:
    return time_slot in SLOT_CATALOG


def parse_calendar_date(value: str | date | None, field_name: str) -> date:
    """Return the calendar date of an ISO-8601 date or datetime string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or not str(value).strip():
        raise InvalidInputError(f'{field_name} is required.')

    raw = str(value).strip()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace('Z', '+00:00')).date()
    except ValueError as exc:
        raise InvalidInputError(f'{field_name} must be an ISO-8601 date.') from exc


def parse_date_range(start_date: str | date | None, end_date: str | date | None) -> tuple[date, date]:
    start = parse_calendar_date(start_date, 'start_date')
    end = parse_calendar_date(end_date, 'end_date')
    if start > end:
        raise InvalidInputError('start_date must be on or before end_date.')
    return start, end


def resolve_day_rule(
    day: date,
    weekly_by_day: Mapping[Weekday, WeeklySchedule],
    overrides_by_date: Mapping[date, ScheduleOverride],
) -> WeeklySchedule | ScheduleOverride | None:
    """Return the override or weekly row that governs ``day``, or ``None``."""
    override = overrides_by_date.get(day)
    if override is not None:
        return override
    return weekly_by_day.get(Weekday.from_date(day))


def _iter_days(start: date, end: date) -> Iterator[date]:
    for offset in range((end - start).days + 1):
        yield start + timedelta(days=offset)


def _offers_slots(rule) -> bool:
    return not rule.is_off and not set(SLOT_CATALOG).issubset(rule.off_slots or ())


def compute_available_slots(
    start: date,
    end: date,
    weekly_schedules: Iterable[WeeklySchedule],
    overrides: Iterable[ScheduleOverride],
    booked: Iterable[tuple[date, str]],
    limit: int = MAX_AVAILABLE_SLOTS,
) -> list[AvailableSlot]:
    weekly_by_day = {Weekday(schedule.day): schedule for schedule in weekly_schedules}
    overrides_by_date = {override.date: override for override in overrides}
    booked_slots = {(booked_date, time_slot) for booked_date, time_slot in booked}

    if any(_offers_slots(schedule) for schedule in weekly_by_day.values()):
        days = _iter_days(start, end)
    else:
        # Only override dates can open slots.
        days = sorted(day for day in overrides_by_date if start <= day <= end)

    available: list[AvailableSlot] = []
    for current_day in days:
        if len(available) >= limit:
            break
        rule = resolve_day_rule(current_day, weekly_by_day, overrides_by_date)

        if rule is not None and not rule.is_off:
            off_slots = set(rule.off_slots or ())
            for time_slot in SLOT_CATALOG:
                if time_slot in off_slots or (current_day, time_slot) in booked_slots:
                    continue
                available.append(AvailableSlot(date=current_day, time_slot=time_slot))

    return available[:limit]


def get_booked_slots(db: Session, doctor_id: int, start: date, end: date) -> list[tuple[date, str]]:
    rows = db.query(Appointment.date, Appointment.time_slot).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date >= start,
        Appointment.date <= end,
        Appointment.status != AppointmentStatus.CANCELLED,
    ).all()
    return [(booked_date, time_slot) for booked_date, time_slot in rows]


def list_weekly_schedules(db: Session, doctor_id: int) -> list[WeeklySchedule]:
    schedules = db.query(WeeklySchedule).filter(WeeklySchedule.doctor_id == doctor_id).all()
    order = list(Weekday)
    return sorted(schedules, key=lambda schedule: order.index(Weekday(schedule.day)))


def get_schedule_and_availability(
    db: Session,
    doctor_id: int,
    start_date: str | date | None,
    end_date: str | date | None,
) -> AvailabilityResult:
    start, end = parse_date_range(start_date, end_date)

    schedules = list_weekly_schedules(db, doctor_id)
    overrides = db.query(ScheduleOverride).filter(
        ScheduleOverride.doctor_id == doctor_id,
        ScheduleOverride.date >= start,
        ScheduleOverride.date <= end,
    ).all()
    booked = get_booked_slots(db, doctor_id, start, end)

    available_slots = compute_available_slots(start, end, schedules, overrides, booked)
    logger.debug(
        'Availability for doctor %s %s..%s: %d open slot(s)',
        doctor_id, start.isoformat(), end.isoformat(), len(available_slots),
    )
    return AvailabilityResult(schedules=schedules, available_slots=available_slots)


def is_slot_offered(db: Session, doctor_id: int, day: date, time_slot: str) -> bool:
    """Whether the doctor's schedule rule for ``day`` offers ``time_slot`` at all.

    Existing bookings are not consulted; the store rejects double bookings.
    """
    if not is_catalog_slot(time_slot):
        return False

    override = db.query(ScheduleOverride).filter(
        ScheduleOverride.doctor_id == doctor_id,
        ScheduleOverride.date == day,
    ).first()
    weekly = db.query(WeeklySchedule).filter(
        WeeklySchedule.doctor_id == doctor_id,
        WeeklySchedule.day == Weekday.from_date(day),
    ).first()

    rule = resolve_day_rule(
        day,
        {Weekday.from_date(day): weekly} if weekly is not None else {},
        {day: override} if override is not None else {},
    )
    if rule is None or rule.is_off:
        return False
    return time_slot not in (rule.off_slots or ())
