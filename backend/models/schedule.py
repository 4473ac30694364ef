"""Weekly schedule and per-date override model definitions."""

import enum
from datetime import date

from sqlalchemy import JSON, Boolean, Column, Date, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backend.database import Base


class Weekday(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def from_date(cls, value: date) -> "Weekday":
        # date.weekday() is 0 for Monday regardless of locale
        return _WEEKDAYS_BY_ORDINAL[value.weekday()]


_WEEKDAYS_BY_ORDINAL = tuple(Weekday)


class WeeklySchedule(Base):
    """Recurring rule for one weekday of one doctor."""
    __tablename__ = "schedules"
    __table_args__ = (
        UniqueConstraint("doctor_id", "day", name="uq_schedules_doctor_day"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(Enum(Weekday, name="weekday"), nullable=False)
    is_off = Column(Boolean, nullable=False, default=False)
    off_slots = Column(JSON, nullable=False, default=list)

    doctor = relationship("Doctor", back_populates="schedules")


class ScheduleOverride(Base):
    """Exception for a single calendar date; replaces the weekly rule for that date."""
    __tablename__ = "schedule_overrides"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", name="uq_schedule_overrides_doctor_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    is_off = Column(Boolean, nullable=False, default=False)
    # Display only; bookable slots always come from the slot catalog.
    start_time = Column(String)
    end_time = Column(String)
    off_slots = Column(JSON, nullable=False, default=list)

    doctor = relationship("Doctor", back_populates="schedule_overrides")
