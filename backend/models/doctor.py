"""Doctor model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base


class Doctor(Base):
    """Represents a dentist who owns a schedule and a treatment catalog."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    specialization = Column(String, nullable=False)
    experience = Column(Integer, default=0)
    fees = Column(Float, default=0.0)
    description = Column(Text)
    profile_pic = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    schedules = relationship("WeeklySchedule", back_populates="doctor", cascade="all, delete-orphan")
    schedule_overrides = relationship("ScheduleOverride", back_populates="doctor", cascade="all, delete-orphan")
    treatments = relationship("Treatment", back_populates="doctor", cascade="all, delete-orphan")
    appointments = relationship("Appointment", back_populates="doctor")
    reviews = relationship("Review", back_populates="doctor")
