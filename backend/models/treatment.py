"""Treatment model definitions."""

import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from backend.database import Base


class TreatmentCategory(str, enum.Enum):
    CLEANING = "CLEANING"
    FILLING = "FILLING"
    ROOT_CANAL = "ROOT_CANAL"
    EXTRACTION = "EXTRACTION"
    ORTHODONTICS = "ORTHODONTICS"
    COSMETIC = "COSMETIC"
    SURGERY = "SURGERY"


class Treatment(Base):
    """A procedure a doctor offers, with its duration in minutes and price."""
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    category = Column(Enum(TreatmentCategory, name="treatment_category"), nullable=False)
    description = Column(Text)
    duration = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    doctor = relationship("Doctor", back_populates="treatments")
    appointments = relationship("Appointment", back_populates="treatment")
