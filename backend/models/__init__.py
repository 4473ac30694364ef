"""SQLAlchemy models; importing this package registers every mapped class."""

from backend.models.appointment import ALLOWED_STATUS_TRANSITIONS, Appointment, AppointmentStatus
from backend.models.doctor import Doctor
from backend.models.patient import Patient
from backend.models.review import Review
from backend.models.schedule import ScheduleOverride, WeeklySchedule, Weekday
from backend.models.treatment import Treatment, TreatmentCategory

__all__ = [
    "ALLOWED_STATUS_TRANSITIONS",
    "Appointment",
    "AppointmentStatus",
    "Doctor",
    "Patient",
    "Review",
    "ScheduleOverride",
    "Treatment",
    "TreatmentCategory",
    "WeeklySchedule",
    "Weekday",
]
