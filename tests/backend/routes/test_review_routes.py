from datetime import date

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models import Appointment, AppointmentStatus
from backend.routes.doctor_routes import get_doctor_reviews
from backend.routes.review_routes import CreateReviewRequest, create_review


@pytest.fixture
def completed_appointment(db, doctor, patient, treatment) -> Appointment:
    appointment = Appointment(
        patient_id=patient.id,
        doctor_id=doctor.id,
        treatment_id=treatment.id,
        date=date(2025, 12, 22),
        time_slot='09:00-10:00',
        status=AppointmentStatus.COMPLETED,
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


@pytest.mark.parametrize('rating', [0, 6])
def test_review_request_rejects_rating_out_of_range(rating: int) -> None:
    with pytest.raises(ValidationError):
        CreateReviewRequest(appointment_id=1, rating=rating)


def test_patient_reviews_own_appointment_once(db, completed_appointment, patient_user, doctor_user) -> None:
    review = create_review(
        CreateReviewRequest(appointment_id=completed_appointment.id, rating=5, comment='  Painless!  '),
        current_user=patient_user,
        db=db,
    )

    assert review.comment == 'Painless!'
    assert review.doctor_id == completed_appointment.doctor_id

    with pytest.raises(HTTPException) as exception_info:
        create_review(
            CreateReviewRequest(appointment_id=completed_appointment.id, rating=1),
            current_user=patient_user,
            db=db,
        )
    assert exception_info.value.status_code == 409

    summary = get_doctor_reviews(current_user=doctor_user, db=db)
    assert summary.stats.total_reviews == 1
    assert summary.stats.average_rating == 5.0


def test_review_of_unknown_appointment_is_forbidden(db, patient_user) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_review(CreateReviewRequest(appointment_id=999, rating=4), current_user=patient_user, db=db)

    assert exception_info.value.status_code == 403
