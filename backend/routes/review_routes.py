from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import CurrentUser, require_patient
from backend.database import database_unavailable, get_db
from backend.models import Appointment, Review
from backend.schemas import ReviewResponse

router = APIRouter(tags=['reviews'])

MAX_REVIEW_COMMENT_LENGTH = 1000


class CreateReviewRequest(BaseModel):
    appointment_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = None

    @field_validator('comment')
    @classmethod
    def validate_comment(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_REVIEW_COMMENT_LENGTH:
            raise ValueError(f'Comment must be {MAX_REVIEW_COMMENT_LENGTH} characters or fewer.')
        return normalized or None


@router.post('/', response_model=ReviewResponse, status_code=status.HTTP_201_CREATED)
def create_review(
    data: CreateReviewRequest,
    current_user: CurrentUser = Depends(require_patient),
    db: Session = Depends(get_db),
):
    try:
        appointment = db.query(Appointment).filter(Appointment.id == data.appointment_id).first()
        if appointment is None or appointment.patient_id != current_user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Not authorized')

        existing = db.query(Review.id).filter(Review.appointment_id == appointment.id).first()
        if existing is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This appointment has already been reviewed.',
            )

        review = Review(
            appointment_id=appointment.id,
            doctor_id=appointment.doctor_id,
            patient_id=current_user.id,
            rating=data.rating,
            comment=data.comment,
        )
        db.add(review)
        db.commit()
        db.refresh(review)
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='This appointment has already been reviewed.',
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc

    return review
