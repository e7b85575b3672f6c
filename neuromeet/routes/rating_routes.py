from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from neuromeet.auth.dependencies import get_current_user
from neuromeet.core.schemas import CamelModel, ClockTime
from neuromeet.database import get_db
from neuromeet.models.booking import Booking
from neuromeet.models.rating import Rating
from neuromeet.models.user import User
from neuromeet.routes.common import database_unavailable, forbid_unless_self_or_admin

router = APIRouter(tags=['ratings'])


class CreateRatingRequest(CamelModel):
    booking_id: int
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    is_anonymous: bool = False


class UpdateRatingRequest(CamelModel):
    rating: int | None = Field(default=None, ge=1, le=5)
    comment: str | None = None
    is_anonymous: bool | None = None


class RatingResponse(CamelModel):
    id: int
    user_id: int
    therapist_id: int
    booking_id: int
    rating: int
    comment: str | None = None
    is_anonymous: bool
    created_at: datetime | None = None


class RatingStatsResponse(CamelModel):
    therapist_id: int
    therapist_name: str
    specialty: str | None = None
    average_rating: float
    total_ratings: int


class NotRatedBookingResponse(CamelModel):
    id: int
    therapist_id: int
    therapist_name: str
    booking_date: date
    start_time: ClockTime
    end_time: ClockTime


@router.post('', response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
def create_rating(
    data: CreateRatingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = db.get(Booking, data.booking_id)
        if booking is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Booking not found.')

        if booking.status != 'completed':
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Only completed bookings can be rated.',
            )

        if booking.user_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You can only rate your own bookings.',
            )

        if db.query(Rating.id).filter(Rating.booking_id == booking.id).first():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='This booking has already been rated.',
            )

        rating = Rating(
            user_id=current_user.id,
            therapist_id=booking.therapist_id,
            booking_id=booking.id,
            rating=data.rating,
            comment=data.comment or '',
            is_anonymous=data.is_anonymous,
        )
        db.add(rating)
        db.commit()
        db.refresh(rating)
        return rating
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{rating_id}', response_model=RatingResponse)
def update_rating(
    rating_id: int,
    data: UpdateRatingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        rating = db.get(Rating, rating_id)
        if rating is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Rating not found.')

        if rating.user_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You can only update your own ratings.',
            )

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(rating, field, value)

        db.commit()
        db.refresh(rating)
        return rating
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('', response_model=list[RatingStatsResponse])
def get_rating_stats(db: Session = Depends(get_db)):
    try:
        average = func.avg(Rating.rating)
        rows = db.query(
            User.id,
            User.name,
            User.specialty,
            average,
            func.count(Rating.id),
        ).join(
            Rating, Rating.therapist_id == User.id,
        ).group_by(
            User.id, User.name, User.specialty,
        ).order_by(average.desc()).all()

        return [
            RatingStatsResponse(
                therapist_id=therapist_id,
                therapist_name=name,
                specialty=specialty,
                average_rating=round(float(average_rating), 2),
                total_ratings=total,
            )
            for therapist_id, name, specialty, average_rating, total in rows
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/not-rated-bookings/{user_id}', response_model=list[NotRatedBookingResponse])
def list_not_rated_bookings(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    forbid_unless_self_or_admin(current_user, user_id)

    try:
        rated_booking_ids = select(Rating.booking_id).where(Rating.user_id == user_id)
        rows = db.query(Booking, User.name).join(
            User, User.id == Booking.therapist_id,
        ).filter(
            Booking.user_id == user_id,
            Booking.status == 'completed',
            Booking.id.not_in(rated_booking_ids),
        ).order_by(Booking.booking_date.desc()).all()

        return [
            NotRatedBookingResponse(
                id=booking.id,
                therapist_id=booking.therapist_id,
                therapist_name=therapist_name,
                booking_date=booking.booking_date,
                start_time=booking.start_time,
                end_time=booking.end_time,
            )
            for booking, therapist_name in rows
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc
