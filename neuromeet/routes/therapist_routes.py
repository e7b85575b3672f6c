from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from neuromeet.core.schemas import CamelModel, ClockTime
from neuromeet.database import get_db
from neuromeet.models.booking import Booking
from neuromeet.models.rating import Rating
from neuromeet.models.user import User
from neuromeet.routes.common import database_unavailable

router = APIRouter(tags=['therapists'])

ANONYMOUS_NAME = 'Anonymous'
TOP_RATED_LIMIT = 5


class TherapistResponse(CamelModel):
    id: int
    name: str
    specialty: str | None = None
    years_of_experience: int | None = None
    bio: str | None = None
    session_fee: float | None = None


class TopRatedTherapistResponse(TherapistResponse):
    average_rating: float | None = None
    total_ratings: int = 0


class SessionFeeResponse(CamelModel):
    session_fee: float | None = None


class RatingAuthor(CamelModel):
    id: int | None = None
    name: str


class RatedBooking(CamelModel):
    id: int
    booking_date: date
    start_time: ClockTime
    end_time: ClockTime


class TherapistRatingResponse(CamelModel):
    id: int
    rating: int
    comment: str | None = None
    is_anonymous: bool
    created_at: datetime | None = None
    user: RatingAuthor
    booking: RatedBooking | None = None


def active_therapists(db: Session):
    return db.query(User).filter(User.role == 'therapist', User.status == 'active')


def get_active_therapist(therapist_id: int, db: Session) -> User:
    therapist = active_therapists(db).filter(User.id == therapist_id).first()
    if therapist is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='No active therapist found with this ID.',
        )
    return therapist


@router.get('', response_model=list[TherapistResponse])
def list_therapists(
    specialty: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    try:
        query = active_therapists(db)
        if specialty:
            query = query.filter(User.specialty.ilike(f'%{specialty.strip()}%'))
        return query.order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/search', response_model=list[TherapistResponse])
def search_therapists(
    name: str | None = Query(default=None),
    specialty: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    """Case-insensitive substring match on name and/or specialty."""
    try:
        query = active_therapists(db)
        if name and name.strip():
            query = query.filter(User.name.ilike(f'%{name.strip()}%'))
        if specialty and specialty.strip():
            query = query.filter(User.specialty.ilike(f'%{specialty.strip()}%'))
        return query.order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/specialties', response_model=list[str])
def list_specialties(db: Session = Depends(get_db)):
    try:
        rows = active_therapists(db).with_entities(User.specialty).filter(
            User.specialty.isnot(None),
            User.specialty != '',
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc

    # A therapist may list several specialties separated by commas.
    specialties = {
        item.strip()
        for (specialty,) in rows
        for item in specialty.split(',')
        if item.strip()
    }
    return sorted(specialties)


@router.get('/specialty/{specialty}', response_model=list[TherapistResponse])
def list_therapists_by_specialty(specialty: str, db: Session = Depends(get_db)):
    return list_therapists(specialty=specialty, db=db)


@router.get('/top-rated', response_model=list[TopRatedTherapistResponse])
def list_top_rated_therapists(
    limit: int = Query(default=TOP_RATED_LIMIT, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """Active therapists by average rating; unrated therapists come last."""
    try:
        average = func.avg(Rating.rating)
        total = func.count(Rating.id)
        rows = db.query(User, average, total).outerjoin(
            Rating, Rating.therapist_id == User.id,
        ).filter(
            User.role == 'therapist',
            User.status == 'active',
        ).group_by(User.id).order_by(
            func.coalesce(average, 0).desc(),
            total.desc(),
            User.name.asc(),
        ).limit(limit).all()

        return [
            TopRatedTherapistResponse(
                **TherapistResponse.model_validate(therapist).model_dump(),
                average_rating=round(float(average_rating), 2) if average_rating is not None else None,
                total_ratings=total_ratings,
            )
            for therapist, average_rating, total_ratings in rows
        ]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{therapist_id}', response_model=TherapistResponse)
def get_therapist(therapist_id: int, db: Session = Depends(get_db)):
    try:
        return get_active_therapist(therapist_id, db)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{therapist_id}/session-fee', response_model=SessionFeeResponse)
def get_session_fee(therapist_id: int, db: Session = Depends(get_db)):
    try:
        therapist = get_active_therapist(therapist_id, db)
        return SessionFeeResponse(session_fee=therapist.session_fee)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{therapist_id}/ratings', response_model=list[TherapistRatingResponse])
def list_therapist_ratings(therapist_id: int, db: Session = Depends(get_db)):
    try:
        therapist = db.get(User, therapist_id)
        if therapist is None or not therapist.is_therapist:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Therapist not found.')

        rows = db.query(Rating, User, Booking).join(
            User, User.id == Rating.user_id,
        ).outerjoin(
            Booking, Booking.id == Rating.booking_id,
        ).filter(
            Rating.therapist_id == therapist_id,
        ).order_by(Rating.created_at.desc(), Rating.id.desc()).all()

        ratings: list[TherapistRatingResponse] = []
        for rating, author, booking in rows:
            if rating.is_anonymous:
                user = RatingAuthor(id=None, name=ANONYMOUS_NAME)
            else:
                user = RatingAuthor(id=author.id, name=author.name)
            ratings.append(
                TherapistRatingResponse(
                    id=rating.id,
                    rating=rating.rating,
                    comment=rating.comment,
                    is_anonymous=rating.is_anonymous,
                    created_at=rating.created_at,
                    user=user,
                    booking=RatedBooking.model_validate(booking) if booking else None,
                )
            )
        return ratings
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc
