import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field, field_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from neuromeet.auth.dependencies import get_current_user
from neuromeet.core import config
from neuromeet.core.schemas import CamelModel, ClockTime, parse_clock_time
from neuromeet.database import get_db
from neuromeet.models.availability import DAYS_OF_WEEK, Availability
from neuromeet.models.booking import ACTIVE_BOOKING_STATUSES, BOOKING_STATUSES, SESSION_TYPES, Booking
from neuromeet.models.user import User
from neuromeet.routes.common import database_unavailable, forbid_unless_self_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(tags=['bookings'])

MAX_BOOKING_NOTES_LENGTH = 1000
SLOT_TAKEN_DETAIL = 'This time slot is already booked.'


class CreateBookingRequest(CamelModel):
    therapist_id: int
    availability_id: int
    booking_date: date
    start_time: time
    end_time: time
    session_type: str = 'video'
    notes: str | None = Field(default=None, max_length=MAX_BOOKING_NOTES_LENGTH)

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_clock_time(cls, value):
        return parse_clock_time(value)

    @field_validator('session_type')
    @classmethod
    def validate_session_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SESSION_TYPES:
            raise ValueError('Invalid session type.')
        return normalized


class UpdateBookingRequest(CamelModel):
    status: str | None = None
    notes: str | None = Field(default=None, max_length=MAX_BOOKING_NOTES_LENGTH)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        if normalized not in BOOKING_STATUSES:
            raise ValueError('Invalid booking status.')
        return normalized


class BookingResponse(CamelModel):
    id: int
    user_id: int
    therapist_id: int
    availability_id: int
    booking_date: date
    start_time: ClockTime
    end_time: ClockTime
    status: str
    session_type: str
    notes: str | None = None
    price: float
    is_paid: bool
    created_at: datetime | None = None


def get_booking_or_404(booking_id: int, db: Session) -> Booking:
    booking = db.get(Booking, booking_id)
    if booking is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Booking not found.')
    return booking


def is_participant(user: User, booking: Booking) -> bool:
    return user.id in (booking.user_id, booking.therapist_id) or user.is_admin


def booked_start_times(therapist_id: int, booking_date: date, db: Session) -> list[time]:
    rows = db.query(Booking.start_time).filter(
        Booking.therapist_id == therapist_id,
        Booking.booking_date == booking_date,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    ).order_by(Booking.start_time.asc()).all()
    return [start_time for (start_time,) in rows]


def validate_booking_request(data: CreateBookingRequest, db: Session, today: date | None = None) -> tuple[User, Availability]:
    today = today or date.today()

    therapist = db.get(User, data.therapist_id)
    if therapist is None or not therapist.is_therapist or therapist.status != 'active':
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Therapist not found.')

    availability = db.get(Availability, data.availability_id)
    if availability is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability not found.')

    if availability.user_id != therapist.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='This availability does not belong to the therapist.',
        )

    if not availability.is_available:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='This time slot is no longer available.',
        )

    if data.booking_date < today:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Bookings cannot be made for past dates.',
        )

    if DAYS_OF_WEEK[data.booking_date.weekday()] != availability.day_of_week:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The booking date does not fall on this availability slot\'s day.',
        )

    if (data.start_time, data.end_time) != (
        availability.start_time.replace(microsecond=0),
        availability.end_time.replace(microsecond=0),
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='The booking time does not match the availability slot.',
        )

    existing = db.query(Booking.id).filter(
        Booking.therapist_id == therapist.id,
        Booking.booking_date == data.booking_date,
        Booking.start_time == data.start_time,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SLOT_TAKEN_DETAIL,
        )

    return therapist, availability


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        therapist, availability = validate_booking_request(data, db)

        booking = Booking(
            user_id=current_user.id,
            therapist_id=therapist.id,
            availability_id=availability.id,
            booking_date=data.booking_date,
            start_time=data.start_time,
            end_time=data.end_time,
            status='pending',
            session_type=data.session_type,
            notes=data.notes or '',
            price=therapist.session_fee if therapist.session_fee is not None else config.DEFAULT_SESSION_PRICE,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        logger.info(
            'Booking %s created: user %s with therapist %s on %s at %s',
            booking.id,
            booking.user_id,
            booking.therapist_id,
            booking.booking_date,
            booking.start_time,
        )
        return booking
    except IntegrityError as exc:
        db.rollback()
        logger.info('Rejected concurrent booking for therapist %s on %s: %s', data.therapist_id, data.booking_date, exc)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=SLOT_TAKEN_DETAIL,
        ) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/booked-slots', response_model=list[str])
def get_booked_slots(
    therapist_id: int = Query(..., alias='therapistId'),
    booking_date: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    try:
        therapist = db.get(User, therapist_id)
        if therapist is None or not therapist.is_therapist:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Therapist not found.')

        return [start_time.strftime('%H:%M:%S') for start_time in booked_start_times(therapist_id, booking_date, db)]
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/user/{user_id}', response_model=list[BookingResponse])
def list_user_bookings(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    forbid_unless_self_or_admin(current_user, user_id)

    try:
        return db.query(Booking).filter(Booking.user_id == user_id).order_by(
            Booking.booking_date.desc(),
            Booking.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/therapist/{therapist_id}', response_model=list[BookingResponse])
def list_therapist_bookings(
    therapist_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    forbid_unless_self_or_admin(current_user, therapist_id)

    try:
        return db.query(Booking).filter(Booking.therapist_id == therapist_id).order_by(
            Booking.booking_date.desc(),
            Booking.start_time.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_booking_or_404(booking_id, db)
        if not is_participant(current_user, booking):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='You cannot view this booking.')
        return booking
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/{booking_id}', response_model=BookingResponse)
def update_booking(
    booking_id: int,
    data: UpdateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_booking_or_404(booking_id, db)
        if current_user.id != booking.therapist_id and not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the therapist or an admin can update this booking.',
            )

        if data.status:
            booking.status = data.status
        if data.notes:
            booking.notes = data.notes

        db.commit()
        db.refresh(booking)
        return booking
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=SLOT_TAKEN_DETAIL) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{booking_id}')
def cancel_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        booking = get_booking_or_404(booking_id, db)
        if not is_participant(current_user, booking):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='You cannot cancel this booking.')

        booking.status = 'cancelled'
        db.commit()
        logger.info('Booking %s cancelled by user %s', booking.id, current_user.id)
        return {'message': 'Booking cancelled.'}
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
