import logging
from datetime import time

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from neuromeet.auth.dependencies import get_current_user, require_therapist
from neuromeet.core.schemas import CamelModel, ClockTime, parse_clock_time
from neuromeet.database import get_db
from neuromeet.models.availability import DAYS_OF_WEEK, Availability
from neuromeet.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from neuromeet.models.user import User
from neuromeet.routes.common import database_unavailable

logger = logging.getLogger(__name__)

router = APIRouter(tags=['availability'])


class AvailabilitySlotRequest(CamelModel):
    day_of_week: str
    is_weekday: bool
    start_time: time
    end_time: time
    is_available: bool = True

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in DAYS_OF_WEEK:
            raise ValueError('Invalid day of week.')
        return normalized

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def validate_clock_time(cls, value):
        return parse_clock_time(value)


class UpdateAvailabilityRequest(CamelModel):
    user_id: int | None = None
    availabilities: list[AvailabilitySlotRequest]


class AvailabilityResponse(CamelModel):
    id: int
    user_id: int
    day_of_week: str
    is_weekday: bool
    start_time: ClockTime
    end_time: ClockTime
    is_available: bool


class WeeklyAvailabilityResponse(CamelModel):
    weekday: list[AvailabilityResponse]
    weekend: list[AvailabilityResponse]


class UpdateAvailabilityResponse(CamelModel):
    message: str
    availabilities: list[AvailabilityResponse]


class AvailableTherapistResponse(CamelModel):
    id: int
    name: str
    specialty: str | None = None
    session_fee: float | None = None
    availabilities: list[AvailabilityResponse]


def day_sort_key(availability: Availability) -> tuple[int, time]:
    return DAYS_OF_WEEK.index(availability.day_of_week), availability.start_time


def template_key(day_of_week: str, start_time: time) -> tuple[str, time]:
    return day_of_week, start_time.replace(microsecond=0)


def load_template(therapist_id: int, db: Session) -> list[Availability]:
    rows = db.query(Availability).filter(Availability.user_id == therapist_id).all()
    return sorted(rows, key=day_sort_key)


def has_active_booking(availability_id: int, db: Session) -> bool:
    return db.query(Booking.id).filter(
        Booking.availability_id == availability_id,
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
    ).first() is not None


def keep_booked_row(row: Availability, therapist_id: int, db: Session) -> bool:
    if not has_active_booking(row.id, db):
        return False
    logger.warning(
        'Keeping %s %s available for therapist %s: it still has an active booking.',
        row.day_of_week,
        row.start_time,
        therapist_id,
    )
    return True


def apply_template_update(
    therapist_id: int,
    requested: list[AvailabilitySlotRequest],
    db: Session,
) -> tuple[int, int, int]:
    """Upsert the weekly template keyed by (day, start time).

    A key repeated in one request keeps its last entry. Stored rows absent
    from the request are switched off, and so are rows the request marks
    unavailable, except rows that still back a pending or confirmed booking.
    Returns the number of updated, inserted and deactivated rows. The caller
    commits.
    """
    stored = {
        template_key(row.day_of_week, row.start_time): row
        for row in db.query(Availability).filter(Availability.user_id == therapist_id).all()
    }
    requested_by_key = {template_key(slot.day_of_week, slot.start_time): slot for slot in requested}
    updated = inserted = deactivated = 0

    for key, slot in requested_by_key.items():
        existing = stored.get(key)

        if existing is None:
            db.add(
                Availability(
                    user_id=therapist_id,
                    day_of_week=slot.day_of_week,
                    is_weekday=slot.is_weekday,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    is_available=slot.is_available,
                )
            )
            inserted += 1
            continue

        is_available = slot.is_available
        if existing.is_available and not is_available and keep_booked_row(existing, therapist_id, db):
            is_available = True

        if (
            existing.end_time != slot.end_time
            or existing.is_available != is_available
            or existing.is_weekday != slot.is_weekday
        ):
            existing.end_time = slot.end_time
            existing.is_available = is_available
            existing.is_weekday = slot.is_weekday
            updated += 1

    for key, row in stored.items():
        if key in requested_by_key or not row.is_available:
            continue
        if keep_booked_row(row, therapist_id, db):
            continue
        row.is_available = False
        deactivated += 1

    return updated, inserted, deactivated


@router.get('/available-therapists', response_model=list[AvailableTherapistResponse])
def list_available_therapists(db: Session = Depends(get_db)):
    try:
        therapists = db.query(User).filter(
            User.role == 'therapist',
            User.status == 'active',
        ).order_by(User.name.asc()).all()

        results: list[AvailableTherapistResponse] = []
        for therapist in therapists:
            open_rows = [row for row in load_template(therapist.id, db) if row.is_available]
            if not open_rows:
                continue
            results.append(
                AvailableTherapistResponse(
                    id=therapist.id,
                    name=therapist.name,
                    specialty=therapist.specialty,
                    session_fee=therapist.session_fee,
                    availabilities=[AvailabilityResponse.model_validate(row) for row in open_rows],
                )
            )
        return results
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{therapist_id}', response_model=WeeklyAvailabilityResponse)
def get_therapist_availability(therapist_id: int, db: Session = Depends(get_db)):
    try:
        therapist = db.get(User, therapist_id)
        if therapist is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found.')
        if not therapist.is_therapist:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='This user is not a therapist.',
            )

        rows = [AvailabilityResponse.model_validate(row) for row in load_template(therapist_id, db)]
        return WeeklyAvailabilityResponse(
            weekday=[row for row in rows if row.is_weekday],
            weekend=[row for row in rows if not row.is_weekday],
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('', response_model=UpdateAvailabilityResponse)
def update_availability(
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(require_therapist),
    db: Session = Depends(get_db),
):
    therapist_id = current_user.id
    if data.user_id is not None and data.user_id != current_user.id:
        if not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You can only update your own availability.',
            )
        therapist_id = data.user_id

    try:
        therapist = db.get(User, therapist_id)
        if therapist is None or not therapist.is_therapist:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Therapist not found.')

        updated, inserted, deactivated = apply_template_update(therapist_id, data.availabilities, db)
        db.commit()
        logger.info(
            'Availability for therapist %s: %d updated, %d inserted, %d deactivated',
            therapist_id,
            updated,
            inserted,
            deactivated,
        )

        return UpdateAvailabilityResponse(
            message='Availability updated successfully.',
            availabilities=[AvailabilityResponse.model_validate(row) for row in load_template(therapist_id, db)],
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{availability_id}')
def delete_availability(
    availability_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        availability = db.get(Availability, availability_id)
        if availability is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Availability not found.')

        if availability.user_id != current_user.id and not current_user.is_admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='You can only delete your own availability.',
            )

        if has_active_booking(availability.id, db):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This slot has active bookings and cannot be deleted.',
            )

        # Past bookings still reference the row, so it is only switched off.
        if db.query(Booking.id).filter(Booking.availability_id == availability.id).first():
            availability.is_available = False
            db.commit()
            return {'message': 'Availability deactivated.'}

        db.delete(availability)
        db.commit()
        return {'message': 'Availability deleted.'}
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
