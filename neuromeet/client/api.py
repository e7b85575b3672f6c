"""One coroutine per REST endpoint the app consumes.

Response bodies are validated here; a 2xx body of the wrong shape raises
``UnexpectedResponseError`` so screens only ever handle ``RequestError``.
"""

import logging
from datetime import date
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from neuromeet.client.http_client import ApiClient, UnexpectedResponseError
from neuromeet.client.models import (
    AvailabilitySlot,
    Booking,
    BookingRequest,
    LoginResult,
    UserProfile,
    WeeklyAvailability,
)

logger = logging.getLogger(__name__)


def parse_model(model: type[BaseModel], data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        logger.warning('Unexpected %s payload: %s', model.__name__, exc)
        raise UnexpectedResponseError(data) from exc


def parse_models(model: type[BaseModel], data: Any) -> list:
    if data is None:
        return []
    if not isinstance(data, list):
        logger.warning('Expected a list of %s, got %s', model.__name__, type(data).__name__)
        raise UnexpectedResponseError(data)
    return [parse_model(model, item) for item in data]


class NeuroMeetApi:
    def __init__(self, client: ApiClient):
        self.client = client

    @property
    def token_store(self):
        return self.client.token_store

    async def login(self, email: str, password: str) -> LoginResult:
        data = await self.client.request('/users/login', 'POST', {'email': email, 'password': password})
        return parse_model(LoginResult, data)

    async def register_customer(self, name: str, email: str, password: str, phone: str | None = None) -> LoginResult:
        body = {'name': name, 'email': email, 'password': password, 'phone': phone}
        return parse_model(LoginResult, await self.client.request('/users/register-customer', 'POST', body))

    async def register_therapist(self, name: str, email: str, password: str, **details) -> LoginResult:
        body = {'name': name, 'email': email, 'password': password}
        body.update({to_camel(key): value for key, value in details.items()})
        return parse_model(LoginResult, await self.client.request('/users/register-therapist', 'POST', body))

    async def get_profile(self) -> UserProfile:
        return parse_model(UserProfile, await self.client.request('/users/profile'))

    async def get_pending_therapists(self) -> list[UserProfile]:
        return parse_models(UserProfile, await self.client.request('/users/pending-therapists'))

    async def approve_therapist(self, therapist_id: int) -> dict:
        return await self.client.request(f'/users/{therapist_id}/approve', 'POST')

    async def reject_therapist(self, therapist_id: int) -> dict:
        return await self.client.request(f'/users/{therapist_id}/reject', 'POST')

    async def get_availability(self, therapist_id: int) -> WeeklyAvailability:
        data = await self.client.request(f'/availability/{therapist_id}')
        return parse_model(WeeklyAvailability, data or {})

    async def save_availability(self, user_id: int, availabilities: list[AvailabilitySlot]) -> dict:
        body = {
            'userId': user_id,
            'availabilities': [
                slot.model_dump(by_alias=True, exclude={'id', 'user_id'}) for slot in availabilities
            ],
        }
        return await self.client.request('/availability', 'POST', body)

    async def get_booked_slots(self, therapist_id: int, booking_date: date | str) -> list[str]:
        data = await self.client.request(
            '/bookings/booked-slots',
            params={'therapistId': therapist_id, 'date': str(booking_date)},
        )
        return data if isinstance(data, list) else []

    async def get_session_fee(self, therapist_id: int) -> float | None:
        data = await self.client.request(f'/therapists/{therapist_id}/session-fee')
        if not isinstance(data, dict):
            return None
        fee = data.get('sessionFee')
        if fee is None:
            return None
        try:
            return float(fee)
        except (TypeError, ValueError) as exc:
            raise UnexpectedResponseError(data) from exc

    async def create_booking(self, request: BookingRequest) -> Booking:
        data = await self.client.request('/bookings', 'POST', request.to_payload())
        return parse_model(Booking, data)

    async def get_user_bookings(self, user_id: int) -> list[Booking]:
        return parse_models(Booking, await self.client.request(f'/bookings/user/{user_id}'))

    async def get_not_rated_bookings(self, user_id: int) -> list[dict]:
        return await self.client.request(f'/ratings/not-rated-bookings/{user_id}') or []

    async def submit_rating(self, booking_id: int, rating: int, comment: str | None = None, is_anonymous: bool = False) -> dict:
        body = {'bookingId': booking_id, 'rating': rating, 'comment': comment, 'isAnonymous': is_anonymous}
        return await self.client.request('/ratings', 'POST', body)
