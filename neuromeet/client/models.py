"""Client-side views of the API payloads. The client never owns these records."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class AvailabilitySlot(ApiModel):
    id: int | None = None
    user_id: int | None = None
    day_of_week: str
    is_weekday: bool = True
    start_time: str
    end_time: str
    is_available: bool = True


class WeeklyAvailability(ApiModel):
    weekday: list[AvailabilitySlot] = Field(default_factory=list)
    weekend: list[AvailabilitySlot] = Field(default_factory=list)

    @property
    def all_slots(self) -> list[AvailabilitySlot]:
        return [*self.weekday, *self.weekend]


class UserProfile(ApiModel):
    id: int
    name: str
    email: str
    role: str | None = None
    status: str | None = None
    phone: str | None = None
    specialty: str | None = None
    license_number: str | None = None
    years_of_experience: int | None = None
    session_fee: float | None = None


class LoginResult(UserProfile):
    token: str
    is_pending: bool = False
    message: str | None = None


class BookingRequest(ApiModel):
    therapist_id: int
    availability_id: int
    booking_date: date
    start_time: str
    end_time: str
    session_type: str = 'video'

    def to_payload(self) -> dict:
        return self.model_dump(mode='json', by_alias=True)


class Booking(ApiModel):
    id: int
    therapist_id: int
    availability_id: int
    booking_date: date
    start_time: str
    end_time: str
    status: str
    session_type: str
    price: float | None = None
