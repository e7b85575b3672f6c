import asyncio
import logging
from datetime import date

from neuromeet.client.api import NeuroMeetApi
from neuromeet.client.http_client import RequestError, UnexpectedResponseError
from neuromeet.client.models import AvailabilitySlot, Booking, BookingRequest
from neuromeet.client.navigation import Alert, Navigator
from neuromeet.client.reconciliation import (
    CalendarDay,
    SlotOption,
    build_calendar,
    disabled_calendar,
    normalize_booked_times,
    slots_for_date,
)

logger = logging.getLogger(__name__)

MISSING_SELECTION_ALERT = Alert('Missing information', 'Please select a date and time.', error=True)
BOOKING_CREATED_ALERT = Alert('Success', 'Your booking request has been sent to the therapist.')
BOOKING_FAILED_MESSAGE = 'The booking could not be created. Please try again.'
AVAILABILITY_FAILED_MESSAGE = 'Could not load this therapist\'s availability.'


def parse_therapist_id(value) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        therapist_id = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return therapist_id if therapist_id > 0 else None


class BookingScreen:
    """Book one session with a therapist.

    The weekly template and session fee are fetched once on ``load``. Booked
    start times are fetched each time a date is picked; a response that
    arrives after a newer date was picked is dropped.
    """

    def __init__(self, api: NeuroMeetApi, navigator: Navigator, therapist_id, today: date | None = None):
        self.api = api
        self.navigator = navigator
        self.therapist_id = parse_therapist_id(therapist_id)
        self.today = today or date.today()

        self.template: list[AvailabilitySlot] | None = None
        self.calendar: list[CalendarDay] = disabled_calendar(self.today)
        self.session_fee: float | None = None
        self.error: str | None = None

        self.selected_date: date | None = None
        self.booked_start_times: set[str] = set()
        self.slot_options: list[SlotOption] = []
        self.selected_slot: SlotOption | None = None

        self.loading_availability = False
        self.loading_booked_slots = False
        self.submitting = False
        self.alert: Alert | None = None
        self._booked_generation = 0

    async def load(self) -> None:
        if self.therapist_id is None:
            self.error = 'Invalid therapist ID.'
            self.calendar = disabled_calendar(self.today)
            return

        await asyncio.gather(self._load_availability(), self._load_session_fee())

    async def _load_availability(self) -> None:
        self.loading_availability = True
        self.error = None
        try:
            weekly = await self.api.get_availability(self.therapist_id)
        except RequestError as exc:
            logger.warning('Availability for therapist %s could not be loaded: %s', self.therapist_id, exc.message)
            self.template = None
            self.calendar = disabled_calendar(self.today)
            self.error = exc.server_message or AVAILABILITY_FAILED_MESSAGE
            return
        finally:
            self.loading_availability = False

        self.template = weekly.all_slots
        self.calendar = build_calendar(self.template, self.today)

    async def _load_session_fee(self) -> None:
        try:
            self.session_fee = await self.api.get_session_fee(self.therapist_id)
        except RequestError as exc:
            logger.info('Session fee for therapist %s unavailable: %s', self.therapist_id, exc.message)
            self.session_fee = None

    def is_bookable(self, day: date) -> bool:
        return any(entry.date == day and entry.bookable for entry in self.calendar)

    async def select_date(self, day: date | str) -> list[SlotOption]:
        if isinstance(day, str):
            day = date.fromisoformat(day)
        if self.template is None or not self.is_bookable(day):
            return []

        self.selected_date = day
        self.selected_slot = None
        self.booked_start_times = set()
        self.slot_options = slots_for_date(self.template, day)

        self._booked_generation += 1
        generation = self._booked_generation
        self.loading_booked_slots = True
        try:
            booked = await self.api.get_booked_slots(self.therapist_id, day)
        except RequestError as exc:
            logger.warning('Booked slots for %s could not be loaded: %s', day, exc.message)
            booked = []

        if generation != self._booked_generation:
            logger.debug('Discarding booked slots for %s: a newer date was selected', day)
            return self.slot_options

        self.loading_booked_slots = False
        self.booked_start_times = normalize_booked_times(booked)
        self.slot_options = slots_for_date(self.template, day, booked)
        if self.selected_slot is not None:
            # Picked while the fetch was in flight.
            picked = self.selected_slot.slot
            self.selected_slot = next(
                (option for option in self.slot_options if option.slot is picked and option.selectable),
                None,
            )
            if self.selected_slot is None:
                logger.info('Cleared selection of %s on %s: it is already booked', picked.start_time, day)
        return self.slot_options

    def select_slot(self, option: SlotOption) -> bool:
        if option not in self.slot_options or not option.selectable:
            return False
        self.selected_slot = option
        return True

    async def submit(self) -> Booking | None:
        if self.selected_date is None or self.selected_slot is None:
            self.alert = MISSING_SELECTION_ALERT
            return None

        slot = self.selected_slot.slot
        request = BookingRequest(
            therapist_id=self.therapist_id,
            availability_id=slot.id,
            booking_date=self.selected_date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            session_type='video',
        )

        self.submitting = True
        try:
            booking = await self.api.create_booking(request)
        except UnexpectedResponseError:
            # The server accepted the booking; only its echo was unreadable.
            logger.warning('Booking for therapist %s on %s created with an unreadable response', self.therapist_id, self.selected_date)
            booking = None
        except RequestError as exc:
            logger.warning('Booking failed for therapist %s on %s: %s', self.therapist_id, self.selected_date, exc.message)
            self.alert = Alert('Error', exc.server_message or BOOKING_FAILED_MESSAGE, error=True)
            return None
        finally:
            self.submitting = False

        self.alert = BOOKING_CREATED_ALERT
        self.navigator.back()
        return booking
