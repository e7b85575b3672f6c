import asyncio
from datetime import date, timedelta

import httpx

from neuromeet.client.booking import BOOKING_FAILED_MESSAGE, BookingScreen, parse_therapist_id
from neuromeet.client.navigation import Destination

MONDAY = date(2025, 1, 6)
NEXT_MONDAY = MONDAY + timedelta(days=7)

WEEKLY = {
    'weekday': [
        {'id': 1, 'userId': 7, 'dayOfWeek': 'monday', 'isWeekday': True, 'startTime': '14:00:00', 'endTime': '15:00:00', 'isAvailable': True},
        {'id': 2, 'userId': 7, 'dayOfWeek': 'monday', 'isWeekday': True, 'startTime': '09:00:00', 'endTime': '10:00:00', 'isAvailable': True},
        {'id': 3, 'userId': 7, 'dayOfWeek': 'monday', 'isWeekday': True, 'startTime': '11:00:00', 'endTime': '12:00:00', 'isAvailable': True},
    ],
    'weekend': [],
}

BOOKING = {
    'id': 55,
    'therapistId': 7,
    'availabilityId': 2,
    'bookingDate': MONDAY.isoformat(),
    'startTime': '09:00:00',
    'endTime': '10:00:00',
    'status': 'pending',
    'sessionType': 'video',
    'price': 650.0,
}


def _serve_template(backend, booked=None) -> None:
    backend.add('GET', '/availability/7', WEEKLY)
    backend.add('GET', '/therapists/7/session-fee', {'sessionFee': 650.0})
    backend.add('GET', '/bookings/booked-slots', booked if booked is not None else [])


def test_parse_therapist_id() -> None:
    assert parse_therapist_id('7') == 7
    assert parse_therapist_id(7) == 7
    assert parse_therapist_id('abc') is None
    assert parse_therapist_id('-3') is None
    assert parse_therapist_id(None) is None


def test_load_builds_calendar_and_fee(api, backend, navigator) -> None:
    _serve_template(backend)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    asyncio.run(screen.load())

    assert screen.error is None
    assert screen.session_fee == 650.0
    assert len(screen.calendar) == 30
    assert [entry.date for entry in screen.calendar if entry.bookable][:2] == [MONDAY, NEXT_MONDAY]


def test_failed_template_disables_every_date(api, backend, navigator) -> None:
    backend.add('GET', '/availability/7', {'detail': 'Database unavailable.'}, status_code=503)
    backend.add('GET', '/therapists/7/session-fee', {'sessionFee': 650.0})
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    asyncio.run(screen.load())

    assert screen.error == 'Database unavailable.'
    assert screen.template is None
    assert len(screen.calendar) == 30
    assert all(entry.disabled for entry in screen.calendar)
    assert asyncio.run(screen.select_date(MONDAY)) == []
    assert screen.selected_date is None
    assert backend.calls('GET', '/bookings/booked-slots') == []


def test_failed_fee_leaves_fee_unset(api, backend, navigator) -> None:
    backend.add('GET', '/availability/7', WEEKLY)
    backend.add('GET', '/therapists/7/session-fee', {'detail': 'No active therapist found with this ID.'}, status_code=404)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    asyncio.run(screen.load())

    assert screen.session_fee is None
    assert screen.error is None


def test_invalid_therapist_id_makes_no_calls(api, backend, navigator) -> None:
    screen = BookingScreen(api, navigator, 'not-a-number', today=MONDAY)

    asyncio.run(screen.load())

    assert screen.error == 'Invalid therapist ID.'
    assert backend.requests == []
    assert all(entry.disabled for entry in screen.calendar)


def test_select_date_lists_sorted_slots_with_booked_flag(api, backend, navigator) -> None:
    _serve_template(backend, booked=['14:00:00'])
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        return await screen.select_date(MONDAY)

    options = asyncio.run(scenario())

    assert [option.start for option in options] == ['09:00', '11:00', '14:00']
    assert [option.booked for option in options] == [False, False, True]
    assert screen.booked_start_times == {'14:00'}
    request = backend.calls('GET', '/bookings/booked-slots')[0]
    assert request.url.params['therapistId'] == '7'
    assert request.url.params['date'] == MONDAY.isoformat()


def test_select_date_ignores_disabled_dates(api, backend, navigator) -> None:
    _serve_template(backend)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        return await screen.select_date(MONDAY + timedelta(days=1))

    assert asyncio.run(scenario()) == []
    assert screen.selected_date is None


def test_booked_slots_failure_shows_all_slots_open(api, backend, navigator) -> None:
    _serve_template(backend)
    backend.add('GET', '/bookings/booked-slots', {'detail': 'boom'}, status_code=500)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        return await screen.select_date(MONDAY)

    options = asyncio.run(scenario())

    assert [option.selectable for option in options] == [True, True, True]


def test_stale_booked_slots_response_is_discarded(api, backend, navigator) -> None:
    _serve_template(backend)

    async def scenario():
        first_requested = asyncio.Event()
        release_first = asyncio.Event()

        async def booked_slots(request: httpx.Request) -> httpx.Response:
            if request.url.params['date'] == MONDAY.isoformat():
                first_requested.set()
                await release_first.wait()
                return httpx.Response(200, json=['09:00:00'])
            return httpx.Response(200, json=['14:00:00'])

        backend.add('GET', '/bookings/booked-slots', handler=booked_slots)
        screen = BookingScreen(api, navigator, '7', today=MONDAY)
        await screen.load()

        slow = asyncio.create_task(screen.select_date(MONDAY))
        await first_requested.wait()
        await screen.select_date(NEXT_MONDAY)
        release_first.set()
        await slow
        return screen

    screen = asyncio.run(scenario())

    assert screen.selected_date == NEXT_MONDAY
    assert screen.booked_start_times == {'14:00'}
    assert [option.booked for option in screen.slot_options] == [False, False, True]
    assert screen.loading_booked_slots is False


def test_select_slot_rejects_booked_options(api, backend, navigator) -> None:
    _serve_template(backend, booked=['14:00:00'])
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        await screen.select_date(MONDAY)

    asyncio.run(scenario())

    assert screen.select_slot(screen.slot_options[2]) is False
    assert screen.select_slot(screen.slot_options[0]) is True
    assert screen.selected_slot.start == '09:00'


def test_submit_without_selection_makes_no_call(api, backend, navigator) -> None:
    _serve_template(backend)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    result = asyncio.run(screen.submit())

    assert result is None
    assert screen.alert.title == 'Missing information'
    assert screen.alert.message == 'Please select a date and time.'
    assert backend.calls('POST', '/bookings') == []
    assert navigator.current == Destination.BOOKING


def test_submit_posts_booking_and_navigates_back(api, backend, navigator) -> None:
    _serve_template(backend)
    backend.add('POST', '/bookings', BOOKING, status_code=201)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        await screen.select_date(MONDAY)
        screen.select_slot(screen.slot_options[0])
        return await screen.submit()

    booking = asyncio.run(scenario())

    assert booking.id == 55
    assert screen.alert.error is False
    assert navigator.current == Destination.HOME
    body = backend.json_body(backend.calls('POST', '/bookings')[0])
    assert body == {
        'therapistId': 7,
        'availabilityId': 2,
        'bookingDate': '2025-01-06',
        'startTime': '09:00:00',
        'endTime': '10:00:00',
        'sessionType': 'video',
    }
    assert backend.requests[-1].headers['authorization'] == 'Bearer test-token'


def test_submit_surfaces_server_message(api, backend, navigator) -> None:
    _serve_template(backend)
    backend.add('POST', '/bookings', {'detail': 'This time slot is already booked.'}, status_code=409)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        await screen.select_date(MONDAY)
        screen.select_slot(screen.slot_options[0])
        return await screen.submit()

    assert asyncio.run(scenario()) is None
    assert screen.alert.message == 'This time slot is already booked.'
    assert screen.alert.error is True
    assert navigator.current == Destination.BOOKING


def test_submit_falls_back_to_generic_message(api, backend, navigator) -> None:
    _serve_template(backend)
    backend.add('POST', '/bookings', handler=lambda request: httpx.Response(500, text='oops'))
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        await screen.select_date(MONDAY)
        screen.select_slot(screen.slot_options[1])
        return await screen.submit()

    asyncio.run(scenario())

    assert screen.alert.message == BOOKING_FAILED_MESSAGE


def test_malformed_template_is_reported_not_raised(api, backend, navigator) -> None:
    backend.add('GET', '/availability/7', {'weekday': [{'dayOfWeek': 'monday'}]})
    backend.add('GET', '/therapists/7/session-fee', {'sessionFee': 650.0})
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    asyncio.run(screen.load())

    assert screen.error == "Could not load this therapist's availability."
    assert screen.template is None
    assert all(entry.disabled for entry in screen.calendar)


def test_submit_with_unreadable_confirmation_still_counts_as_booked(api, backend, navigator) -> None:
    _serve_template(backend)
    backend.add('POST', '/bookings', {'ok': True}, status_code=201)
    screen = BookingScreen(api, navigator, '7', today=MONDAY)

    async def scenario():
        await screen.load()
        await screen.select_date(MONDAY)
        screen.select_slot(screen.slot_options[0])
        return await screen.submit()

    assert asyncio.run(scenario()) is None
    assert screen.alert.title == 'Success'
    assert navigator.current == Destination.HOME


def test_selection_made_during_fetch_is_cleared_when_slot_turns_out_booked(api, backend, navigator) -> None:
    _serve_template(backend)

    async def scenario():
        requested = asyncio.Event()
        release = asyncio.Event()

        async def booked_slots(request: httpx.Request) -> httpx.Response:
            requested.set()
            await release.wait()
            return httpx.Response(200, json=['09:00:00'])

        backend.add('GET', '/bookings/booked-slots', handler=booked_slots)
        screen = BookingScreen(api, navigator, '7', today=MONDAY)
        await screen.load()

        pending = asyncio.create_task(screen.select_date(MONDAY))
        await requested.wait()
        assert screen.select_slot(screen.slot_options[0]) is True
        release.set()
        await pending
        return screen

    screen = asyncio.run(scenario())

    assert screen.slot_options[0].booked is True
    assert screen.selected_slot is None
    assert asyncio.run(screen.submit()) is None
    assert screen.alert.title == 'Missing information'
    assert backend.calls('POST', '/bookings') == []


def test_selection_made_during_fetch_survives_when_slot_is_open(api, backend, navigator) -> None:
    _serve_template(backend)

    async def scenario():
        requested = asyncio.Event()
        release = asyncio.Event()

        async def booked_slots(request: httpx.Request) -> httpx.Response:
            requested.set()
            await release.wait()
            return httpx.Response(200, json=['14:00:00'])

        backend.add('GET', '/bookings/booked-slots', handler=booked_slots)
        screen = BookingScreen(api, navigator, '7', today=MONDAY)
        await screen.load()

        pending = asyncio.create_task(screen.select_date(MONDAY))
        await requested.wait()
        screen.select_slot(screen.slot_options[0])
        release.set()
        await pending
        return screen

    screen = asyncio.run(scenario())

    assert screen.selected_slot is screen.slot_options[0]
    assert screen.selected_slot.start == '09:00'
