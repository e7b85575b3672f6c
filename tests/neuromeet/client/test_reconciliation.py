from datetime import date, timedelta

import pytest

from neuromeet.client.models import AvailabilitySlot
from neuromeet.client.reconciliation import (
    build_calendar,
    day_name,
    disabled_calendar,
    normalize_booked_times,
    open_slots,
    short_time,
    slots_for_date,
)

MONDAY = date(2025, 1, 6)


def _slot(slot_id: int, day: str, start: str, end: str, is_available: bool = True) -> AvailabilitySlot:
    return AvailabilitySlot(
        id=slot_id,
        user_id=7,
        day_of_week=day,
        is_weekday=day not in ('saturday', 'sunday'),
        start_time=start,
        end_time=end,
        is_available=is_available,
    )


TEMPLATE = [
    _slot(1, 'monday', '14:00:00', '15:00:00'),
    _slot(2, 'monday', '09:00:00', '10:00:00'),
    _slot(3, 'monday', '11:00:00', '12:00:00'),
    _slot(4, 'wednesday', '10:00:00', '11:00:00', is_available=False),
    _slot(5, 'funday', '10:00:00', '11:00:00'),
]


def test_day_name_follows_weekday() -> None:
    assert day_name(MONDAY) == 'monday'
    assert day_name(MONDAY + timedelta(days=6)) == 'sunday'


@pytest.mark.parametrize(
    ('value', 'expected'),
    [
        ('14:00:00', '14:00'),
        ('09:30', '09:30'),
        ('9:00:00', None),
        ('noon', None),
        (None, None),
    ],
)
def test_short_time(value, expected) -> None:
    assert short_time(value) == expected


def test_normalize_booked_times_drops_malformed_values() -> None:
    assert normalize_booked_times(['14:00:00', 'later', '09:00']) == {'14:00', '09:00'}
    assert normalize_booked_times(None) == set()


def test_build_calendar_marks_only_template_weekdays() -> None:
    calendar = build_calendar(TEMPLATE, MONDAY)

    assert len(calendar) == 30
    assert calendar[0].date == MONDAY
    assert calendar[-1].date == MONDAY + timedelta(days=29)
    bookable = [entry.date for entry in calendar if entry.bookable]
    assert bookable == [MONDAY + timedelta(days=offset) for offset in range(0, 30, 7)]
    # Wednesday only has an unavailable row; the unknown day never matches.
    assert calendar[2].disabled


def test_build_calendar_without_template_disables_every_date() -> None:
    calendar = build_calendar(None, MONDAY)

    assert len(calendar) == 30
    assert all(entry.disabled for entry in calendar)
    assert calendar == disabled_calendar(MONDAY)


def test_build_calendar_respects_window_size() -> None:
    assert len(build_calendar(TEMPLATE, MONDAY, days=7)) == 7


def test_slots_for_date_sorts_and_flags_booked() -> None:
    options = slots_for_date(TEMPLATE, MONDAY, ['14:00:00'])

    assert [option.start for option in options] == ['09:00', '11:00', '14:00']
    assert [option.end for option in options] == ['10:00', '12:00', '15:00']
    assert [option.booked for option in options] == [False, False, True]
    assert [option.start for option in open_slots(options)] == ['09:00', '11:00']
    assert options[2].slot.id == 1


def test_slots_for_date_empty_for_other_days_and_missing_template() -> None:
    assert slots_for_date(TEMPLATE, MONDAY + timedelta(days=2)) == []
    assert slots_for_date(None, MONDAY) == []
