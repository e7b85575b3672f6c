"""Map a therapist's weekly availability template onto concrete calendar dates.

The template is a list of recurring rows (day name, start/end time,
``is_available``). The booking screen shows a rolling window of dates
starting today; a date is bookable when at least one available row exists
for its weekday. Once a date is picked, that weekday's rows are listed in
start-time order and each one is flagged as booked when its start time is
among the booked start times returned by the server for that date.

All times are compared as ``HH:MM``; seconds are discarded.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from neuromeet.client.models import AvailabilitySlot
from neuromeet.core import config

logger = logging.getLogger(__name__)

# Indexed by date.weekday(): Monday is 0.
DAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


@dataclass(frozen=True)
class CalendarDay:
    date: date
    bookable: bool

    @property
    def disabled(self) -> bool:
        return not self.bookable


@dataclass(frozen=True)
class SlotOption:
    slot: AvailabilitySlot
    start: str
    end: str
    booked: bool

    @property
    def selectable(self) -> bool:
        return not self.booked


def day_name(day: date) -> str:
    return DAY_NAMES[day.weekday()]


def short_time(value: str | None) -> str | None:
    """Truncate ``HH:MM:SS`` to ``HH:MM``. Returns None for anything malformed."""
    if not isinstance(value, str) or ':' not in value:
        return None
    hours, _, rest = value.partition(':')
    minutes = rest[:2]
    if len(hours) != 2 or len(minutes) != 2 or not (hours + minutes).isdigit():
        return None
    return f'{hours}:{minutes}'


def normalize_booked_times(values: Iterable[str] | None) -> set[str]:
    booked: set[str] = set()
    for value in values or ():
        short = short_time(value)
        if short is None:
            logger.warning('Ignoring malformed booked start time: %r', value)
            continue
        booked.add(short)
    return booked


def available_day_names(template: Iterable[AvailabilitySlot]) -> set[str]:
    # Rows with an unknown day name can never match a date.
    return {
        slot.day_of_week.lower()
        for slot in template
        if slot.is_available and slot.day_of_week.lower() in DAY_NAMES
    }


def disabled_calendar(today: date, days: int | None = None) -> list[CalendarDay]:
    days = config.CALENDAR_WINDOW_DAYS if days is None else days
    return [CalendarDay(today + timedelta(days=offset), False) for offset in range(days)]


def build_calendar(
    template: Iterable[AvailabilitySlot] | None,
    today: date,
    days: int | None = None,
) -> list[CalendarDay]:
    """Mark each date in ``[today, today + days)`` bookable or disabled.

    ``template=None`` means the template could not be loaded: every date is
    disabled.
    """
    days = config.CALENDAR_WINDOW_DAYS if days is None else days
    if template is None:
        return disabled_calendar(today, days)

    open_days = available_day_names(template)
    calendar: list[CalendarDay] = []
    for offset in range(days):
        current = today + timedelta(days=offset)
        calendar.append(CalendarDay(current, day_name(current) in open_days))
    return calendar


def slots_for_date(
    template: Iterable[AvailabilitySlot] | None,
    selected: date,
    booked_start_times: Iterable[str] | None = None,
) -> list[SlotOption]:
    """List the selected date's available rows, earliest first, flagging booked ones."""
    if template is None:
        return []

    name = day_name(selected)
    booked = normalize_booked_times(booked_start_times)
    rows = [
        slot for slot in template
        if slot.is_available and slot.day_of_week.lower() == name
    ]
    rows.sort(key=lambda slot: slot.start_time or '')

    options: list[SlotOption] = []
    for slot in rows:
        start = short_time(slot.start_time)
        if start is None:
            logger.warning('Skipping availability %s with malformed start time %r', slot.id, slot.start_time)
            continue
        options.append(
            SlotOption(
                slot=slot,
                start=start,
                end=short_time(slot.end_time) or '',
                booked=start in booked,
            )
        )
    return options


def open_slots(options: Iterable[SlotOption]) -> list[SlotOption]:
    return [option for option in options if option.selectable]
