import logging
from dataclasses import dataclass

from neuromeet.client.api import NeuroMeetApi
from neuromeet.client.http_client import RequestError
from neuromeet.client.models import AvailabilitySlot, UserProfile
from neuromeet.client.navigation import Alert, Destination, Navigator
from neuromeet.client.reconciliation import DAY_NAMES, short_time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeBlock:
    key: str
    label: str
    start: str
    end: str


TIME_BLOCKS = (
    TimeBlock('morning', 'Morning', '08:00', '12:00'),
    TimeBlock('afternoon', 'Afternoon', '12:00', '17:00'),
    TimeBlock('evening', 'Evening', '17:00', '21:00'),
)

BLOCKS_BY_START = {block.start: block for block in TIME_BLOCKS}

Grid = dict[str, dict[str, bool]]


def empty_grid() -> Grid:
    return {day: {block.key: False for block in TIME_BLOCKS} for day in DAY_NAMES}


def grid_from_template(template: list[AvailabilitySlot]) -> Grid:
    """Rows whose start time matches a block fill that cell; anything else is ignored."""
    grid = empty_grid()
    for slot in template:
        day = slot.day_of_week.lower()
        block = BLOCKS_BY_START.get(short_time(slot.start_time) or '')
        if day not in grid or block is None:
            logger.debug('Ignoring availability row %s outside the editor grid', slot.id)
            continue
        grid[day][block.key] = slot.is_available
    return grid


def slots_from_grid(grid: Grid) -> list[AvailabilitySlot]:
    return [
        AvailabilitySlot(
            day_of_week=day,
            is_weekday=index < 5,
            start_time=f'{block.start}:00',
            end_time=f'{block.end}:00',
            is_available=grid[day][block.key],
        )
        for index, day in enumerate(DAY_NAMES)
        for block in TIME_BLOCKS
    ]


class AvailabilityEditorScreen:
    """Weekly grid editor for the signed-in therapist.

    ``grid`` stays None until the stored template has been loaded, and
    ``save`` refuses to send anything in that state.
    """

    def __init__(self, api: NeuroMeetApi, navigator: Navigator):
        self.api = api
        self.navigator = navigator
        self.therapist: UserProfile | None = None
        self.grid: Grid | None = None
        self.changed = False
        self.loading = False
        self.saving = False
        self.error: str | None = None
        self.alert: Alert | None = None

    @property
    def loaded(self) -> bool:
        return self.grid is not None

    async def load(self) -> bool:
        if not self.api.token_store.get_token():
            self.navigator.replace(Destination.LOGIN)
            return False

        self.loading = True
        self.error = None
        try:
            profile = await self.api.get_profile()
            if profile.role != 'therapist':
                self.error = 'Therapist profile not found.'
                return False

            weekly = await self.api.get_availability(profile.id)
        except RequestError as exc:
            logger.warning('Availability editor could not load: %s', exc.message)
            self.error = 'Could not load your availability. Please try again later.'
            return False
        finally:
            self.loading = False

        self.therapist = profile
        self.grid = grid_from_template(weekly.all_slots)
        self.changed = False
        return True

    def toggle_cell(self, day: str, block: str) -> None:
        if self.grid is None:
            return
        self.grid[day][block] = not self.grid[day][block]
        self.changed = True

    def set_day(self, day: str, value: bool) -> None:
        if self.grid is None:
            return
        for block in TIME_BLOCKS:
            self.grid[day][block.key] = value
        self.changed = True

    def set_block(self, block: str, value: bool) -> None:
        if self.grid is None:
            return
        for day in DAY_NAMES:
            self.grid[day][block] = value
        self.changed = True

    def is_day_available(self, day: str) -> bool:
        return self.grid is not None and all(self.grid[day].values())

    def is_block_available(self, block: str) -> bool:
        return self.grid is not None and all(self.grid[day][block] for day in DAY_NAMES)

    async def save(self) -> bool:
        if self.grid is None or self.therapist is None:
            self.alert = Alert('Error', 'Your availability has not been loaded yet.', error=True)
            return False

        self.saving = True
        try:
            await self.api.save_availability(self.therapist.id, slots_from_grid(self.grid))
        except RequestError as exc:
            logger.warning('Saving availability for therapist %s failed: %s', self.therapist.id, exc.message)
            self.alert = Alert('Error', 'Your availability could not be saved. Please try again later.', error=True)
            return False
        finally:
            self.saving = False

        self.changed = False
        self.alert = Alert('Success', 'Your availability has been saved.')
        return True

    def back(self) -> bool:
        """Leave the editor unless there are unsaved edits; returns whether it left."""
        if self.changed:
            self.alert = Alert('Warning', 'Your changes have not been saved.', error=True)
            return False
        self.navigator.back()
        return True
