"""Shared pydantic base and field helpers for the REST API.

The wire format uses camelCase keys while the ORM uses snake_case columns,
so every API model derives from :class:`CamelModel`.
"""

import re
from datetime import time
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

TIME_PATTERN = re.compile(r'^\d{2}:\d{2}:\d{2}$')


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def parse_clock_time(value) -> time:
    """Accept ``HH:MM:SS`` strings (or ``time`` objects) and reject anything else."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValueError(f'Invalid time format: {value!r}. Expected HH:MM:SS.')
    return time.fromisoformat(value)


# Times always go out as HH:MM:SS, never with microseconds.
ClockTime = Annotated[time, PlainSerializer(lambda value: value.strftime('%H:%M:%S'), return_type=str)]
