"""Navigation targets and user-facing alerts shared by the screens."""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class Destination(str, Enum):
    LOGIN = '/auth/login'
    HOME = '/(tabs)'
    PENDING_APPROVAL = '/auth/pending-approval'
    ADMIN_PROFILE = '/(tabs)/profile/admin'
    CUSTOMER_PROFILE = '/(tabs)/profile/customer'
    THERAPIST_PROFILE = '/(tabs)/profile/therapist'
    THERAPIST_AVAILABILITY = '/(tabs)/profile/therapist-availability'
    PENDING_THERAPISTS = '/(tabs)/pending-therapists'
    BOOKING = '/booking'


@dataclass(frozen=True)
class Alert:
    title: str
    message: str
    error: bool = False


class Navigator:
    """Keeps a route stack; a UI layer would mirror ``current`` on screen."""

    def __init__(self, initial: Destination = Destination.HOME):
        self.stack: list[Destination] = [initial]

    @property
    def current(self) -> Destination:
        return self.stack[-1]

    def push(self, destination: Destination) -> None:
        logger.debug('push %s', destination.value)
        self.stack.append(destination)

    def replace(self, destination: Destination) -> None:
        logger.debug('replace %s -> %s', self.current.value, destination.value)
        self.stack[-1] = destination

    def back(self) -> None:
        if len(self.stack) > 1:
            self.stack.pop()
