import logging

from neuromeet.client.api import NeuroMeetApi
from neuromeet.client.http_client import RequestError
from neuromeet.client.models import UserProfile
from neuromeet.client.navigation import Destination, Navigator

logger = logging.getLogger(__name__)

ROLE_DESTINATIONS = {
    'admin': Destination.ADMIN_PROFILE,
    'customer': Destination.CUSTOMER_PROFILE,
    'therapist': Destination.THERAPIST_PROFILE,
}


def destination_for_role(role: str | None) -> Destination:
    destination = ROLE_DESTINATIONS.get(role or '')
    if destination is None:
        # Unknown or missing roles land on the therapist profile. This mirrors
        # the app's historical behaviour and is probably unintended.
        logger.warning('Unknown role %r; falling back to the therapist profile', role)
        return Destination.THERAPIST_PROFILE
    return destination


class ProfileScreen:
    def __init__(self, api: NeuroMeetApi, navigator: Navigator):
        self.api = api
        self.navigator = navigator
        self.loading = False
        self.profile: UserProfile | None = None
        self.error: str | None = None

    async def load(self) -> Destination | None:
        if not self.api.token_store.get_token():
            self.navigator.replace(Destination.LOGIN)
            return Destination.LOGIN

        self.loading = True
        try:
            self.profile = await self.api.get_profile()
        except RequestError as exc:
            logger.warning('Profile could not be loaded: %s', exc.message)
            self.error = exc.message
            return None
        finally:
            self.loading = False

        destination = destination_for_role(self.profile.role)
        self.navigator.replace(destination)
        return destination
