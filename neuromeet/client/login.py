import logging
import re

from neuromeet.client.api import NeuroMeetApi
from neuromeet.client.http_client import RequestError
from neuromeet.client.models import LoginResult
from neuromeet.client.navigation import Alert, Destination, Navigator

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def validate_credentials(email: str, password: str) -> str | None:
    """Return a user-facing message for the first problem found, or None."""
    if not email or not email.strip():
        return 'Please enter your email address.'
    if not EMAIL_PATTERN.match(email.strip()):
        return 'Please enter a valid email address.'
    if not password:
        return 'Please enter your password.'
    return None


class LoginScreen:
    def __init__(self, api: NeuroMeetApi, navigator: Navigator):
        self.api = api
        self.navigator = navigator
        self.loading = False
        self.alert: Alert | None = None
        self.user: LoginResult | None = None

    async def submit(self, email: str, password: str) -> LoginResult | None:
        problem = validate_credentials(email, password)
        if problem:
            self.alert = Alert('Error', problem, error=True)
            return None

        self.loading = True
        try:
            result = await self.api.login(email.strip().lower(), password)
        except RequestError as exc:
            logger.warning('Login failed for %s: %s', email, exc.message)
            self.alert = Alert('Login failed', exc.server_message or 'Unable to log in. Please try again.', error=True)
            return None
        finally:
            self.loading = False

        self.api.token_store.set_token(result.token)
        self.user = result

        if result.is_pending:
            self.navigator.replace(Destination.PENDING_APPROVAL)
        else:
            self.navigator.replace(Destination.HOME)
        return result

    def logout(self) -> None:
        self.api.token_store.clear_token()
        self.user = None
        self.navigator.replace(Destination.LOGIN)
