import logging

from neuromeet.client.api import NeuroMeetApi
from neuromeet.client.http_client import RequestError
from neuromeet.client.models import UserProfile
from neuromeet.client.navigation import Alert

logger = logging.getLogger(__name__)


class ModerationScreen:
    """Admin list of therapist applications awaiting a decision."""

    def __init__(self, api: NeuroMeetApi):
        self.api = api
        self.pending: list[UserProfile] = []
        self.loading = False
        self.error: str | None = None
        self.alert: Alert | None = None

    async def load(self) -> list[UserProfile]:
        self.loading = True
        self.error = None
        try:
            self.pending = await self.api.get_pending_therapists()
        except RequestError as exc:
            logger.warning('Pending therapists could not be loaded: %s', exc.message)
            self.error = exc.message
        finally:
            self.loading = False
        return self.pending

    async def approve(self, therapist_id: int) -> bool:
        return await self._decide(therapist_id, self.api.approve_therapist, 'Therapist approved.')

    async def reject(self, therapist_id: int) -> bool:
        return await self._decide(therapist_id, self.api.reject_therapist, 'Therapist application rejected.')

    async def _decide(self, therapist_id: int, action, fallback_message: str) -> bool:
        try:
            response = await action(therapist_id)
        except RequestError as exc:
            logger.warning('Moderation of therapist %s failed: %s', therapist_id, exc.message)
            self.alert = Alert('Error', exc.message, error=True)
            return False

        self.pending = [therapist for therapist in self.pending if therapist.id != therapist_id]
        message = response.get('message') if isinstance(response, dict) else None
        self.alert = Alert('Success', message or fallback_message)
        return True
