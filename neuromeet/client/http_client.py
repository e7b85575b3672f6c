import logging
from typing import Any

import httpx

from neuromeet.client.token_store import TokenStore
from neuromeet.core import config

logger = logging.getLogger(__name__)


class RequestError(Exception):
    """A call failed: non-2xx status from the server, or no response at all."""

    def __init__(self, status_code: int | None, message: str, payload: Any = None, server_message: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload
        self.server_message = server_message


class NetworkError(RequestError):
    def __init__(self, message: str):
        super().__init__(None, message)


class UnexpectedResponseError(RequestError):
    """The server answered 2xx but the body did not have the expected shape."""

    def __init__(self, payload: Any, message: str = 'Unexpected response from server.'):
        super().__init__(None, message, payload)


def extract_error_message(response: httpx.Response) -> tuple[str | None, Any]:
    """Return the server-provided error message (if any) and the decoded body."""
    try:
        payload = response.json()
    except ValueError:
        return None, None

    if isinstance(payload, dict):
        detail = payload.get('detail') or payload.get('message')
        if isinstance(detail, str) and detail:
            return detail, payload
        # pydantic validation errors come back as a list of {loc, msg, ...}
        if isinstance(detail, list) and detail and isinstance(detail[0], dict) and detail[0].get('msg'):
            return str(detail[0]["msg"]), payload
    return None, payload


class ApiClient:
    """Thin JSON-over-HTTP wrapper that forwards the stored bearer token.

    No retries, no backoff and no timeout policy beyond httpx's defaults:
    failures surface to the caller immediately.
    """

    def __init__(
        self,
        token_store: TokenStore,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_store = token_store
        self.base_url = (base_url or config.NEUROMEET_API_URL).rstrip('/')
        self._transport = transport

    def build_headers(self) -> dict[str, str]:
        headers = {'Accept': 'application/json'}
        token = self.token_store.get_token()
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    async def request(
        self,
        path: str,
        method: str = 'GET',
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f'{self.base_url}/{path.lstrip("/")}'
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.request(
                    method.upper(),
                    url,
                    headers=self.build_headers(),
                    json=body,
                    params=params,
                )
            except httpx.TransportError as exc:
                logger.warning('%s %s failed: %s', method.upper(), url, exc)
                raise NetworkError(f'Could not reach the server: {exc}') from exc

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return None

        server_message, payload = extract_error_message(response)
        message = server_message or response.reason_phrase or f"HTTP {response.status_code}"
        logger.warning('%s %s returned %s: %s', method.upper(), url, response.status_code, message)
        raise RequestError(response.status_code, message, payload, server_message)
