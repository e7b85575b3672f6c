import inspect
import json

import httpx
import pytest

from neuromeet.client.api import NeuroMeetApi
from neuromeet.client.http_client import ApiClient
from neuromeet.client.navigation import Destination, Navigator
from neuromeet.client.token_store import TokenStore

BASE_URL = 'http://testserver/api'


class FakeBackend:
    """Route table for httpx.MockTransport keyed by (method, path below /api)."""

    def __init__(self):
        self.routes = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, payload=None, status_code: int = 200, handler=None) -> None:
        self.routes[(method.upper(), '/api' + path)] = (status_code, payload, handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request for request in self.requests
            if request.method == method.upper() and request.url.path == '/api' + path
        ]

    def json_body(self, request: httpx.Request):
        return json.loads(request.content)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={'detail': 'Not Found'})

        status_code, payload, handler = route
        if handler is not None:
            result = handler(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        return httpx.Response(status_code, json=payload)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def token_store() -> TokenStore:
    return TokenStore('test-token')


@pytest.fixture
def api(backend, token_store) -> NeuroMeetApi:
    return NeuroMeetApi(ApiClient(token_store, base_url=BASE_URL, transport=httpx.MockTransport(backend)))


@pytest.fixture
def navigator() -> Navigator:
    navigator = Navigator(Destination.HOME)
    navigator.push(Destination.BOOKING)
    return navigator
