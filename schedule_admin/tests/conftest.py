"""
Pytest configuration for schedule_admin. In-memory SQLite storage and a scripted backend
behind httpx.MockTransport, so tests never touch the filesystem or the network.
"""
import inspect

import httpx
import pytest

from schedule_admin.identity import IdentityStore, SessionIdentity
from schedule_admin.session import create_session
from schedule_admin.storage import DurableStorage
from schedule_admin.token_store import TokenPair, TokenStore

BASE_URL = "http://backend.test/api"


class FakeBackend:
    """Routes (method, path) to handlers and records every request it receives."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes = {}

    def route(self, method: str, path: str, *responses, handler=None) -> None:
        """
        Register a handler, or a sequence of responses served in order (the last one repeats).
        Each response is an httpx.Response or an Exception to raise.
        """
        if handler is None:
            queue = list(responses)

            def handler(request):
                item = queue.pop(0) if len(queue) > 1 else queue[0]
                if isinstance(item, Exception):
                    raise item
                # Fresh copy so a repeated response is never re-bound to a second request
                return httpx.Response(item.status_code, headers=item.headers, content=item.content)

        self.routes[(method.upper(), "/api" + path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == "/api" + path]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": "Not found"})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def storage():
    s = DurableStorage("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def seed_session(storage):
    """Write tokens and a cached user straight to durable storage, as a previous run would."""

    def _seed(access_token: str = "T1", refresh_token: str | None = "R1", user: SessionIdentity | None = None):
        TokenStore(storage).set(TokenPair(access_token=access_token, refresh_token=refresh_token))
        IdentityStore(storage).set(user or SessionIdentity(id=7, email="a@b.com", display_name="a", role="admin"))

    return _seed


@pytest.fixture
def make_controller(storage, backend):
    """Build a controller over the shared storage (call after seeding to rehydrate)."""

    def _make():
        return create_session(storage, base_url=BASE_URL, transport=backend.transport)

    return _make
