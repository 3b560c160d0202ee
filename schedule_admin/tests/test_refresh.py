"""Tests for the refresh coordinator: request shape, failure paths, single-flight."""
import asyncio
import json

import httpx
import pytest

from schedule_admin.errors import AuthExpired, SessionChanged
from schedule_admin.session import SessionState
from schedule_admin.token_store import TokenPair


def test_refresh_posts_refresh_token_without_bearer(seed_session, make_controller, backend):
    seed_session(access_token="T1", refresh_token="R1")
    controller = make_controller()
    backend.route("POST", "/auth/refresh", httpx.Response(200, json={"accessToken": "T2"}))

    assert asyncio.run(controller.refresher.refresh()) == "T2"

    request = backend.calls("POST", "/auth/refresh")[0]
    assert json.loads(request.content) == {"refreshToken": "R1"}
    assert "Authorization" not in request.headers
    assert controller.tokens.get() == TokenPair(access_token="T2", refresh_token="R1")


def test_refresh_response_without_access_token_logs_out(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()
    backend.route("POST", "/auth/refresh", httpx.Response(200, json={"token": "T2"}))

    with pytest.raises(SessionChanged):
        asyncio.run(controller.refresher.refresh())
    assert controller.tokens.get() is None
    assert controller.identity is None
    assert controller.state is SessionState.UNAUTHENTICATED


def test_refresh_network_error_logs_out(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()
    backend.route("POST", "/auth/refresh", httpx.ConnectError("down"))

    assert asyncio.run(controller.refresher.refresh()) is None
    assert controller.is_authenticated() is False
    # Internal call: the failure is not surfaced on its own
    assert controller.notifier.drain() == []


def test_refresh_is_not_retried(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()
    backend.route("POST", "/auth/refresh", httpx.Response(503), httpx.Response(200, json={"accessToken": "T2"}))

    assert asyncio.run(controller.refresher.refresh()) is None
    assert len(backend.calls("POST", "/auth/refresh")) == 1


def test_missing_refresh_token_skips_network(seed_session, make_controller, backend):
    seed_session(refresh_token=None)
    controller = make_controller()

    assert asyncio.run(controller.refresher.refresh()) is None
    assert backend.requests == []
    assert controller.refresher.attempts == 0
    assert controller.navigator.location == "/login"


def test_concurrent_refresh_calls_share_one_request(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()

    async def refresh(request):
        await asyncio.sleep(0.01)
        return httpx.Response(200, json={"accessToken": "T2"})

    backend.route("POST", "/auth/refresh", handler=refresh)

    async def scenario():
        return await asyncio.gather(*(controller.refresher.refresh() for _ in range(3)))

    assert asyncio.run(scenario()) == ["T2", "T2", "T2"]
    assert len(backend.calls("POST", "/auth/refresh")) == 1


def test_sequential_refreshes_each_hit_the_backend(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()
    backend.route(
        "POST",
        "/auth/refresh",
        httpx.Response(200, json={"accessToken": "T2"}),
        httpx.Response(200, json={"accessToken": "T3"}),
    )

    assert asyncio.run(controller.refresher.refresh()) == "T2"
    assert asyncio.run(controller.refresher.refresh()) == "T3"
    assert controller.refresher.attempts == 2


def test_logout_during_refresh_discards_new_token(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()

    def refresh(request):
        controller.logout()
        return httpx.Response(200, json={"accessToken": "T2"})

    backend.route("POST", "/auth/refresh", handler=refresh)

    assert asyncio.run(controller.refresher.refresh()) is None
    assert controller.tokens.get() is None


def test_logout_during_refresh_fails_request_without_clearing_again(seed_session, make_controller, backend):
    seed_session()
    controller = make_controller()

    def refresh(request):
        controller.logout()
        return httpx.Response(200, json={"accessToken": "T2"})

    backend.route("GET", "/aulas", httpx.Response(401))
    backend.route("POST", "/auth/refresh", handler=refresh)

    with pytest.raises(AuthExpired):
        asyncio.run(controller.executor.get("/aulas"))
    assert controller.tokens.get() is None
    assert len(backend.calls("GET", "/aulas")) == 1


def test_login_during_refresh_keeps_new_session(seed_session, make_controller, backend):
    seed_session(access_token="T1", refresh_token="R1")
    controller = make_controller()

    async def refresh(request):
        # The user signs out and back in while the old session is refreshing
        controller.logout()
        await controller.login("b@c.com", "pw")
        return httpx.Response(200, json={"accessToken": "T2"})

    def aulas(request):
        if request.headers.get("Authorization") == "Bearer T9":
            return httpx.Response(200, json=[{"id": 1}])
        return httpx.Response(401)

    backend.route(
        "POST",
        "/auth/login",
        httpx.Response(200, json={"accessToken": "T9", "refreshToken": "R9", "userId": 9, "email": "b@c.com", "role": "admin"}),
    )
    backend.route("POST", "/auth/refresh", handler=refresh)
    backend.route("GET", "/aulas", handler=aulas)

    # The stale request is retried under the new session instead of logging it out
    assert asyncio.run(controller.executor.get("/aulas")) == [{"id": 1}]
    assert controller.tokens.get() == TokenPair(access_token="T9", refresh_token="R9")
    assert controller.identity.id == 9
    assert controller.is_authenticated() is True
    assert controller.state is SessionState.AUTHENTICATED
