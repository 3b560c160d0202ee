"""
Request executor: every backend call goes through here.
Injects the bearer token, classifies the response, and on a 401 refreshes the access token
and retries the call exactly once. Terminal failures notify once and raise.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from schedule_admin.config import API_BASE_URL, REQUEST_TIMEOUT
from schedule_admin.errors import (
    ApiError,
    AuthExpired,
    MalformedResponse,
    NetworkError,
    RequestFailed,
    SessionChanged,
)
from schedule_admin.notify import Notifier
from schedule_admin.token_store import TokenStore

logger = logging.getLogger(__name__)


class AttemptState(Enum):
    INITIAL = "initial"
    AWAITING_REFRESH = "awaiting_refresh"
    RETRIED = "retried"


@dataclass(frozen=True)
class RequestOptions:
    method: str = "GET"
    body: Any = None
    params: dict[str, Any] | None = None
    headers: dict[str, str] = field(default_factory=dict)
    # Omit the Authorization header and never refresh (login, refresh itself)
    skip_auth: bool = False
    # Internal calls whose failure is reported by their caller set this to False
    notify: bool = True


@dataclass
class PendingRequest:
    """One logical request: the original call plus at most one retry."""

    endpoint: str
    options: RequestOptions
    state: AttemptState = AttemptState.INITIAL
    sent_token: str | None = None

    @property
    def is_retry(self) -> bool:
        return self.state is AttemptState.RETRIED

    def await_refresh(self) -> None:
        if self.state is not AttemptState.INITIAL:
            raise RuntimeError(f"cannot refresh from state {self.state.value}")
        self.state = AttemptState.AWAITING_REFRESH

    def mark_retried(self) -> None:
        if self.state is not AttemptState.AWAITING_REFRESH:
            raise RuntimeError(f"cannot retry from state {self.state.value}")
        self.state = AttemptState.RETRIED


def _error_message(response: httpx.Response) -> str | None:
    """Server-supplied message from a JSON error body ("message", then "error")."""
    try:
        data = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    for key in ("message", "error"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class RequestExecutor:
    def __init__(
        self,
        token_store: TokenStore,
        *,
        notifier: Notifier | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_store = token_store
        self.notifier = notifier or Notifier()
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else REQUEST_TIMEOUT
        self._transport = transport
        self._refresh: Callable[[], Awaitable[str | None]] | None = None
        self._on_session_expired: Callable[[], None] | None = None

    def attach_session(
        self,
        refresh: Callable[[], Awaitable[str | None]],
        on_session_expired: Callable[[], None],
    ) -> None:
        """Wire the refresh coordinator and the terminal-logout hook (done by the session controller)."""
        self._refresh = refresh
        self._on_session_expired = on_session_expired

    def url_for(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    async def execute(self, endpoint: str, options: RequestOptions | None = None) -> Any:
        """
        Run one logical request. Returns the parsed JSON body (None for 204/empty).
        Raises AuthExpired, RequestFailed, MalformedResponse or NetworkError.
        """
        request = PendingRequest(endpoint=endpoint, options=options or RequestOptions())
        try:
            return await self._run(request)
        except ApiError as e:
            if request.options.notify:
                self.notifier.error(e.message)
            raise

    async def _run(self, request: PendingRequest) -> Any:
        while True:
            response = await self._send(request)
            if response.status_code != 401 or request.options.skip_auth:
                return self._handle(response)

            if request.state is AttemptState.INITIAL:
                request.await_refresh()
                token = await self._recover(request)
                if token is None:
                    self._expire_session()
                    raise AuthExpired()
                request.mark_retried()
                continue

            logger.warning("%s %s still unauthorized after refresh", request.options.method, request.endpoint)
            self._expire_session()
            raise AuthExpired()

    async def _recover(self, request: PendingRequest) -> str | None:
        """New access token for the retry, or None when the session cannot be recovered."""
        current = self._replaced_token(request)
        if current:
            # Another request refreshed while this one was in flight
            return current
        if self._refresh is None:
            return None
        try:
            return await self._refresh()
        except SessionChanged as e:
            # Logged out or logged in again mid-refresh: the store belongs to someone else now
            current = self._replaced_token(request)
            if current:
                return current
            raise AuthExpired() from e

    def _replaced_token(self, request: PendingRequest) -> str | None:
        current = self.token_store.access_token
        if current and current != request.sent_token:
            return current
        return None

    def _expire_session(self) -> None:
        if self._on_session_expired is not None:
            self._on_session_expired()
        else:
            self.token_store.clear()

    async def _send(self, request: PendingRequest) -> httpx.Response:
        options = request.options
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **options.headers,
        }
        token = None
        if not options.skip_auth:
            token = self.token_store.access_token
            if token:
                headers["Authorization"] = f"Bearer {token}"
        request.sent_token = token

        url = self.url_for(request.endpoint)
        logger.debug("%s %s (retry=%s)", options.method, url, request.is_retry)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(
                    options.method.upper(),
                    url,
                    json=options.body,
                    params=options.params,
                    headers=headers,
                )
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out: %s", options.method, url, e)
            raise NetworkError("The server took too long to respond") from e
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", options.method, url, e)
            raise NetworkError() from e
        logger.debug("%s %s -> %s", options.method, url, response.status_code)
        return response

    def _handle(self, response: httpx.Response) -> Any:
        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise MalformedResponse("Invalid JSON in server response", response.status_code) from e
        raise RequestFailed(response.status_code, _error_message(response))

    # Convenience verbs

    async def get(self, endpoint: str, *, params: dict[str, Any] | None = None, **kwargs) -> Any:
        return await self.execute(endpoint, RequestOptions(method="GET", params=params, **kwargs))

    async def post(self, endpoint: str, data: Any = None, **kwargs) -> Any:
        return await self.execute(endpoint, RequestOptions(method="POST", body=data, **kwargs))

    async def put(self, endpoint: str, data: Any = None, **kwargs) -> Any:
        return await self.execute(endpoint, RequestOptions(method="PUT", body=data, **kwargs))

    async def patch(self, endpoint: str, data: Any = None, **kwargs) -> Any:
        return await self.execute(endpoint, RequestOptions(method="PATCH", body=data, **kwargs))

    async def delete(self, endpoint: str, **kwargs) -> Any:
        return await self.execute(endpoint, RequestOptions(method="DELETE", **kwargs))
