"""
Refresh coordinator: trade the refresh token for a new access token.
Concurrent callers share one in-flight refresh. Any failure ends the session.
"""
import asyncio
import logging
from collections.abc import Callable

from schedule_admin.config import REFRESH_ENDPOINT
from schedule_admin.errors import ApiError, MalformedResponse, SessionChanged
from schedule_admin.executor import RequestExecutor
from schedule_admin.token_store import TokenStore

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    def __init__(
        self,
        executor: RequestExecutor,
        token_store: TokenStore,
        on_failure: Callable[[], None],
    ):
        self._executor = executor
        self._tokens = token_store
        self._on_failure = on_failure
        self._inflight: asyncio.Task | None = None
        # Network refresh calls issued (observability for callers and tests)
        self.attempts = 0

    async def refresh(self) -> str | None:
        """
        New access token, or None after forcing logout.
        Raises SessionChanged when the session was replaced while the call was in flight.
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._refresh())
        # shield: one waiter being cancelled must not cancel the refresh for the others
        return await asyncio.shield(self._inflight)

    async def _refresh(self) -> str | None:
        refresh_token = self._tokens.refresh_token
        if not refresh_token:
            logger.info("No refresh token stored; ending session")
            self._on_failure()
            return None

        self.attempts += 1
        try:
            data = await self._executor.post(
                REFRESH_ENDPOINT,
                {"refreshToken": refresh_token},
                skip_auth=True,
                notify=False,
            )
            access_token = data.get("accessToken") if isinstance(data, dict) else None
            if not access_token or not isinstance(access_token, str):
                raise MalformedResponse("Refresh response missing accessToken")
        except ApiError as e:
            logger.warning("Token refresh failed: %s", e.message)
            self._on_failure()
            return None

        if self._tokens.refresh_token != refresh_token:
            # Logged out (or logged in again) while the refresh was in flight
            logger.info("Session changed during refresh; discarding new access token")
            raise SessionChanged()

        # Refresh tokens are not rotated: keep the one we sent
        self._tokens.set_access_token(access_token)
        logger.debug("Access token refreshed")
        return access_token
