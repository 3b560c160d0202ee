"""
Session controller: login, logout and authentication status for the routing layer.
The only component that performs login and terminal logout.
States: unauthenticated -> authenticating -> authenticated (and back on logout/expiry).
"""
import logging
from enum import Enum
from typing import Any

import httpx

from schedule_admin.config import (
    ADMIN_ENDPOINT,
    DEFAULT_AUTHENTICATED_PATH,
    LOGIN_ENDPOINT,
    LOGIN_PATH,
    PROFILE_ENDPOINT,
    REGISTER_ENDPOINT,
)
from schedule_admin.errors import (
    INVALID_CREDENTIALS_MESSAGE,
    LOGIN_FAILED_MESSAGE,
    ApiError,
    LoginFailed,
    MalformedResponse,
    NetworkError,
    RequestFailed,
)
from schedule_admin.executor import RequestExecutor
from schedule_admin.identity import IdentityStore, SessionIdentity
from schedule_admin.notify import Notifier
from schedule_admin.refresh import RefreshCoordinator
from schedule_admin.storage import DurableStorage
from schedule_admin.token_store import TokenPair, TokenStore

logger = logging.getLogger(__name__)

CONNECTION_FAILED_MESSAGE = "Connection error. Please check your internet connection."


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class Navigator:
    """Records where the application should be; the web layer turns it into redirects."""

    def __init__(self, location: str = "/"):
        self.location = location

    def go(self, path: str) -> None:
        logger.debug("Navigate %s -> %s", self.location, path)
        self.location = path


def _login_failure_message(error: ApiError) -> str:
    """User-facing text decided from the failure type and status code."""
    if isinstance(error, NetworkError):
        return CONNECTION_FAILED_MESSAGE
    if isinstance(error, RequestFailed) and error.status_code == 401:
        return INVALID_CREDENTIALS_MESSAGE
    return error.message or LOGIN_FAILED_MESSAGE


class SessionController:
    def __init__(
        self,
        executor: RequestExecutor,
        token_store: TokenStore,
        identity_store: IdentityStore,
        navigator: Navigator | None = None,
    ):
        self.executor = executor
        self.tokens = token_store
        self.identities = identity_store
        self.navigator = navigator or Navigator()
        self.refresher = RefreshCoordinator(executor, token_store, on_failure=self.expire)
        executor.attach_session(self.refresher.refresh, self.expire)
        self.state = SessionState.UNAUTHENTICATED
        self.rehydrate()

    @property
    def notifier(self) -> Notifier:
        return self.executor.notifier

    @property
    def identity(self) -> SessionIdentity | None:
        return self.identities.get()

    def is_authenticated(self) -> bool:
        return self.identities.get() is not None and self.tokens.get() is not None

    def rehydrate(self) -> SessionState:
        """Restore the session from durable storage; partial or unreadable data is cleared."""
        self.tokens.init()
        if self.is_authenticated():
            self.state = SessionState.AUTHENTICATED
        else:
            self._clear()
            self.state = SessionState.UNAUTHENTICATED
        logger.debug("Rehydrated session: %s", self.state.value)
        return self.state

    async def login(self, email: str, password: str) -> SessionIdentity:
        """Exchange credentials for tokens; raises LoginFailed with a user-facing message."""
        self.state = SessionState.AUTHENTICATING
        try:
            data = await self.executor.post(
                LOGIN_ENDPOINT,
                {"email": email, "password": password},
                skip_auth=True,
                # LoginFailed carries the user-facing text
                notify=False,
            )
            if not isinstance(data, dict) or not data.get("accessToken") or data.get("userId") is None:
                raise MalformedResponse("Unexpected login response from server")
            try:
                identity = SessionIdentity.from_login_response(data)
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedResponse("Unexpected login response from server") from e
        except ApiError as e:
            # Guard against partial writes from a half-failed attempt
            self._clear()
            self.state = SessionState.UNAUTHENTICATED
            logger.info("Login failed (status=%s): %s", e.status_code, e.message)
            raise LoginFailed(_login_failure_message(e), cause=e) from e

        self.tokens.set(TokenPair(access_token=data["accessToken"], refresh_token=data.get("refreshToken") or None))
        self.identities.set(identity)
        self.state = SessionState.AUTHENTICATED
        logger.info("Logged in user id=%s role=%s", identity.id, identity.role)
        self.navigator.go(DEFAULT_AUTHENTICATED_PATH)
        return identity

    def logout(self) -> None:
        """Clear tokens and identity and go to the login page. Idempotent."""
        self._clear()
        self.state = SessionState.UNAUTHENTICATED
        if self.navigator.location != LOGIN_PATH:
            self.navigator.go(LOGIN_PATH)

    def expire(self) -> None:
        """Terminal logout after an unrecoverable 401."""
        if self.state is SessionState.AUTHENTICATED:
            logger.info("Session expired; logging out")
        self.logout()

    def _clear(self) -> None:
        self.tokens.clear()
        self.identities.clear()

    async def get_profile(self) -> SessionIdentity:
        """Fetch the current user's profile and refresh the cached identity."""
        data = await self.executor.get(PROFILE_ENDPOINT)
        if not isinstance(data, dict):
            raise MalformedResponse("Unexpected profile response from server")
        try:
            identity = SessionIdentity.from_profile(data)
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponse("Unexpected profile response from server") from e
        self.identities.set(identity)
        return identity

    async def verify_admin(self) -> bool:
        """
        True when the backend accepts the session on the admin-only endpoint.
        Rejections and network errors give False, but AuthExpired propagates: the session is gone.
        """
        try:
            await self.executor.get(ADMIN_ENDPOINT)
        except (RequestFailed, NetworkError) as e:
            logger.info("Admin verification failed: %s", e.message)
            return False
        return True

    async def register(self, name: str, email: str, password: str, role: str = "admin") -> dict[str, Any]:
        """Create a user; when the backend logs the new user in, store the session as login does."""
        data = await self.executor.post(
            REGISTER_ENDPOINT,
            {"nombre": name, "email": email, "password": password, "rol": role},
            skip_auth=True,
        )
        if not isinstance(data, dict) or not data.get("accessToken"):
            return data
        try:
            identity = SessionIdentity.from_profile(data["user"])
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            # Tokens and identity are stored together or not at all
            logger.warning("Register response carried tokens without a readable user: %s", e)
            self._clear()
            self.state = SessionState.UNAUTHENTICATED
            return data
        self.tokens.set(TokenPair(access_token=data["accessToken"], refresh_token=data.get("refreshToken") or None))
        self.identities.set(identity)
        self.state = SessionState.AUTHENTICATED
        return data


def create_session(
    storage: DurableStorage | None = None,
    *,
    base_url: str | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    navigator: Navigator | None = None,
) -> SessionController:
    """Build the whole pipeline over one durable storage and rehydrate it."""
    storage = storage or DurableStorage()
    tokens = TokenStore(storage)
    executor = RequestExecutor(tokens, base_url=base_url, timeout=timeout, transport=transport)
    return SessionController(executor, tokens, IdentityStore(storage), navigator=navigator)
