"""
Token store: the current access/refresh token pair.
Held in memory and mirrored to durable storage on every mutation; rehydrated on construction.
Tokens are opaque strings; nothing here inspects them.
"""
from dataclasses import dataclass, replace

from schedule_admin.storage import DurableStorage

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str | None = None

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)


class TokenStore:
    """Single owner of the TokenPair. Other components read via get() and write via set*/clear."""

    def __init__(self, storage: DurableStorage):
        self._storage = storage
        self._tokens: TokenPair | None = None
        self.init()

    def init(self) -> None:
        """Rehydrate from durable storage. No access token means no pair."""
        access = self._storage.get_item(ACCESS_TOKEN_KEY)
        refresh = self._storage.get_item(REFRESH_TOKEN_KEY)
        self._tokens = TokenPair(access_token=access, refresh_token=refresh or None) if access else None

    def get(self) -> TokenPair | None:
        return self._tokens

    @property
    def access_token(self) -> str | None:
        return self._tokens.access_token if self._tokens else None

    @property
    def refresh_token(self) -> str | None:
        return self._tokens.refresh_token if self._tokens else None

    def set(self, pair: TokenPair) -> None:
        self._tokens = pair
        self._storage.set_item(ACCESS_TOKEN_KEY, pair.access_token)
        if pair.refresh_token:
            self._storage.set_item(REFRESH_TOKEN_KEY, pair.refresh_token)
        else:
            self._storage.remove_item(REFRESH_TOKEN_KEY)

    def set_access_token(self, access_token: str) -> None:
        """Partial update after a refresh that does not rotate the refresh token."""
        if self._tokens is None:
            self.set(TokenPair(access_token=access_token))
            return
        self._tokens = replace(self._tokens, access_token=access_token)
        self._storage.set_item(ACCESS_TOKEN_KEY, access_token)

    def clear(self) -> None:
        self._tokens = None
        self._storage.remove_item(ACCESS_TOKEN_KEY)
        self._storage.remove_item(REFRESH_TOKEN_KEY)
