"""
Session identity: the last-known authenticated principal, cached alongside the tokens.
Not a security boundary; the backend enforces authorization.
"""
import json
import logging
from dataclasses import asdict, dataclass

from schedule_admin.storage import DurableStorage

logger = logging.getLogger(__name__)

USER_KEY = "user"


@dataclass(frozen=True)
class SessionIdentity:
    id: int
    email: str
    display_name: str
    role: str

    @classmethod
    def from_login_response(cls, data: dict) -> "SessionIdentity":
        """Map POST /auth/login body (userId, email, nombre?, role) to an identity."""
        email = data.get("email") or ""
        return cls(
            id=int(data["userId"]),
            email=email,
            display_name=data.get("nombre") or email.split("@")[0],
            role=str(data.get("role") or "").lower(),
        )

    @classmethod
    def from_profile(cls, data: dict) -> "SessionIdentity":
        """Map GET /auth/profile body (id, email, nombre, rol) to an identity."""
        email = data.get("email") or ""
        return cls(
            id=int(data["id"]),
            email=email,
            display_name=data.get("nombre") or email.split("@")[0],
            role=str(data.get("rol") or data.get("role") or "").lower(),
        )


class IdentityStore:
    def __init__(self, storage: DurableStorage):
        self._storage = storage

    def get(self) -> SessionIdentity | None:
        """Cached identity, or None when absent or unreadable."""
        raw = self._storage.get_item(USER_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return SessionIdentity(
                id=int(data["id"]),
                email=str(data["email"]),
                display_name=str(data["display_name"]),
                role=str(data["role"]),
            )
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Ignoring unreadable cached user: %s", e)
            return None

    def set(self, identity: SessionIdentity) -> None:
        self._storage.set_item(USER_KEY, json.dumps(asdict(identity)))

    def clear(self) -> None:
        self._storage.remove_item(USER_KEY)
