"""
Durable key-value storage backed by SQLite.
Every write commits immediately so a restart at any point sees the latest value.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schedule_admin.config import STORAGE_URL
from schedule_admin.models import Base, StorageEntry

logger = logging.getLogger(__name__)


def _make_engine(url: str):
    # SQLite: in-memory needs StaticPool so all connections share the same DB (for tests)
    if url.startswith("sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    connect_args = {"check_same_thread": False} if "sqlite" in url else {}
    return create_engine(url, connect_args=connect_args)


class DurableStorage:
    """localStorage-like get/set/remove over a single table."""

    def __init__(self, url: str | None = None):
        self.url = url or STORAGE_URL
        self.engine = _make_engine(self.url)
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        Base.metadata.create_all(bind=self.engine)

    def get_item(self, key: str) -> str | None:
        with self._sessions() as db:
            entry = db.get(StorageEntry, key)
            return entry.value if entry is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self._sessions() as db:
            entry = db.get(StorageEntry, key)
            if entry is None:
                db.add(StorageEntry(key=key, value=value))
            else:
                entry.value = value
            db.commit()

    def remove_item(self, key: str) -> None:
        with self._sessions() as db:
            entry = db.get(StorageEntry, key)
            if entry is not None:
                db.delete(entry)
                db.commit()

    def close(self) -> None:
        """Release pooled connections (a fresh instance re-reads from disk)."""
        self.engine.dispose()
