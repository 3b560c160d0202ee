"""
SQLAlchemy models for durable client-side storage.
One key-value table mirrors what a browser keeps in localStorage.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class StorageEntry(Base):
    __tablename__ = "client_storage"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Opaque string; the owning store decides the format (token or JSON)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, onupdate=_utc_now)
