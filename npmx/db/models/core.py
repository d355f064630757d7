"""SQLAlchemy models backing the sql storage backend."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from npmx.db.base import Base
from npmx.utils.datetime import utc_now


class KeyValueEntry(Base):
    __tablename__ = "kv_entries"
    __table_args__ = (UniqueConstraint("key", name="uq_kv_entries_key"),)

    key: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


__all__ = ["KeyValueEntry"]
