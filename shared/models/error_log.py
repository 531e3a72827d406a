"""Persisted error report."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorLog(Base):
    __tablename__ = "errors"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    # What happened
    level: Mapped[str] = mapped_column(String, index=True)      # "error", "warning", "info", ...
    message: Mapped[str] = mapped_column(Text)
    stack_trace: Mapped[str | None] = mapped_column(Text, default=None)
    context: Mapped[dict] = mapped_column(JSON, default=dict)

    # Where it came from
    source: Mapped[str] = mapped_column(String, index=True)
    environment: Mapped[str] = mapped_column(String, default="production")
    user_agent: Mapped[str | None] = mapped_column(Text, default=None)
    ip_address: Mapped[str | None] = mapped_column(String, default=None)
    url: Mapped[str | None] = mapped_column(Text, default=None)

    # Grouping. count/first_seen/last_seen are never merged across fingerprints.
    fingerprint: Mapped[str | None] = mapped_column(String(16), default=None, index=True)
    count: Mapped[int] = mapped_column(Integer, default=1)
    first_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # Lifecycle
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
