"""Wire schemas for error reports.

``ErrorRecord`` is the single serialized shape of a report: it is what the
HTTP API returns, what travels through the Redis ingestion queue, and what
the list cache stores. Field names are a compatibility surface for existing
clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ErrorRecord(BaseModel):
    """A single error report."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    timestamp: datetime
    level: str
    message: str
    stack_trace: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)
    source: str
    environment: str = "production"
    user_agent: str | None = None
    ip_address: str | None = None
    url: str | None = None
    fingerprint: str | None = None
    resolved: bool = False
    count: int = 1
    first_seen: datetime
    last_seen: datetime
    created_at: datetime
    updated_at: datetime

    @field_validator("context", mode="before")
    @classmethod
    def _null_context_is_empty(cls, v: object) -> object:
        return {} if v is None else v


class CreateErrorRequest(BaseModel):
    """Payload submitted by a client reporting an error."""

    level: str = ""
    message: str = ""
    stack_trace: str | None = None
    context: dict[str, Any] | None = None
    source: str = ""
    environment: str | None = None
    url: str | None = None


class ErrorListResponse(BaseModel):
    errors: list[ErrorRecord]
    total: int
    page: int
    limit: int


class StatsResponse(BaseModel):
    total_errors: int = 0
    resolved_errors: int = 0
    errors_today: int = 0
    errors_this_week: int = 0
    errors_this_month: int = 0
