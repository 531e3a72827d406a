"""Pydantic schemas for the error logs service."""

from shared.schemas.common import HealthResponse
from shared.schemas.errors import (
    CreateErrorRequest,
    ErrorListResponse,
    ErrorRecord,
    StatsResponse,
)

__all__ = [
    "CreateErrorRequest",
    "ErrorListResponse",
    "ErrorRecord",
    "HealthResponse",
    "StatsResponse",
]
