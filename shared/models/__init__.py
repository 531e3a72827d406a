"""SQLAlchemy models."""

from shared.models.api_key import ApiKey
from shared.models.base import Base
from shared.models.error_log import ErrorLog

__all__ = [
    "ApiKey",
    "Base",
    "ErrorLog",
]
