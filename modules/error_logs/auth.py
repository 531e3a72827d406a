"""API-key authentication for the ingestion endpoint.

Clients send ``X-API-Key: <raw key>``. Only the sha256 hex digest of a key
is stored, so the raw value is shown once at creation (see ``cli.py``).

Usage::

    @router.post("")
    async def create_error(..., _=Depends(require_api_key)):
        ...
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone

import structlog
from fastapi import Header, HTTPException, Request
from sqlalchemy import select, update

from shared.config import get_settings
from shared.database import get_session_factory
from shared.models.api_key import ApiKey

logger = structlog.get_logger()

API_KEY_PREFIX = "elk_"


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    """Return a new random raw key."""
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


async def validate_api_key(session_factory, raw_key: str) -> ApiKey | None:
    """Return the active key matching ``raw_key`` and stamp ``last_used``."""
    key_hash = hash_api_key(raw_key)
    async with session_factory() as session:
        result = await session.execute(
            select(ApiKey).where(ApiKey.key_hash == key_hash, ApiKey.active.is_(True))
        )
        api_key = result.scalar_one_or_none()
        if api_key is None:
            return None

        await session.execute(
            update(ApiKey)
            .where(ApiKey.id == api_key.id)
            .values(last_used=datetime.now(timezone.utc))
        )
        await session.commit()
        return api_key


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None),
) -> ApiKey | None:
    """FastAPI dependency that validates ``X-API-Key``.

    Skips validation when ``require_api_key`` is disabled (dev mode).
    """
    settings = get_settings()
    if not settings.require_api_key:
        logger.warning(
            "api_key_auth_disabled",
            path=request.url.path,
            hint="Set REQUIRE_API_KEY=true for production",
        )
        return None

    if not x_api_key:
        raise HTTPException(status_code=401, detail="API key required")

    api_key = await validate_api_key(get_session_factory(), x_api_key)
    if api_key is None:
        logger.warning(
            "api_key_invalid",
            path=request.url.path,
            remote=request.client.host if request.client else "unknown",
        )
        raise HTTPException(status_code=401, detail="Invalid API key")
    return api_key
