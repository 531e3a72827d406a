"""Redis cache-aside layer for error list pages and aggregate stats."""

from __future__ import annotations

import json
from urllib.parse import quote

import structlog

from shared.schemas.errors import ErrorRecord, StatsResponse

logger = structlog.get_logger()

ERROR_CACHE_PREFIX = "error_cache:"
STATS_CACHE_KEY = "stats_cache"
CACHE_KEYS_SET_KEY = "cache_keys_set"

# Default TTLs in seconds
LIST_CACHE_TTL = 120    # 2 minutes
STATS_CACHE_TTL = 300   # 5 minutes


def _key_part(value: str | None) -> str:
    # "_" separates key fields, so it must not appear unescaped in a value.
    return quote(value or "", safe="").replace("_", "%5F")


def list_cache_key(
    limit: int, offset: int, level: str | None = None, source: str | None = None
) -> str:
    """Build the cache key for one filtered page."""
    return f"{ERROR_CACHE_PREFIX}list_{limit}_{offset}_{_key_part(level)}_{_key_part(source)}"


class ErrorCache:
    """Best-effort cache. Every Redis failure is logged and treated as a miss."""

    def __init__(
        self,
        redis_client,
        list_ttl: int = LIST_CACHE_TTL,
        stats_ttl: int = STATS_CACHE_TTL,
    ):
        self._redis = redis_client
        self.list_ttl = list_ttl
        self.stats_ttl = stats_ttl

    async def get_list(self, key: str) -> tuple[list[ErrorRecord], int | None] | None:
        """Return ``(errors, total)`` for a cached page, or None on miss.

        ``total`` is None for entries written without one.
        """
        try:
            raw = await self._redis.get(key)
            if raw is None:
                logger.debug("cache_miss", key=key)
                return None
            data = json.loads(raw)
            if isinstance(data, list):
                errors, total = data, None
            else:
                errors, total = data["errors"], data.get("total")
            records = [ErrorRecord.model_validate(e) for e in errors]
        except Exception as e:
            logger.warning("cache_get_error", key=key, error=str(e))
            return None

        logger.debug("cache_hit", key=key, count=len(records))
        return records, total

    async def set_list(self, key: str, errors: list[ErrorRecord], total: int) -> None:
        """Store a page with its true total and record the key for invalidation."""
        payload = json.dumps(
            {"errors": [e.model_dump(mode="json") for e in errors], "total": total}
        )
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.set(key, payload, ex=self.list_ttl)
                pipe.sadd(CACHE_KEYS_SET_KEY, key)
                # Refreshed on every write, so the set outlives every page it names.
                pipe.expire(CACHE_KEYS_SET_KEY, self.list_ttl)
                await pipe.execute()
            logger.debug("cache_set", key=key, count=len(errors), ttl=self.list_ttl)
        except Exception as e:
            logger.warning("cache_set_error", key=key, error=str(e))

    async def get_stats(self) -> StatsResponse | None:
        try:
            raw = await self._redis.get(STATS_CACHE_KEY)
            if raw is None:
                logger.debug("cache_miss", key=STATS_CACHE_KEY)
                return None
            stats = StatsResponse.model_validate_json(raw)
        except Exception as e:
            logger.warning("cache_get_error", key=STATS_CACHE_KEY, error=str(e))
            return None

        logger.debug("cache_hit", key=STATS_CACHE_KEY)
        return stats

    async def set_stats(self, stats: StatsResponse) -> None:
        try:
            await self._redis.set(STATS_CACHE_KEY, stats.model_dump_json(), ex=self.stats_ttl)
            logger.debug("cache_set", key=STATS_CACHE_KEY, ttl=self.stats_ttl)
        except Exception as e:
            logger.warning("cache_set_error", key=STATS_CACHE_KEY, error=str(e))

    async def invalidate_all(self) -> None:
        """Drop every tracked list page and the stats entry.

        Safe to run concurrently: deleting a missing key or removing a
        missing set member is a no-op.
        """
        try:
            keys = list(await self._redis.smembers(CACHE_KEYS_SET_KEY))
            async with self._redis.pipeline(transaction=True) as pipe:
                if keys:
                    pipe.delete(*keys)
                    pipe.srem(CACHE_KEYS_SET_KEY, *keys)
                pipe.delete(STATS_CACHE_KEY)
                await pipe.execute()
            logger.info("cache_invalidated", list_keys=len(keys))
        except Exception as e:
            logger.warning("cache_invalidate_error", error=str(e))
