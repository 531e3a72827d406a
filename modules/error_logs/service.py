"""Error ingestion service: write path with fallback, cache-aside reads."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone

import structlog

from modules.error_logs.cache import ErrorCache, list_cache_key
from modules.error_logs.queue import IngestionQueue
from modules.error_logs.store import ErrorStore
from shared.background import BackgroundTasks
from shared.fingerprint import generate_fingerprint
from shared.schemas.errors import (
    CreateErrorRequest,
    ErrorListResponse,
    ErrorRecord,
    StatsResponse,
)

logger = structlog.get_logger()

DEFAULT_ENVIRONMENT = "production"


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def build_record(
    request: CreateErrorRequest,
    user_agent: str | None,
    ip_address: str | None,
) -> ErrorRecord:
    """Turn a client submission into a brand-new record (count=1)."""
    now = datetime.now(timezone.utc)
    return ErrorRecord(
        id=uuid.uuid4(),
        timestamp=now,
        level=request.level,
        message=request.message,
        stack_trace=request.stack_trace,
        context=request.context or {},
        source=request.source,
        environment=(
            request.environment if request.environment is not None else DEFAULT_ENVIRONMENT
        ),
        user_agent=user_agent,
        ip_address=ip_address,
        url=request.url,
        fingerprint=generate_fingerprint(request.message, request.stack_trace),
        resolved=False,
        count=1,
        first_seen=now,
        last_seen=now,
        created_at=now,
        updated_at=now,
    )


class ErrorService:
    """Create, read, resolve, and delete error reports.

    Writes go through the Redis queue and fall back to a direct insert when
    Redis is unavailable. Reads are cache-aside. Every mutation drops the
    whole cache.
    """

    def __init__(
        self,
        store: ErrorStore,
        queue: IngestionQueue,
        cache: ErrorCache,
        tasks: BackgroundTasks,
    ):
        self.store = store
        self.queue = queue
        self.cache = cache
        self.tasks = tasks

    async def create_error(
        self,
        request: CreateErrorRequest,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> ErrorRecord:
        record = build_record(request, user_agent, ip_address)

        try:
            await self.queue.enqueue(record)
        except Exception as e:
            logger.warning(
                "enqueue_failed_direct_write",
                error_id=str(record.id),
                error=str(e),
            )
            await self.store.create_error(record)
            await self.cache.invalidate_all()
            return record

        await self.cache.invalidate_all()
        return record

    async def get_errors(
        self,
        limit: int,
        offset: int,
        level: str | None = None,
        source: str | None = None,
    ) -> ErrorListResponse:
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")

        key = list_cache_key(limit, offset, level, source)
        page = offset // limit + 1
        start = time.perf_counter()

        cached = await self.cache.get_list(key)
        if cached is not None:
            errors, total = cached
            if total is None:
                total = len(errors) + offset
            logger.info("errors_cache_hit", key=key, duration_ms=_elapsed_ms(start))
            return ErrorListResponse(errors=errors, total=total, page=page, limit=limit)

        errors, total = await self.store.get_errors(limit, offset, level, source)
        logger.info("errors_cache_miss", key=key, duration_ms=_elapsed_ms(start))

        if errors:
            self.tasks.spawn(
                self.cache.set_list(key, errors, total), name=f"populate_cache:{key}"
            )

        return ErrorListResponse(errors=errors, total=total, page=page, limit=limit)

    async def get_error_by_id(self, error_id: uuid.UUID) -> ErrorRecord:
        return await self.store.get_error_by_id(error_id)

    async def resolve_error(self, error_id: uuid.UUID) -> None:
        await self.store.resolve_error(error_id)
        logger.info("error_resolved", error_id=str(error_id))
        self.tasks.spawn(self.cache.invalidate_all(), name="invalidate_cache:resolve")

    async def delete_error(self, error_id: uuid.UUID) -> None:
        await self.store.delete_error(error_id)
        logger.info("error_deleted", error_id=str(error_id))
        self.tasks.spawn(self.cache.invalidate_all(), name="invalidate_cache:delete")

    async def get_stats(self) -> StatsResponse:
        start = time.perf_counter()

        cached = await self.cache.get_stats()
        if cached is not None:
            logger.info("stats_cache_hit", duration_ms=_elapsed_ms(start))
            return cached

        stats = await self.store.get_stats()
        logger.info("stats_cache_miss", duration_ms=_elapsed_ms(start))
        self.tasks.spawn(self.cache.set_stats(stats), name="populate_cache:stats")
        return stats

    async def recent_errors(self, limit: int = 20) -> list[ErrorRecord]:
        """Live tail of the latest submissions, independent of persistence."""
        try:
            return await self.queue.recent(limit)
        except Exception as e:
            logger.warning("recent_errors_unavailable", error=str(e))
            return []
