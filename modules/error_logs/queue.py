"""Redis-backed ingestion queue and recent-errors ring buffer."""

from __future__ import annotations

import structlog
from pydantic import ValidationError

from shared.schemas.errors import ErrorRecord

logger = structlog.get_logger()

ERROR_QUEUE_KEY = "error_queue"
RECENT_ERRORS_KEY = "recent_errors"

DEFAULT_RECENT_MAX = 100
DEFAULT_DEQUEUE_TIMEOUT = 5  # seconds


class QueueError(Exception):
    """Raised when an entry cannot be taken off the queue."""


class IngestionQueue:
    """FIFO of pending reports plus a capped most-recent-first tail.

    Producers LPUSH and the drain worker BRPOPs, so the list behaves as a
    FIFO. Every enqueue writes both lists in one MULTI/EXEC pipeline.
    """

    def __init__(
        self,
        redis_client,
        recent_max: int = DEFAULT_RECENT_MAX,
        dequeue_timeout: int = DEFAULT_DEQUEUE_TIMEOUT,
    ):
        self._redis = redis_client
        self.recent_max = recent_max
        self.dequeue_timeout = dequeue_timeout

    async def enqueue(self, record: ErrorRecord) -> None:
        """Push ``record`` onto the queue. Redis failures propagate."""
        payload = record.model_dump_json()
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.lpush(ERROR_QUEUE_KEY, payload)
            pipe.lpush(RECENT_ERRORS_KEY, payload)
            pipe.ltrim(RECENT_ERRORS_KEY, 0, self.recent_max - 1)
            await pipe.execute()
        logger.debug("error_enqueued", error_id=str(record.id))

    async def dequeue(self) -> ErrorRecord | None:
        """Block up to ``dequeue_timeout`` seconds for the oldest entry.

        Returns None on timeout.
        """
        try:
            item = await self._redis.brpop(ERROR_QUEUE_KEY, timeout=self.dequeue_timeout)
        except Exception as e:
            raise QueueError(f"failed to dequeue error: {e}") from e

        if item is None:
            return None

        _, payload = item
        try:
            return ErrorRecord.model_validate_json(payload)
        except ValidationError as e:
            raise QueueError(f"failed to decode queued error: {e}") from e

    async def recent(self, limit: int = 20) -> list[ErrorRecord]:
        """Return up to ``limit`` of the latest enqueued reports, newest first."""
        limit = max(0, min(limit, self.recent_max))
        if limit == 0:
            return []

        raw_items = await self._redis.lrange(RECENT_ERRORS_KEY, 0, limit - 1)
        records = []
        for raw in raw_items:
            try:
                records.append(ErrorRecord.model_validate_json(raw))
            except ValidationError:
                logger.warning("recent_error_decode_failed")
        return records

    async def depth(self) -> int:
        """Number of reports waiting for the drain worker."""
        return await self._redis.llen(ERROR_QUEUE_KEY)
