"""Drain worker — moves queued error reports into Postgres."""

from __future__ import annotations

import asyncio

import structlog

from modules.error_logs.cache import ErrorCache
from modules.error_logs.queue import IngestionQueue, QueueError
from modules.error_logs.store import ErrorStore
from shared.background import BackgroundTasks
from shared.schemas.errors import ErrorRecord

logger = structlog.get_logger()

# Fixed delay after a failed dequeue (seconds)
RETRY_DELAY_SECONDS = 1.0


async def drain_loop(
    queue: IngestionQueue,
    store: ErrorStore,
    cache: ErrorCache,
    tasks: BackgroundTasks,
    stop: asyncio.Event,
    retry_delay: float = RETRY_DELAY_SECONDS,
) -> None:
    """Consume the ingestion queue until ``stop`` is set.

    One record is in flight at a time. Dequeue failures are retried forever
    after ``retry_delay``. A record whose insert fails is logged and dropped,
    never requeued.
    """
    logger.info("drain_worker_started")

    while not stop.is_set():
        try:
            record = await queue.dequeue()
        except QueueError as e:
            logger.error("dequeue_failed", error=str(e))
            await asyncio.sleep(retry_delay)
            continue

        if record is None:
            continue

        await _process_record(record, store, cache, tasks)

    logger.info("drain_worker_stopped")


async def _process_record(
    record: ErrorRecord,
    store: ErrorStore,
    cache: ErrorCache,
    tasks: BackgroundTasks,
) -> bool:
    """Persist one dequeued record. Returns False if it was dropped."""
    try:
        await store.create_error(record)
    except Exception as e:
        logger.error(
            "queued_error_dropped",
            error_id=str(record.id),
            fingerprint=record.fingerprint,
            error=str(e),
        )
        return False

    logger.debug("queued_error_persisted", error_id=str(record.id))
    tasks.spawn(cache.invalidate_all(), name="invalidate_cache:drain")
    return True
