"""Supervised background tasks.

Cache population and invalidation run after the triggering request has
returned. Tasks spawned here are plain ``asyncio`` tasks, so cancelling the
request that spawned them does not cancel them. The group keeps a strong
reference to every pending task and logs any exception it raises.

Usage::

    tasks = BackgroundTasks()
    tasks.spawn(cache.invalidate_all(), name="invalidate_cache")
    ...
    await tasks.drain(timeout=5)  # on shutdown
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

logger = structlog.get_logger()


class BackgroundTasks:
    """Tracks detached tasks and reports their failures centrally."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return its task."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("background_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for pending tasks; cancel whatever is still running after ``timeout``."""
        if not self._tasks:
            return
        pending = list(self._tasks)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("background_tasks_cancelled", count=len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)
