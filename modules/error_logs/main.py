"""Error logs service — FastAPI app with the queue drain worker."""

from __future__ import annotations

import asyncio

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from modules.error_logs.cache import ErrorCache
from modules.error_logs.queue import IngestionQueue
from modules.error_logs.routes import router
from modules.error_logs.service import ErrorService
from modules.error_logs.store import ErrorStore
from modules.error_logs.worker import drain_loop
from shared.background import BackgroundTasks
from shared.config import get_settings
from shared.database import dispose_engine, get_session_factory
from shared.redis import close_redis, get_redis
from shared.schemas.common import HealthResponse

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()
app = FastAPI(title="Error Logs", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)

_worker_task: asyncio.Task | None = None
_worker_stop: asyncio.Event | None = None
_background: BackgroundTasks | None = None


@app.on_event("startup")
async def startup():
    global _worker_task, _worker_stop, _background
    settings = get_settings()
    session_factory = get_session_factory()
    redis_client = await get_redis()

    store = ErrorStore(session_factory)
    queue = IngestionQueue(
        redis_client,
        recent_max=settings.recent_errors_max,
        dequeue_timeout=settings.dequeue_timeout_seconds,
    )
    cache = ErrorCache(
        redis_client,
        list_ttl=settings.list_cache_ttl_seconds,
        stats_ttl=settings.stats_cache_ttl_seconds,
    )
    _background = BackgroundTasks()
    app.state.service = ErrorService(store, queue, cache, _background)

    # Single consumer per process
    _worker_stop = asyncio.Event()
    _worker_task = asyncio.create_task(
        drain_loop(
            queue,
            store,
            cache,
            _background,
            _worker_stop,
            retry_delay=settings.dequeue_retry_delay_seconds,
        ),
        name="drain_worker",
    )
    logger.info("error_logs_ready", environment=settings.environment)


@app.on_event("shutdown")
async def shutdown():
    settings = get_settings()
    if _worker_task and not _worker_task.done():
        _worker_stop.set()
        # The worker notices the stop flag once its blocking pop returns.
        try:
            await asyncio.wait_for(_worker_task, timeout=settings.dequeue_timeout_seconds + 1)
        except asyncio.TimeoutError:
            logger.warning("drain_worker_stop_timeout")

    if _background is not None:
        await _background.drain(timeout=5)

    await close_redis()
    await dispose_engine()
    logger.info("error_logs_shutdown")


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
