"""Shared test fixtures for the error logs test suite.

Provides mock database sessions, an in-memory Redis stand-in, an in-memory
error store, and factory helpers so tests can run without Postgres or Redis.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from modules.error_logs.cache import ErrorCache
from modules.error_logs.queue import IngestionQueue
from modules.error_logs.service import ErrorService
from modules.error_logs.store import ErrorNotFound
from shared.background import BackgroundTasks
from shared.fingerprint import generate_fingerprint
from shared.models.error_log import ErrorLog
from shared.schemas.errors import ErrorRecord, StatsResponse


# ---------------------------------------------------------------------------
# Database mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db_session():
    """Mock async SQLAlchemy session.

    Supports the common patterns used in store code:
        session.execute(stmt) -> result
        session.add(obj)
        session.commit()
    """
    session = AsyncMock()
    session.add = MagicMock()
    # Default: execute returns a result with no rows
    default_result = MagicMock()
    default_result.scalar_one_or_none.return_value = None
    default_result.scalars.return_value.all.return_value = []
    default_result.rowcount = 1
    session.execute = AsyncMock(return_value=default_result)
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Mock async session factory compatible with ``async with factory() as session:``."""

    @asynccontextmanager
    async def _session_ctx():
        yield mock_db_session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory


# ---------------------------------------------------------------------------
# Redis mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_redis():
    """Mock async Redis client with common operations."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.delete = AsyncMock()
    redis.brpop = AsyncMock(return_value=None)
    return redis


class FakePipeline:
    """Buffers commands like ``redis.asyncio`` pipelines and runs them on execute()."""

    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._commands: list[tuple[str, tuple, dict]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self._commands.clear()
        return False

    def __getattr__(self, name):
        def _buffer(*args, **kwargs):
            self._commands.append((name, args, kwargs))
            return self

        return _buffer

    async def execute(self):
        self._redis._check("execute")
        results = []
        for name, args, kwargs in self._commands:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._commands.clear()
        return results


class FakeRedis:
    """In-memory subset of the Redis list, set, and string commands.

    ``fail_on`` names commands that should raise ``ConnectionError`` to
    simulate an unreachable server. BRPOP on an empty list yields once and
    returns None, as a timed-out pop would.
    """

    def __init__(self):
        self.strings: dict[str, str] = {}
        self.lists: dict[str, list[str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail_on: set[str] = set()

    def _check(self, command: str) -> None:
        if command in self.fail_on:
            raise ConnectionError(f"redis unavailable ({command})")

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        self._check("pipeline")
        return FakePipeline(self)

    # Strings

    async def get(self, key):
        self._check("get")
        return self.strings.get(key)

    async def set(self, key, value, ex=None):
        self._check("set")
        self.strings[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._check("delete")
        removed = 0
        for key in keys:
            for store in (self.strings, self.lists, self.sets):
                if key in store:
                    del store[key]
                    removed += 1
        return removed

    async def expire(self, key, seconds):
        self._check("expire")
        if key not in self.strings and key not in self.lists and key not in self.sets:
            return False
        self.ttls[key] = seconds
        return True

    # Lists

    async def lpush(self, key, *values):
        self._check("lpush")
        lst = self.lists.setdefault(key, [])
        for v in values:
            lst.insert(0, v)
        return len(lst)

    async def ltrim(self, key, start, end):
        self._check("ltrim")
        lst = self.lists.get(key, [])
        if end < 0:
            end = len(lst) + end
        self.lists[key] = lst[start:end + 1]
        return True

    async def lrange(self, key, start, end):
        self._check("lrange")
        lst = self.lists.get(key, [])
        if end < 0:
            end = len(lst) + end
        return list(lst[start:end + 1])

    async def llen(self, key):
        self._check("llen")
        return len(self.lists.get(key, []))

    async def brpop(self, key, timeout=0):
        self._check("brpop")
        lst = self.lists.get(key)
        if not lst:
            # Yield as a timed-out blocking pop would.
            await asyncio.sleep(0)
            return None
        return key, lst.pop()

    # Sets

    async def sadd(self, key, *members):
        self._check("sadd")
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(members)
        return len(s) - before

    async def srem(self, key, *members):
        self._check("srem")
        s = self.sets.get(key, set())
        removed = len(s & set(members))
        s.difference_update(members)
        return removed

    async def smembers(self, key):
        self._check("smembers")
        return set(self.sets.get(key, set()))


@pytest.fixture
def fake_redis():
    return FakeRedis()


# ---------------------------------------------------------------------------
# Store fake
# ---------------------------------------------------------------------------


class FakeErrorStore:
    """Dict-backed stand-in for ErrorStore that counts calls per operation."""

    def __init__(self):
        self.records: dict[uuid.UUID, ErrorRecord] = {}
        self.calls: dict[str, int] = {}
        self.fail_create = False

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    async def create_error(self, record: ErrorRecord) -> None:
        self._count("create_error")
        if self.fail_create:
            raise RuntimeError("database unavailable")
        self.records[record.id] = record.model_copy(deep=True)

    async def get_errors(self, limit, offset, level=None, source=None):
        self._count("get_errors")
        rows = [
            r
            for r in self.records.values()
            if (not level or r.level == level) and (not source or r.source == source)
        ]
        rows.sort(key=lambda r: r.timestamp, reverse=True)
        return rows[offset:offset + limit], len(rows)

    async def get_error_by_id(self, error_id):
        self._count("get_error_by_id")
        record = self.records.get(error_id)
        if record is None:
            raise ErrorNotFound(error_id)
        return record.model_copy(deep=True)

    async def resolve_error(self, error_id):
        self._count("resolve_error")
        record = self.records.get(error_id)
        if record is None:
            raise ErrorNotFound(error_id)
        record.resolved = True
        record.updated_at = datetime.now(timezone.utc)

    async def delete_error(self, error_id):
        self._count("delete_error")
        self.records.pop(error_id, None)

    async def get_stats(self):
        self._count("get_stats")
        return StatsResponse(
            total_errors=len(self.records),
            resolved_errors=sum(1 for r in self.records.values() if r.resolved),
            errors_today=len(self.records),
            errors_this_week=len(self.records),
            errors_this_month=len(self.records),
        )


@pytest.fixture
def fake_store():
    return FakeErrorStore()


# ---------------------------------------------------------------------------
# Wired components
# ---------------------------------------------------------------------------


@pytest.fixture
def background_tasks():
    return BackgroundTasks()


@pytest.fixture
def ingestion_queue(fake_redis):
    return IngestionQueue(fake_redis)


@pytest.fixture
def error_cache(fake_redis):
    return ErrorCache(fake_redis)


@pytest.fixture
def error_service(fake_store, ingestion_queue, error_cache, background_tasks):
    return ErrorService(fake_store, ingestion_queue, error_cache, background_tasks)


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_record():
    """Factory for ErrorRecord instances."""

    def _make(
        message: str = "NullPointerException",
        level: str = "error",
        source: str = "web",
        stack_trace: str | None = None,
        context: dict | None = None,
        timestamp: datetime | None = None,
    ) -> ErrorRecord:
        now = timestamp or datetime.now(timezone.utc)
        return ErrorRecord(
            id=uuid.uuid4(),
            timestamp=now,
            level=level,
            message=message,
            stack_trace=stack_trace,
            context=context or {},
            source=source,
            environment="production",
            user_agent="pytest",
            ip_address="127.0.0.1",
            url=None,
            fingerprint=generate_fingerprint(message, stack_trace),
            resolved=False,
            count=1,
            first_seen=now,
            last_seen=now,
            created_at=now,
            updated_at=now,
        )

    return _make


@pytest.fixture
def make_error_log():
    """Factory for ErrorLog ORM rows, as the store would load them."""

    def _make(**kwargs) -> ErrorLog:
        now = datetime.now(timezone.utc)
        defaults = dict(
            id=uuid.uuid4(),
            timestamp=now,
            level="error",
            message="boom",
            stack_trace=None,
            context=None,
            source="api",
            environment="production",
            user_agent=None,
            ip_address=None,
            url=None,
            fingerprint=generate_fingerprint("boom"),
            resolved=False,
            count=1,
            first_seen=now,
            last_seen=now,
            created_at=now,
            updated_at=now,
        )
        defaults.update(kwargs)
        return ErrorLog(**defaults)

    return _make
