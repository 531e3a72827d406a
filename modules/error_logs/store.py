"""Postgres-backed persistence for error reports."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.models.error_log import ErrorLog
from shared.schemas.errors import ErrorRecord, StatsResponse

logger = structlog.get_logger()


class ErrorNotFound(Exception):
    """Raised when no error report exists with the requested id."""

    def __init__(self, error_id: uuid.UUID):
        super().__init__(f"error not found: {error_id}")
        self.error_id = error_id


def _to_record(row: ErrorLog) -> ErrorRecord:
    return ErrorRecord.model_validate(row)


class ErrorStore:
    """Source of truth for error reports. Store errors propagate to callers."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_error(self, record: ErrorRecord) -> None:
        async with self.session_factory() as session:
            session.add(ErrorLog(**record.model_dump()))
            await session.commit()

    async def get_errors(
        self,
        limit: int,
        offset: int,
        level: str | None = None,
        source: str | None = None,
    ) -> tuple[list[ErrorRecord], int]:
        """Return one page (newest first) and the total matching the filters."""
        query = select(ErrorLog)
        if level:
            query = query.where(ErrorLog.level == level)
        if source:
            query = query.where(ErrorLog.source == source)

        async with self.session_factory() as session:
            count_result = await session.execute(
                select(func.count()).select_from(query.subquery())
            )
            total = count_result.scalar_one()

            result = await session.execute(
                query.order_by(ErrorLog.timestamp.desc()).limit(limit).offset(offset)
            )
            rows = result.scalars().all()

        return [_to_record(r) for r in rows], total

    async def get_error_by_id(self, error_id: uuid.UUID) -> ErrorRecord:
        async with self.session_factory() as session:
            result = await session.execute(
                select(ErrorLog).where(ErrorLog.id == error_id)
            )
            row = result.scalar_one_or_none()
        if row is None:
            raise ErrorNotFound(error_id)
        return _to_record(row)

    async def resolve_error(self, error_id: uuid.UUID) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                update(ErrorLog)
                .where(ErrorLog.id == error_id)
                .values(resolved=True, updated_at=datetime.now(timezone.utc))
            )
            if result.rowcount == 0:
                await session.rollback()
                raise ErrorNotFound(error_id)
            await session.commit()

    async def delete_error(self, error_id: uuid.UUID) -> None:
        """Delete by id. Deleting an id that does not exist is not an error."""
        async with self.session_factory() as session:
            await session.execute(delete(ErrorLog).where(ErrorLog.id == error_id))
            await session.commit()

    async def get_stats(self) -> StatsResponse:
        """Compute all five aggregate counts in a single query."""
        now = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            result = await session.execute(
                select(
                    func.count(ErrorLog.id).label("total_errors"),
                    func.count(ErrorLog.id)
                    .filter(ErrorLog.resolved.is_(True))
                    .label("resolved_errors"),
                    func.count(ErrorLog.id)
                    .filter(func.date(ErrorLog.timestamp) == func.current_date())
                    .label("errors_today"),
                    func.count(ErrorLog.id)
                    .filter(ErrorLog.timestamp >= now - timedelta(days=7))
                    .label("errors_this_week"),
                    func.count(ErrorLog.id)
                    .filter(ErrorLog.timestamp >= now - timedelta(days=30))
                    .label("errors_this_month"),
                )
            )
            row = result.one()

        return StatsResponse(
            total_errors=row.total_errors,
            resolved_errors=row.resolved_errors,
            errors_today=row.errors_today,
            errors_this_week=row.errors_this_week,
            errors_this_month=row.errors_this_month,
        )
