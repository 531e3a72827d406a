"""HTTP endpoints for error reports and stats."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from modules.error_logs.auth import require_api_key
from modules.error_logs.service import ErrorService
from modules.error_logs.store import ErrorNotFound
from shared.schemas.errors import (
    CreateErrorRequest,
    ErrorListResponse,
    ErrorRecord,
    StatsResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["errors"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 100
DEFAULT_RECENT_LIMIT = 20


def get_service(request: Request) -> ErrorService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return service


def get_client_ip(request: Request) -> str:
    """Client address, honouring reverse-proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # May hold a chain of proxies; the first entry is the client.
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else ""


def _parse_int(value: str | None, default: int) -> int:
    """Query integer, or ``default`` when absent or unparseable."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _parse_error_id(error_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(error_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid error ID")


@router.post("/errors", status_code=201, response_model=ErrorRecord)
async def create_error(
    body: CreateErrorRequest,
    request: Request,
    service: ErrorService = Depends(get_service),
    _=Depends(require_api_key),
) -> ErrorRecord:
    """Accept an error report from a client application."""
    if not body.message:
        raise HTTPException(status_code=400, detail="Message is required")
    if not body.level:
        body.level = "error"
    if not body.source:
        body.source = "unknown"

    try:
        return await service.create_error(
            body,
            user_agent=request.headers.get("user-agent", ""),
            ip_address=get_client_ip(request),
        )
    except Exception as e:
        logger.error("create_error_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create error")


@router.get("/errors", response_model=ErrorListResponse)
async def list_errors(
    limit: str | None = None,
    offset: str | None = None,
    level: str | None = None,
    source: str | None = None,
    service: ErrorService = Depends(get_service),
) -> ErrorListResponse:
    """List error reports, newest first, with optional level/source filters."""
    page_limit = _parse_int(limit, DEFAULT_LIMIT)
    if not 0 < page_limit <= MAX_LIMIT:
        page_limit = DEFAULT_LIMIT
    page_offset = max(_parse_int(offset, 0), 0)

    try:
        return await service.get_errors(
            page_limit, page_offset, level or None, source or None
        )
    except Exception as e:
        logger.error("list_errors_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get errors")


@router.get("/errors/recent", response_model=list[ErrorRecord])
async def recent_errors(
    limit: str | None = None,
    service: ErrorService = Depends(get_service),
) -> list[ErrorRecord]:
    """Latest submissions straight from the ingestion buffer."""
    count = _parse_int(limit, DEFAULT_RECENT_LIMIT)
    if not 0 < count <= MAX_LIMIT:
        count = DEFAULT_RECENT_LIMIT
    return await service.recent_errors(count)


@router.get("/errors/{error_id}", response_model=ErrorRecord)
async def get_error(
    error_id: str,
    service: ErrorService = Depends(get_service),
) -> ErrorRecord:
    parsed_id = _parse_error_id(error_id)
    try:
        return await service.get_error_by_id(parsed_id)
    except ErrorNotFound:
        raise HTTPException(status_code=404, detail="Error not found")
    except Exception as e:
        logger.error("get_error_failed", error_id=error_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get error")


@router.post("/errors/{error_id}/resolve")
async def resolve_error(
    error_id: str,
    service: ErrorService = Depends(get_service),
) -> dict:
    """Mark an error as resolved."""
    parsed_id = _parse_error_id(error_id)
    try:
        await service.resolve_error(parsed_id)
    except ErrorNotFound:
        raise HTTPException(status_code=404, detail="Error not found")
    except Exception as e:
        logger.error("resolve_error_failed", error_id=error_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to resolve error")
    return {"status": "resolved"}


@router.delete("/errors/{error_id}", status_code=204)
async def delete_error(
    error_id: str,
    service: ErrorService = Depends(get_service),
) -> Response:
    parsed_id = _parse_error_id(error_id)
    try:
        await service.delete_error(parsed_id)
    except Exception as e:
        logger.error("delete_error_failed", error_id=error_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete error")
    return Response(status_code=204)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(service: ErrorService = Depends(get_service)) -> StatsResponse:
    try:
        return await service.get_stats()
    except Exception as e:
        logger.error("get_stats_failed", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to get stats")
