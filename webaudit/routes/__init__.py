"""
API Routes — audit SSE stream, audit history, health.
"""

import hmac
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from webaudit import __version__
from webaudit.config import settings
from webaudit.database import async_session, get_db
from webaudit.errors import UnknownCategoryError, UsageLimitExceeded
from webaudit.models.audit import AuditRecord
from webaudit.pipeline.categories import ALL_SLUGS, parse_categories
from webaudit.pipeline.orchestrator import AuditOrchestrator, AuditRequest
from webaudit.schemas import AuditListResponse, AuditRecordResponse, AuditStatus, HealthResponse
from webaudit.services.audit_store import AuditStore
from webaudit.services.sse import SSE_HEADERS, AuditStream
from webaudit.services.usage import UsageService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator_factory() -> Callable[[AuditRequest], AuditOrchestrator]:
    """Dependency: builds the orchestrator for one request (overridden in tests)."""
    usage = UsageService(async_session)
    store = AuditStore(async_session)

    def build(req: AuditRequest) -> AuditOrchestrator:
        return AuditOrchestrator(req, usage=usage, store=store)

    return build


def _source_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def _is_admin(admin: bool, token: str | None) -> bool:
    if not admin:
        return False
    if not settings.admin_token:
        return True
    return hmac.compare_digest(token or "", settings.admin_token)


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health(session: AsyncSession = Depends(get_db)):
    database = "connected"
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Health check DB error: %s", e)
        database = "unavailable"
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        database=database,
    )


# ── Audit Stream ────────────────────────────────────────

@router.get("/audit-stream", tags=["audits"])
async def audit_stream(
    request: Request,
    url: Optional[str] = Query(None),
    pages: int = Query(1, ge=1, le=100),
    categories: Optional[str] = Query(None),
    admin: bool = Query(False),
    x_user_id: Optional[str] = Header(None),
    x_admin_token: Optional[str] = Header(None),
    build: Callable[[AuditRequest], AuditOrchestrator] = Depends(get_orchestrator_factory),
):
    """Run one audit and stream its progress as Server-Sent Events."""
    if not url or not url.strip():
        return JSONResponse({"error": "URL required"}, status_code=400)

    try:
        requested = parse_categories(categories)
    except UnknownCategoryError as e:
        return JSONResponse(
            {"error": str(e), "validCategories": ALL_SLUGS}, status_code=400
        )

    audit_request = AuditRequest(
        url=url.strip(),
        pages=pages,
        categories=requested,
        is_admin=_is_admin(admin, x_admin_token),
        user_id=x_user_id or None,
        source_ip=_source_ip(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    orchestrator = build(audit_request)

    try:
        await orchestrator.authorize()
    except UsageLimitExceeded as e:
        logger.info("🚫 Audit refused for %s: %s", audit_request.user_id, e.reason)
        return JSONResponse(e.to_dict(), status_code=403)

    stream = AuditStream(
        orchestrator.run(),
        first_event_timeout=settings.stream_first_event_timeout_secs,
        run_timeout=settings.stream_run_timeout_secs,
        cancel_on_disconnect=settings.stream_cancel_on_disconnect,
    )
    return StreamingResponse(
        stream.frames(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ── Audit History ───────────────────────────────────────

@router.get("/audits", response_model=AuditListResponse, tags=["audits"])
async def list_audits(
    status: Optional[AuditStatus] = Query(None),
    limit: int = Query(50, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    stmt = select(AuditRecord).order_by(AuditRecord.created_at.desc()).limit(limit).offset(offset)
    if status:
        stmt = stmt.where(AuditRecord.status == status.value)

    result = await session.execute(stmt)
    records = result.scalars().all()

    return AuditListResponse(
        audits=[AuditRecordResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/audits/{audit_id}", response_model=AuditRecordResponse, tags=["audits"])
async def get_audit(audit_id: str, session: AsyncSession = Depends(get_db)):
    record = await session.get(AuditRecord, audit_id)
    if not record:
        raise HTTPException(status_code=404, detail=f"Audit {audit_id} not found")
    return AuditRecordResponse.model_validate(record)
