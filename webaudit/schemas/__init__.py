"""
WebAudit — Pydantic request/response schemas.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from webaudit.schemas.audit import CamelModel


class AuditStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AuditRecordResponse(CamelModel):
    id: str
    url: str
    status: AuditStatus
    overall_score: int | None = None
    category_scores: dict[str, int] | None = None
    summary: str | None = None
    brief: dict | None = None
    user_id: str | None = None
    is_admin: bool = False
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    estimated_cost: float | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    duration_secs: float | None = None

    model_config = {"from_attributes": True}


class AuditListResponse(BaseModel):
    audits: list[AuditRecordResponse]
    total: int


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "1.0.0"
    timestamp: str | None = None
    database: str = "connected"
