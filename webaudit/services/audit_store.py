"""
WebAudit — Audit lifecycle records (processing → completed | failed).

Every method logs and swallows its own database errors: losing a record must
never break the audit it describes.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webaudit.models.audit import AuditRecord
from webaudit.schemas.audit import AuditResult

logger = logging.getLogger(__name__)


class AuditStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create_record(
        self,
        url: str,
        source_ip: str | None = None,
        user_agent: str | None = None,
        user_id: str | None = None,
        is_admin: bool = False,
    ) -> str | None:
        try:
            async with self._session_factory() as db:
                record = AuditRecord(
                    url=url,
                    status="processing",
                    source_ip=source_ip,
                    user_agent=user_agent,
                    user_id=user_id,
                    is_admin=is_admin,
                )
                db.add(record)
                await db.commit()
                return record.id
        except SQLAlchemyError as e:
            logger.error("Failed to create audit record for %s: %s", url, e)
            return None

    async def complete_record(self, record_id: str, result: AuditResult) -> bool:
        usage = result.token_usage
        brief = result.brief
        return await self._update(
            record_id,
            status="completed",
            overall_score=result.overall_score,
            category_scores={c.slug: c.score for c in result.categories},
            summary=result.summary,
            brief={
                "business_name": brief.business_name,
                "business_description": brief.business_description,
                "target_audience": brief.target_audience,
                "industry": brief.industry,
                "site_type": brief.site_type,
                "total_pages": brief.total_pages,
            },
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            estimated_cost=usage.estimated_cost,
        )

    async def fail_record(self, record_id: str, message: str) -> bool:
        return await self._update(record_id, status="failed", error_message=message)

    async def _update(self, record_id: str, **fields) -> bool:
        try:
            async with self._session_factory() as db:
                record = await db.get(AuditRecord, record_id)
                if record is None:
                    logger.warning("Audit record %s not found", record_id)
                    return False
                for key, value in fields.items():
                    setattr(record, key, value)
                record.completed_at = datetime.now(timezone.utc)
                await db.commit()
                return True
        except SQLAlchemyError as e:
            logger.error("Failed to update audit record %s: %s", record_id, e)
            return False
