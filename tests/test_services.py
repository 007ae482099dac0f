"""
Tests for the persistence and entitlement collaborators (SQLite in-memory).
"""

from datetime import datetime, timezone

import pytest

from webaudit.models.audit import AuditRecord
from webaudit.models.user import UserProfile
from webaudit.pipeline.categories import ALL_SLUGS
from webaudit.schemas.audit import AuditResult, CategoryScore, TokenUsage, WebsiteBrief
from webaudit.services.audit_store import AuditStore
from webaudit.services.usage import UsageService


def make_result(record_id: str) -> AuditResult:
    now = datetime.now(timezone.utc)
    return AuditResult(
        id=record_id,
        url="https://sunrise-bakery.com",
        overall_score=72,
        categories=[
            CategoryScore(name="Technical Foundation", slug="technical", score=80, weight=1.2),
            CategoryScore(name="Security", slug="security", score=62, weight=0.8),
        ],
        summary="Good foundation.",
        scraped_at=now,
        analyzed_at=now,
        brief=WebsiteBrief(
            business_name="Sunrise Bakery",
            business_description="Bakery",
            target_audience="Locals",
            industry="Food",
            site_type="Local Business",
            total_pages=4,
        ),
        token_usage=TokenUsage(input_tokens=1000, output_tokens=500, total_tokens=1500, estimated_cost=0.0105),
    )


async def add_profile(session_factory, **fields) -> None:
    async with session_factory() as db:
        db.add(UserProfile(**fields))
        await db.commit()


async def get_profile(session_factory, user_id: str) -> UserProfile:
    async with session_factory() as db:
        return await db.get(UserProfile, user_id)


# ── AuditStore ──────────────────────────────────────────

class TestAuditStore:
    async def test_create_record(self, session_factory):
        store = AuditStore(session_factory)
        record_id = await store.create_record(
            "https://sunrise-bakery.com", source_ip="10.0.0.1", user_agent="pytest",
            user_id="user-1", is_admin=False,
        )
        assert record_id

        async with session_factory() as db:
            record = await db.get(AuditRecord, record_id)
        assert record.status == "processing"
        assert record.source_ip == "10.0.0.1"
        assert record.user_id == "user-1"

    async def test_complete_record(self, session_factory):
        store = AuditStore(session_factory)
        record_id = await store.create_record("https://sunrise-bakery.com")
        assert await store.complete_record(record_id, make_result(record_id))

        async with session_factory() as db:
            record = await db.get(AuditRecord, record_id)
        assert record.status == "completed"
        assert record.overall_score == 72
        assert record.category_scores == {"technical": 80, "security": 62}
        assert record.brief["business_name"] == "Sunrise Bakery"
        assert record.total_tokens == 1500
        assert record.estimated_cost == pytest.approx(0.0105)
        assert record.completed_at is not None

    async def test_fail_record(self, session_factory):
        store = AuditStore(session_factory)
        record_id = await store.create_record("https://sunrise-bakery.com")
        assert await store.fail_record(record_id, "Scrape timeout after 60 seconds")

        async with session_factory() as db:
            record = await db.get(AuditRecord, record_id)
        assert record.status == "failed"
        assert record.error_message == "Scrape timeout after 60 seconds"

    async def test_unknown_record(self, session_factory):
        assert not await AuditStore(session_factory).fail_record("missing", "x")

    async def test_database_errors_are_swallowed(self, db_engine, session_factory):
        store = AuditStore(session_factory)
        async with db_engine.begin() as conn:
            await conn.run_sync(AuditRecord.__table__.drop)
        assert await store.create_record("https://sunrise-bakery.com") is None
        assert await store.fail_record("whatever", "x") is False
        async with db_engine.begin() as conn:
            await conn.run_sync(AuditRecord.__table__.create)


# ── UsageService ────────────────────────────────────────

class TestUsageCheck:
    async def test_unknown_user(self, session_factory):
        check = await UsageService(session_factory).check_usage("ghost")
        assert not check.allowed
        assert check.reason == "User profile not found"

    async def test_free_tier_allowed(self, session_factory):
        await add_profile(session_factory, id="u1", tier="free", audits_limit=1, audits_used_this_month=0)
        check = await UsageService(session_factory).check_usage("u1")
        assert check.allowed
        assert check.audits_remaining == 1
        assert check.pages_limit == 1
        assert check.allowed_categories == ["business", "technical", "brand"]
        assert not check.can_buy_packs

    async def test_free_tier_exhausted(self, session_factory):
        await add_profile(session_factory, id="u1", tier="free", audits_limit=1, audits_used_this_month=1)
        check = await UsageService(session_factory).check_usage("u1")
        assert not check.allowed
        assert "Upgrade your plan" in check.reason
        assert check.audits_remaining == 0

    async def test_paid_exhausted_suggests_packs(self, session_factory):
        await add_profile(session_factory, id="u1", tier="starter", audits_limit=5, audits_used_this_month=5)
        check = await UsageService(session_factory).check_usage("u1")
        assert not check.allowed
        assert "audit pack" in check.reason
        assert check.can_buy_packs

    async def test_purchased_packs_extend_balance(self, session_factory):
        await add_profile(
            session_factory, id="u1", tier="pro", audits_limit=25,
            audits_used_this_month=25, purchased_audits=3,
        )
        check = await UsageService(session_factory).check_usage("u1")
        assert check.allowed
        assert check.purchased_audits == 3
        assert check.pages_limit == 10
        assert check.allowed_categories == ALL_SLUGS

    async def test_past_due_blocked(self, session_factory):
        await add_profile(
            session_factory, id="u1", tier="pro", audits_limit=25, subscription_status="past_due",
        )
        check = await UsageService(session_factory).check_usage("u1")
        assert not check.allowed
        assert "past due" in check.reason

    async def test_canceled_falls_back_to_free(self, session_factory):
        await add_profile(
            session_factory, id="u1", tier="agency", audits_limit=100,
            audits_used_this_month=0, purchased_audits=10, subscription_status="canceled",
        )
        check = await UsageService(session_factory).check_usage("u1")
        assert check.allowed
        assert check.tier == "free"
        assert check.purchased_audits == 0
        assert check.pages_limit == 1

    async def test_unknown_tier_treated_as_free(self, session_factory):
        await add_profile(session_factory, id="u1", tier="platinum", audits_limit=1)
        check = await UsageService(session_factory).check_usage("u1")
        assert check.tier == "free"


class TestIncrementUsage:
    async def test_monthly_balance_first(self, session_factory):
        await add_profile(
            session_factory, id="u1", tier="starter", audits_limit=5,
            audits_used_this_month=2, purchased_audits=4,
        )
        assert await UsageService(session_factory).increment_usage("u1")
        profile = await get_profile(session_factory, "u1")
        assert profile.audits_used_this_month == 3
        assert profile.purchased_audits == 4
        assert profile.last_audit_at is not None

    async def test_then_purchased_packs(self, session_factory):
        await add_profile(
            session_factory, id="u1", tier="starter", audits_limit=5,
            audits_used_this_month=5, purchased_audits=4,
        )
        assert await UsageService(session_factory).increment_usage("u1")
        profile = await get_profile(session_factory, "u1")
        assert profile.audits_used_this_month == 5
        assert profile.purchased_audits == 3

    async def test_nothing_to_charge(self, session_factory):
        await add_profile(session_factory, id="u1", tier="free", audits_limit=1, audits_used_this_month=1)
        assert not await UsageService(session_factory).increment_usage("u1")

    async def test_unknown_user(self, session_factory):
        assert not await UsageService(session_factory).increment_usage("ghost")


# ── Engine options ──────────────────────────────────────

class TestEngineOptions:
    def test_sqlite_gets_lock_timeout(self):
        from webaudit.database import SQLITE_LOCK_TIMEOUT_SECS, engine_options

        opts = engine_options("sqlite+aiosqlite:///./webaudit.db")
        assert opts == {"connect_args": {"timeout": SQLITE_LOCK_TIMEOUT_SECS}}

    def test_server_database_gets_pool(self):
        from webaudit.database import engine_options

        opts = engine_options("postgresql+asyncpg://u:p@db/webaudit")
        assert opts["pool_pre_ping"] is True
        assert opts["pool_recycle"] == 300
