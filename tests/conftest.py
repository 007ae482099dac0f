"""
Shared test fixtures — async DB, scripted model, sample site data, FastAPI test client.
"""

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from webaudit.config import Settings
from webaudit.database import Base, get_db
from webaudit.main import app
from webaudit.pipeline import prompts
from webaudit.pipeline.orchestrator import AuditOrchestrator, AuditRequest
from webaudit.schemas.audit import (
    ExtendedContent,
    PageData,
    PageSpeedError,
    ScrapedData,
    TrafficSignals,
)
from webaudit.services.ai import AIRequestError, AIResponse


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def client(session_factory):
    """FastAPI test client with test DB injected."""

    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Sample Site Data ────────────────────────────────────

SAMPLE_BRIEF = {
    "businessName": "Sunrise Bakery",
    "businessDescription": "Artisan bakery selling handmade pastries and catering.",
    "targetAudience": "Local families and office caterers",
    "industry": "Food & Beverage",
    "siteType": "Local Business",
    "websiteType": {
        "primaryType": "Local Business",
        "confidence": 88,
        "characteristics": ["menu", "location", "catering form"],
        "subType": "Bakery",
    },
    "siteStructure": [
        {"name": "About", "path": "/about", "exists": True, "description": "Our story"},
        {"name": "Blog", "path": "/blog", "exists": False, "description": ""},
    ],
}


def make_scraped(**overrides) -> ScrapedData:
    fields = dict(
        url="https://sunrise-bakery.com",
        final_url="https://www.sunrise-bakery.com/",
        load_time=1200,
        status_code=200,
        title="Sunrise Bakery | Handmade Pastries",
        meta_description="Fresh-baked pastries and catering in Portland.",
        favicon=True,
        favicon_url="https://www.sunrise-bakery.com/favicon.ico",
        og_image_url="https://www.sunrise-bakery.com/og.png",
        logo_url="https://www.sunrise-bakery.com/og.png",
        ssl=True,
        mobile_viewport=True,
        content_length=48_000,
        image_count=12,
        h1=["Welcome to Sunrise Bakery"],
        h2=["Our Pastries", "Catering", "Visit Us"],
        body_text="Handmade pastries baked fresh every morning. Order catering for your office.",
        cta_buttons=["Order Now", "Get a Quote"],
        nav_links=["Home", "Menu", "About", "Contact"],
        has_analytics=True,
        has_forms=True,
        social_links=["https://instagram.com/sunrisebakery"],
        emails=["hello@sunrise-bakery.com"],
        traffic_signals=TrafficSignals(has_sitemap=True, sitemap_page_count=14, blog_exists=True),
        extended_content=ExtendedContent(has_about_page=True, has_contact_page=True),
        pages=[
            PageData(
                url="https://sunrise-bakery.com",
                path="/",
                title="Sunrise Bakery | Handmade Pastries in Portland",
                meta_description="x" * 140,
                h1=["Welcome"],
                load_time=900,
                word_count=450,
                has_cta=True,
                has_form=True,
            ),
            PageData(
                url="https://sunrise-bakery.com/about",
                path="/about",
                title=None,
                h1=[],
                load_time=6000,
                word_count=40,
            ),
        ],
    )
    fields.update(overrides)
    return ScrapedData(**fields)


@pytest.fixture
def scraped():
    return make_scraped()


# ── Scripted Model ──────────────────────────────────────

# First line of each category prompt → category slug
CATEGORY_MARKERS = {
    "business overview": "business",
    "technical foundation": "technical",
    "brand and messaging": "brand",
    "user experience": "ux",
    "traffic readiness": "traffic",
    "security basics": "security",
    "content strategy": "content",
    "conversion & engagement": "conversion",
    "social & multimedia": "social",
    "trust & credibility": "trust",
}


class FakeModel:
    """Scripted stand-in for ``webaudit.services.ai.generate``.

    Every call reports 100 input / 50 output tokens. ``fail`` names call kinds
    ("brief", "summary" or a category slug) that raise instead of answering.
    """

    def __init__(self, scores=None, *, brief=None, summary="Solid bakery site with room to grow.", fail=()):
        self.scores = scores or {}
        self.brief = SAMPLE_BRIEF if brief is None else brief
        self.summary = summary
        self.fail = set(fail)
        self.calls: list[str] = []

    @staticmethod
    def kind(prompt: str, system: str | None) -> str:
        if system == prompts.BRIEF_SYSTEM:
            return "brief"
        head = prompt.splitlines()[0].lower()
        for marker, slug in CATEGORY_MARKERS.items():
            if marker in head:
                return slug
        return "summary"

    async def __call__(self, prompt, max_tokens, temperature=0.0, *, system=None):
        kind = self.kind(prompt, system)
        self.calls.append(kind)
        if kind in self.fail:
            raise AIRequestError("AI API HTTP 500: upstream exploded", 500)
        if kind == "brief":
            text = "```json\n" + json.dumps(self.brief) + "\n```"
        elif kind == "summary":
            text = self.summary
        else:
            text = json.dumps({
                "score": self.scores.get(kind, 70),
                "issues": [{"severity": "warning", "title": f"{kind} issue",
                            "description": "Something to fix", "impact": "Medium"}],
                "passing": [{"title": f"{kind} ok", "description": "Looks good", "value": "yes"}],
                "recommendations": [f"Improve {kind}"],
            })
        return AIResponse(text=text, input_tokens=100, output_tokens=50)


@pytest.fixture
def fake_model():
    return FakeModel()


# ── Orchestrator Wiring ─────────────────────────────────

async def no_sleep(_delay: float) -> None:
    return None


def fast_settings(**overrides) -> Settings:
    values = dict(
        analysis_batch_delay_secs=0,
        ai_retry_base_delay_secs=0,
        scrape_timeout_secs=5,
        probe_timeout_secs=1,
        entitlement_fail_open=True,
    )
    values.update(overrides)
    return Settings(**values)


def pagespeed_unavailable() -> dict:
    err = PageSpeedError(message="PageSpeed API key not configured", code="NO_API_KEY")
    return {"mobile": err, "desktop": err}


def mock_store(record_id: str | None = "rec-1") -> AsyncMock:
    store = AsyncMock()
    store.create_record.return_value = record_id
    store.complete_record.return_value = True
    store.fail_record.return_value = True
    return store


@pytest.fixture
def make_orchestrator(scraped, fake_model):
    """Factory: an orchestrator whose every collaborator is a fake."""

    def _make(request=None, **overrides):
        if request is None:
            request = AuditRequest(url="sunrise-bakery.com")
        kwargs = dict(
            generate=fake_model,
            scrape=AsyncMock(return_value=scraped),
            fetch_pagespeed=AsyncMock(return_value=pagespeed_unavailable()),
            probe=AsyncMock(return_value={"final_url": "https://www.sunrise-bakery.com/", "ssl": True}),
            store=mock_store(),
            usage=None,
            config=fast_settings(),
            sleep=no_sleep,
        )
        kwargs.update(overrides)
        return AuditOrchestrator(request, **kwargs)

    return _make


async def collect(orchestrator) -> list:
    return [event async for event in orchestrator.run()]
