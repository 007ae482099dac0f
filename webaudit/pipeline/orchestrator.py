"""
WebAudit — Audit orchestrator.

Drives one run end to end and produces it as a lazy, single-use sequence of
``AuditEvent``:

  scraping → pagespeed → brief → analyzing → summary → complete
                         (error reachable from every phase)

Every outside dependency (model, collectors, PageSpeed, probe, usage,
persistence, sleep) is injected, so a run can be driven entirely by fakes.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Awaitable, Callable
from uuid import uuid4

from pydantic import BaseModel, Field

from webaudit.config import Settings, settings
from webaudit.errors import AuditError, ScrapeTimeoutError, UsageLimitExceeded
from webaudit.pipeline.analyzer import Analyzer
from webaudit.pipeline.categories import Category, ScoreAggregator, select_categories
from webaudit.pipeline.collectors import normalize_url, probe_site, scrape_website
from webaudit.pipeline.collectors.pages import rank_pages
from webaudit.schemas.audit import (
    AuditEvent,
    AuditResult,
    CategoryScore,
    PageSpeedSnapshot,
    ScrapedData,
)
from webaudit.services import ai
from webaudit.services.pagespeed import fetch_pagespeed_both, to_snapshot
from webaudit.services.tokens import TokenTracker

logger = logging.getLogger(__name__)

_CATALOG_ORDER = {c.slug: i for i, c in enumerate(Category)}


class AuditRequest(BaseModel):
    url: str
    pages: int = Field(default=1, ge=1)
    categories: list[Category] = Field(default_factory=lambda: list(Category))
    additional_urls: list[str] = []
    is_admin: bool = False
    user_id: str | None = None
    source_ip: str = "unknown"
    user_agent: str = "unknown"


def _status(phase: str, message: str, progress: int | None = None, **extra) -> AuditEvent:
    data = {"phase": phase, "message": message}
    if progress is not None:
        data["progress"] = progress
    data.update(extra)
    return AuditEvent(event="status", data=data)


def _dump(model: BaseModel | None):
    return model.model_dump(by_alias=True, mode="json") if model is not None else None


def analysis_progress(done: int, total: int) -> int:
    """40..95 across the analyzing phase, rounded half-up."""
    if total <= 0:
        return 95
    return 40 + (110 * done + total) // (2 * total)


class AuditOrchestrator:
    """One audit run. Call ``authorize()`` before ``run()`` to fail fast pre-stream."""

    def __init__(
        self,
        request: AuditRequest,
        *,
        generate: Callable[..., Awaitable[ai.AIResponse]] = ai.generate,
        scrape: Callable[..., Awaitable[ScrapedData]] = scrape_website,
        fetch_pagespeed: Callable[[str], Awaitable[dict]] = fetch_pagespeed_both,
        probe: Callable[[str, float], Awaitable[dict]] | None = probe_site,
        usage=None,
        store=None,
        config: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.request = request
        self.config = config or settings
        self.scrape = scrape
        self.fetch_pagespeed = fetch_pagespeed
        self.probe = probe
        self.usage = usage
        self.store = store
        self.sleep = sleep

        self.tracker = TokenTracker(self.config.input_token_price, self.config.output_token_price)
        self.analyzer = Analyzer(
            generate,
            self.tracker,
            max_retries=self.config.ai_max_retries,
            base_delay=self.config.ai_retry_base_delay_secs,
            category_max_tokens=self.config.category_max_tokens,
            brief_max_tokens=self.config.brief_max_tokens,
            summary_max_tokens=self.config.summary_max_tokens,
            sleep=sleep,
        )

        self.max_pages = request.pages
        self.categories: list[Category] = []
        self._authorized = False
        self._consumed = False

    # ── Entitlement ─────────────────────────────────────

    async def authorize(self) -> None:
        """Resolve page/category limits. Raises ``UsageLimitExceeded``."""
        req = self.request
        allowed: list[str] | None = None

        if req.user_id and not req.is_admin and self.usage is not None:
            try:
                check = await self.usage.check_usage(req.user_id)
            except Exception as e:
                if not self.config.entitlement_fail_open:
                    logger.error("❌ Usage check failed for %s: %s", req.user_id, e)
                    raise UsageLimitExceeded(
                        "Unable to verify usage limits", upgrade_url=self.config.upgrade_url
                    ) from e
                logger.warning("⚠️ Usage check failed for %s, continuing without limits: %s", req.user_id, e)
                check = None

            if check is not None:
                if not check.allowed:
                    raise UsageLimitExceeded(
                        check.reason or "Usage limit exceeded",
                        audits_remaining=check.audits_remaining,
                        audits_limit=check.audits_limit,
                        upgrade_url=self.config.upgrade_url,
                    )
                self.max_pages = min(self.max_pages, check.pages_limit)
                allowed = check.allowed_categories

        self.categories = select_categories(req.categories, allowed)
        if not self.categories:
            raise UsageLimitExceeded(
                "None of the requested categories are included in your plan",
                upgrade_url=self.config.upgrade_url,
            )
        self._authorized = True

    # ── Run ─────────────────────────────────────────────

    async def run(self) -> AsyncIterator[AuditEvent]:
        if self._consumed:
            raise RuntimeError("An audit run can only be consumed once")
        self._consumed = True

        yield _status("scraping", "Starting audit...", 1)

        record_id: str | None = None
        pagespeed_task: asyncio.Task | None = None
        url = self.request.url

        try:
            if not self._authorized:
                await self.authorize()
            url = normalize_url(self.request.url)
            record_id = await self._create_record(url)
            scraped_at = datetime.now(timezone.utc)
            logger.info("🚀 Audit started for %s (%d categories)", url, len(self.categories))

            # ── scraping
            yield _status("scraping", "Connecting to website...", 5)
            probe = await self._probe(url)
            if probe:
                yield _status(
                    "scraping", "Website found, scanning structure...", 10,
                    finalUrl=probe["final_url"], ssl=probe["ssl"],
                )
            else:
                yield _status("scraping", "Scanning website structure...", 10)

            pagespeed_task = asyncio.create_task(self.fetch_pagespeed(url))
            yield _status("scraping", "Analyzing page content...", 15)
            scraped = await self._scrape(url)
            logger.info("🔍 Scrape complete for %s: %s", url, scraped.title)

            yield _status("scraped", "Website scanned successfully", 25)
            yield AuditEvent(
                event="scraped",
                data={
                    "url": scraped.url,
                    "finalUrl": scraped.final_url,
                    "title": scraped.title,
                    "loadTime": scraped.load_time,
                    "ssl": scraped.ssl,
                    "emails": scraped.emails,
                    "socialLinks": scraped.social_links,
                },
            )

            # ── pagespeed
            yield _status("pagespeed", "Fetching Core Web Vitals...", 30)
            page_speed = await self._page_speed(pagespeed_task)
            yield AuditEvent(event="pagespeed", data=_dump(page_speed))

            # ── brief
            yield _status("brief", "Analyzing business profile...", 35)
            brief = await self.analyzer.generate_brief(scraped)
            yield AuditEvent(event="brief", data=_dump(brief))

            # ── analyzing
            total = len(self.categories)
            yield _status(
                "analyzing", f"Starting analysis of {total} categories...", 40,
                current=0, total=total,
            )
            aggregate = ScoreAggregator()
            results: list[CategoryScore] = []
            async for score in self._analyze(scraped):
                results.append(score)
                running = aggregate.add(score.score, score.weight)
                logger.info("📊 %s scored %d (running %d)", score.name, score.score, running)
                yield AuditEvent(
                    event="category", data={"category": _dump(score), "runningScore": running}
                )
                yield _status(
                    "analyzing", f"Analyzed {score.name}",
                    analysis_progress(len(results), total),
                    current=len(results), total=total,
                )

            categories = sorted(results, key=lambda c: _CATALOG_ORDER[c.slug])
            overall = aggregate.score

            # ── summary
            yield _status("summary", "Generating executive summary...", 96)
            summary = await self.analyzer.generate_summary(scraped, categories, overall)

            pages, best, worst = rank_pages(scraped.pages)
            yield AuditEvent(
                event="pages",
                data={
                    "pagesAnalyzed": [_dump(p) for p in pages],
                    "bestPage": _dump(best),
                    "worstPage": _dump(worst),
                },
            )

            # ── complete
            result = AuditResult(
                id=record_id or str(uuid4()),
                url=scraped.url,
                overall_score=overall,
                categories=categories,
                summary=summary,
                scraped_at=scraped_at,
                analyzed_at=datetime.now(timezone.utc),
                client_logo=scraped.logo_url,
                brief=brief,
                page_count=len(pages),
                pages_analyzed=pages,
                best_page=best,
                worst_page=worst,
                token_usage=self.tracker.get_usage(),
                page_speed=page_speed,
            )
            if record_id and self.store is not None:
                await self.store.complete_record(record_id, result)
            await self._charge_usage()

            logger.info(
                "✅ Audit complete for %s: %d/100 (%d tokens)",
                url, overall, result.token_usage.total_tokens,
            )
            yield AuditEvent(event="complete", data=_dump(result))

        except asyncio.CancelledError:
            logger.warning("🛑 Audit cancelled for %s", url)
            await self._fail(record_id, "Audit cancelled")
            raise
        except AuditError as e:
            logger.error("❌ Audit failed for %s: %s", url, e)
            await self._fail(record_id, str(e))
            yield AuditEvent(event="error", data={"message": str(e)})
        except Exception as e:
            logger.exception("❌ Audit crashed for %s", url)
            await self._fail(record_id, str(e) or type(e).__name__)
            yield AuditEvent(event="error", data={"message": "Audit failed unexpectedly"})
        finally:
            if pagespeed_task is not None and not pagespeed_task.done():
                pagespeed_task.cancel()

    # ── Phases ──────────────────────────────────────────

    async def _probe(self, url: str) -> dict | None:
        if self.probe is None:
            return None
        try:
            return await self.probe(url, self.config.probe_timeout_secs)
        except Exception as e:
            logger.info("Quick probe failed for %s, continuing with full scrape: %s", url, e)
            return None

    async def _scrape(self, url: str) -> ScrapedData:
        """Full collection raced against the scrape deadline."""
        deadline = self.config.scrape_timeout_secs
        task = asyncio.ensure_future(
            self.scrape(url, max_pages=self.max_pages, additional_urls=self.request.additional_urls)
        )
        try:
            done, _ = await asyncio.wait({task}, timeout=deadline)
        except BaseException:
            task.cancel()
            raise
        if not done:
            task.cancel()
            raise ScrapeTimeoutError(f"Scrape timeout after {deadline:g} seconds")
        return task.result()

    async def _page_speed(self, task: asyncio.Task) -> PageSpeedSnapshot:
        try:
            return to_snapshot(await task)
        except Exception as e:
            logger.warning("⚠️ PageSpeed unavailable: %s", e)
            return PageSpeedSnapshot()

    async def _analyze(self, scraped: ScrapedData) -> AsyncIterator[CategoryScore]:
        """Category scores in bounded batches, each yielded as soon as it lands."""
        size = max(1, self.config.analysis_batch_size)
        batches = [self.categories[i : i + size] for i in range(0, len(self.categories), size)]

        for index, batch in enumerate(batches):
            if index:
                await self.sleep(self.config.analysis_batch_delay_secs)
            tasks = [asyncio.create_task(self._score(c, scraped)) for c in batch]
            try:
                for next_done in asyncio.as_completed(tasks):
                    yield await next_done
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()

    async def _score(self, category: Category, scraped: ScrapedData) -> CategoryScore:
        analysis = await self.analyzer.analyze_category(category.prompt(scraped))
        return CategoryScore(
            name=category.label,
            slug=category.slug,
            score=analysis.score,
            weight=category.weight,
            issues=analysis.issues,
            passing=analysis.passing,
            recommendations=analysis.recommendations,
        )

    # ── Collaborators ───────────────────────────────────

    async def _create_record(self, url: str) -> str | None:
        if self.store is None:
            return None
        req = self.request
        record_id = await self.store.create_record(
            url,
            source_ip=req.source_ip,
            user_agent=req.user_agent,
            user_id=req.user_id,
            is_admin=req.is_admin,
        )
        if record_id is None:
            logger.warning("⚠️ Audit record not created for %s, using a local id", url)
        return record_id

    async def _fail(self, record_id: str | None, message: str) -> None:
        if record_id and self.store is not None:
            await self.store.fail_record(record_id, message)

    async def _charge_usage(self) -> None:
        req = self.request
        if not req.user_id or req.is_admin or self.usage is None:
            return
        try:
            await self.usage.increment_usage(req.user_id)
        except Exception as e:
            logger.error("❌ Failed to increment usage for %s: %s", req.user_id, e)
