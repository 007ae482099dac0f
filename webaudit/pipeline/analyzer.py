"""
WebAudit — Model-backed analysis steps: category scoring, website brief and
executive summary.

Every call goes through the rate-limit retry wrapper and records usage on
the run's ``TokenTracker``. None of these steps raise on bad model output:
each has a deterministic fallback.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable

from pydantic import ValidationError

from webaudit.pipeline import prompts
from webaudit.schemas.audit import (
    CategoryAnalysis,
    CategoryScore,
    Issue,
    PassingItem,
    ScrapedData,
    SiteSection,
    WebsiteBrief,
    WebsiteTypeAnalysis,
)
from webaudit.services.ai import AIResponse, extract_json
from webaudit.services.retry import with_retry
from webaudit.services.tokens import TokenTracker

logger = logging.getLogger(__name__)

Generate = Callable[..., Awaitable[AIResponse]]

SEVERITIES = ("critical", "warning", "info")
SUMMARY_FALLBACK = "Audit complete. Review the detailed findings below."
_TITLE_SPLIT_RE = re.compile(r"[-|–]")


# ── Pure parsing ────────────────────────────────────────


def fallback_analysis() -> CategoryAnalysis:
    return CategoryAnalysis(
        score=50,
        issues=[
            Issue(
                severity="info",
                title="Analysis Incomplete",
                description="AI analysis could not be fully parsed",
                impact="Some insights may be missing",
            )
        ],
        passing=[],
        recommendations=["Manual review recommended"],
    )


def clamp_score(value, default: int = 50) -> int:
    """Numeric ``value`` clamped to 0..100; anything non-numeric → ``default``."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return int(round(min(100.0, max(0.0, number))))


def parse_category_response(text: str) -> CategoryAnalysis:
    """Parse model text into a ``CategoryAnalysis``; fallback on any failure."""
    try:
        parsed = extract_json(text)
    except ValueError:
        logger.warning("⚠️ Unparseable category response: %s", text[:300])
        return fallback_analysis()

    return CategoryAnalysis(
        score=clamp_score(parsed.get("score")),
        issues=[i for i in map(_issue, _as_list(parsed.get("issues"))) if i],
        passing=[p for p in map(_passing, _as_list(parsed.get("passing"))) if p],
        recommendations=[str(r) for r in _as_list(parsed.get("recommendations")) if r],
    )


def brief_fallback(data: ScrapedData) -> WebsiteBrief:
    """Heuristic brief from the page title and meta description."""
    name = _TITLE_SPLIT_RE.split(data.title)[0].strip() if data.title else ""
    return WebsiteBrief(
        business_name=name or "Unknown",
        business_description=data.meta_description or "No description available",
        target_audience="Not determined",
        industry="Unknown",
        site_type="Website",
        total_pages=total_pages(data),
    )


def parse_brief(text: str, data: ScrapedData) -> WebsiteBrief:
    """Raises ``ValueError`` when no JSON object is present."""
    parsed = extract_json(text)
    return WebsiteBrief(
        business_name=_text(parsed.get("businessName")) or "Unknown",
        business_description=_text(parsed.get("businessDescription")) or "No description available",
        target_audience=_text(parsed.get("targetAudience")) or "General audience",
        industry=_text(parsed.get("industry")) or "Unknown",
        site_type=_text(parsed.get("siteType")) or "Website",
        total_pages=total_pages(data),
        website_type=_website_type(parsed.get("websiteType")),
        site_structure=_site_structure(parsed.get("siteStructure")),
    )


def total_pages(data: ScrapedData) -> int:
    sitemap = data.traffic_signals.sitemap_page_count if data.traffic_signals else None
    if sitemap:
        return sitemap
    return max(1, len(data.pages or []))


def _as_list(value) -> list:
    return value if isinstance(value, list) else []


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _issue(item) -> Issue | None:
    if not isinstance(item, dict):
        return None
    severity = str(item.get("severity", "info")).lower()
    return Issue(
        severity=severity if severity in SEVERITIES else "info",
        title=str(item.get("title") or ""),
        description=str(item.get("description") or ""),
        impact=str(item.get("impact") or ""),
    )


def _passing(item) -> PassingItem | None:
    if not isinstance(item, dict):
        return None
    value = item.get("value")
    return PassingItem(
        title=str(item.get("title") or ""),
        description=str(item.get("description") or ""),
        value=None if value is None else str(value),
    )


def _website_type(value) -> WebsiteTypeAnalysis | None:
    if not isinstance(value, dict):
        return None
    try:
        return WebsiteTypeAnalysis.model_validate(
            {**value, "confidence": clamp_score(value.get("confidence"), default=0)}
        )
    except ValidationError:
        return None


def _site_structure(value) -> list[SiteSection] | None:
    if not isinstance(value, list):
        return None
    sections = []
    for item in value:
        try:
            sections.append(SiteSection.model_validate(item))
        except ValidationError:
            continue
    return sections or None


# ── Model calls ─────────────────────────────────────────


class Analyzer:
    """Model calls for one run, sharing one tracker and one retry policy."""

    def __init__(
        self,
        generate: Generate,
        tracker: TokenTracker,
        *,
        max_retries: int = 3,
        base_delay: float = 2.0,
        category_max_tokens: int = 1500,
        brief_max_tokens: int = 500,
        summary_max_tokens: int = 300,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.generate = generate
        self.tracker = tracker
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.category_max_tokens = category_max_tokens
        self.brief_max_tokens = brief_max_tokens
        self.summary_max_tokens = summary_max_tokens
        self.sleep = sleep

    async def _call(self, prompt: str, max_tokens: int, system: str | None = None) -> str:
        response = await with_retry(
            lambda: self.generate(prompt, max_tokens, 0.0, system=system),
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            sleep=self.sleep,
        )
        self.tracker.add(response.input_tokens, response.output_tokens)
        return response.text

    async def analyze_category(self, prompt: str) -> CategoryAnalysis:
        try:
            text = await self._call(prompt, self.category_max_tokens, prompts.ANALYST_SYSTEM)
        except Exception as e:
            logger.warning("⚠️ Category analysis call failed: %s", e)
            return fallback_analysis()
        try:
            return parse_category_response(text)
        except Exception as e:
            logger.warning("⚠️ Category response rejected: %s", e)
            return fallback_analysis()

    async def generate_brief(self, data: ScrapedData) -> WebsiteBrief:
        try:
            text = await self._call(
                prompts.website_brief(data), self.brief_max_tokens, prompts.BRIEF_SYSTEM
            )
            return parse_brief(text, data)
        except Exception as e:
            logger.warning("⚠️ Brief generation failed, using title heuristic: %s", e)
            return brief_fallback(data)

    async def generate_summary(
        self, data: ScrapedData, categories: list[CategoryScore], overall: int
    ) -> str:
        try:
            text = await self._call(
                prompts.executive_summary(data, categories, overall), self.summary_max_tokens
            )
        except Exception as e:
            logger.warning("⚠️ Summary generation failed: %s", e)
            return SUMMARY_FALLBACK
        return text.strip() or SUMMARY_FALLBACK
