"""
WebAudit — Google PageSpeed Insights (v5) client.

Core Web Vitals come from the CrUX field data (real users), scores and lab
metrics from the embedded Lighthouse run. Nothing in here raises: every
failure becomes a ``PageSpeedError`` so a missing key or a slow API never
takes an audit down.
"""

import asyncio
import logging
from datetime import datetime, timezone

import aiohttp

from webaudit.config import settings
from webaudit.schemas.audit import (
    CoreWebVitals,
    LabMetrics,
    LighthouseScores,
    PageSpeedData,
    PageSpeedError,
    PageSpeedSnapshot,
    PerformanceOpportunity,
)

logger = logging.getLogger(__name__)

PAGESPEED_API_URL = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"

# Lighthouse audits worth surfacing as improvement opportunities
OPPORTUNITY_IDS = [
    "render-blocking-resources",
    "unused-css-rules",
    "unused-javascript",
    "modern-image-formats",
    "uses-optimized-images",
    "uses-responsive-images",
    "offscreen-images",
    "unminified-css",
    "unminified-javascript",
    "efficient-animated-content",
    "duplicated-javascript",
    "legacy-javascript",
    "uses-text-compression",
    "uses-rel-preconnect",
    "server-response-time",
    "redirects",
    "uses-rel-preload",
    "font-display",
    "third-party-summary",
]

MAX_OPPORTUNITIES = 10

# CrUX metric key → (field name, divisor)
_CRUX_METRICS = {
    "LARGEST_CONTENTFUL_PAINT_MS": ("lcp", 1000),  # → seconds
    "FIRST_INPUT_DELAY_MS": ("fid", 1),
    "CUMULATIVE_LAYOUT_SHIFT_SCORE": ("cls", 100),
    "INTERACTION_TO_NEXT_PAINT": ("inp", 1),
    "FIRST_CONTENTFUL_PAINT_MS": ("fcp", 1000),
    "EXPERIMENTAL_TIME_TO_FIRST_BYTE": ("ttfb", 1),
}

_RATINGS = {
    "fast": "good",
    "good": "good",
    "average": "needs-improvement",
    "needs-improvement": "needs-improvement",
    "needs_improvement": "needs-improvement",
    "slow": "poor",
    "poor": "poor",
}


def _extract_core_web_vitals(crux: dict | None) -> CoreWebVitals:
    metrics = (crux or {}).get("metrics") or {}
    fields: dict = {}
    for key, (name, divisor) in _CRUX_METRICS.items():
        metric = metrics.get(key) or {}
        percentile = metric.get("percentile")
        # A zero percentile means "no data" in CrUX
        if percentile:
            fields[name] = percentile / divisor if divisor != 1 else percentile
        category = metric.get("category")
        if category:
            fields[f"{name}_rating"] = _RATINGS.get(str(category).lower())
    return CoreWebVitals(**fields)


def _extract_lighthouse_scores(categories: dict | None) -> LighthouseScores:
    categories = categories or {}

    def score(key: str) -> int | None:
        value = (categories.get(key) or {}).get("score")
        return round(value * 100) if value is not None else None

    return LighthouseScores(
        performance=score("performance"),
        accessibility=score("accessibility"),
        best_practices=score("best-practices"),
        seo=score("seo"),
    )


def _format_savings(audit: dict) -> str | None:
    details = audit.get("details") or {}
    savings_ms = details.get("overallSavingsMs")
    savings_bytes = details.get("overallSavingsBytes")
    if savings_ms:
        seconds = savings_ms / 1000
        return f"{seconds:.1f} s" if seconds >= 1 else f"{round(savings_ms)} ms"
    if savings_bytes:
        kb = savings_bytes / 1024
        return f"{kb / 1024:.1f} MB" if kb >= 1024 else f"{round(kb)} KB"
    return audit.get("displayValue") or None


def _extract_opportunities(audits: dict | None) -> list[PerformanceOpportunity]:
    if not audits:
        return []

    found: list[PerformanceOpportunity] = []
    for audit_id in OPPORTUNITY_IDS:
        audit = audits.get(audit_id)
        if not audit or audit.get("score") is None or audit["score"] >= 1:
            continue
        found.append(
            PerformanceOpportunity(
                id=audit_id,
                title=audit.get("title") or audit_id,
                description=audit.get("description") or "",
                savings=_format_savings(audit),
                score=audit["score"],
            )
        )

    # Lowest score first = biggest opportunity
    found.sort(key=lambda o: o.score or 0)
    return found[:MAX_OPPORTUNITIES]


def _numeric(audits: dict, key: str) -> float | None:
    return (audits.get(key) or {}).get("numericValue") or None


def parse_pagespeed(payload: dict, strategy: str, url: str) -> PageSpeedData:
    """Turn a raw ``runPagespeed`` response into ``PageSpeedData``."""
    crux = payload.get("loadingExperience") or {}
    lighthouse = payload.get("lighthouseResult") or {}
    audits = lighthouse.get("audits") or {}

    passed = total = 0
    for audit in audits.values():
        if audit.get("scoreDisplayMode") in ("binary", "numeric"):
            total += 1
            if audit.get("score") == 1:
                passed += 1

    return PageSpeedData(
        fetch_time=payload.get("analysisUTCTimestamp")
        or datetime.now(timezone.utc).isoformat(),
        final_url=payload.get("id") or url,
        strategy=strategy,
        core_web_vitals=_extract_core_web_vitals(crux),
        has_field_data=bool(crux.get("metrics")),
        lighthouse_scores=_extract_lighthouse_scores(lighthouse.get("categories")),
        metrics=LabMetrics(
            first_contentful_paint=_numeric(audits, "first-contentful-paint"),
            largest_contentful_paint=_numeric(audits, "largest-contentful-paint"),
            total_blocking_time=_numeric(audits, "total-blocking-time"),
            cumulative_layout_shift=_numeric(audits, "cumulative-layout-shift"),
            speed_index=_numeric(audits, "speed-index"),
            time_to_interactive=_numeric(audits, "interactive"),
        ),
        opportunities=_extract_opportunities(audits),
        passed_audits=passed,
        total_audits=total,
    )


async def fetch_pagespeed(
    url: str, strategy: str = "mobile"
) -> PageSpeedData | PageSpeedError:
    """Run one PageSpeed Insights analysis for ``url``."""
    api_key = settings.pagespeed_api_key
    if not api_key:
        return PageSpeedError(message="PageSpeed API key not configured", code="NO_API_KEY")

    params = [
        ("url", url),
        ("key", api_key),
        ("strategy", strategy),
        ("category", "performance"),
        ("category", "accessibility"),
        ("category", "best-practices"),
        ("category", "seo"),
    ]
    timeout_secs = settings.pagespeed_timeout_secs

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                PAGESPEED_API_URL,
                params=params,
                headers={"Accept": "application/json"},
                timeout=aiohttp.ClientTimeout(total=timeout_secs),
            ) as resp:
                if resp.status != 200:
                    try:
                        err = (await resp.json(content_type=None)).get("error") or {}
                    except ValueError:
                        err = {}
                    logger.warning("PageSpeed %s HTTP %d for %s", strategy, resp.status, url)
                    return PageSpeedError(
                        message=err.get("message") or f"PageSpeed API error: {resp.status}",
                        code=str(err.get("code") or f"HTTP_{resp.status}"),
                    )
                data = await resp.json(content_type=None)
    except asyncio.TimeoutError:
        logger.warning("PageSpeed %s timeout for %s", strategy, url)
        return PageSpeedError(
            message=f"PageSpeed API request timed out after {timeout_secs} seconds",
            code="TIMEOUT",
        )
    except Exception as e:
        logger.warning("PageSpeed %s error for %s: %s", strategy, url, e)
        return PageSpeedError(
            message=str(e) or "Failed to fetch PageSpeed data", code="FETCH_ERROR"
        )

    return parse_pagespeed(data, strategy, url)


async def fetch_pagespeed_both(url: str) -> dict[str, PageSpeedData | PageSpeedError]:
    """Mobile and desktop analyses, run concurrently."""
    mobile, desktop = await asyncio.gather(
        fetch_pagespeed(url, "mobile"),
        fetch_pagespeed(url, "desktop"),
    )
    return {"mobile": mobile, "desktop": desktop}


def to_snapshot(results: dict | None) -> PageSpeedSnapshot:
    """Keep successful strategies; errors and gaps become ``None``."""
    results = results or {}

    def ok(value) -> PageSpeedData | None:
        return value if isinstance(value, PageSpeedData) else None

    return PageSpeedSnapshot(mobile=ok(results.get("mobile")), desktop=ok(results.get("desktop")))
