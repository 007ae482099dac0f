"""
Collector set: independent async functions, each gathering one facet of a
target site. ``scrape_website`` fans them out and merges the results.

Technical and content collection are critical; every other collector
degrades to ``None`` / ``[]`` on failure.
"""

import asyncio
import logging
from urllib.parse import urlparse

import aiohttp

from webaudit.errors import CollectionError, InvalidUrlError
from webaudit.pipeline.collectors.content import scrape_content
from webaudit.pipeline.collectors.design import scrape_design_quality
from webaudit.pipeline.collectors.extended import scrape_extended_content
from webaudit.pipeline.collectors.fetch import client_session
from webaudit.pipeline.collectors.pages import scrape_multiple_pages
from webaudit.pipeline.collectors.technical import scrape_technical
from webaudit.pipeline.collectors.traffic import scrape_traffic_signals
from webaudit.schemas.audit import ScrapedData

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_url",
    "probe_site",
    "scrape_website",
    "scrape_technical",
    "scrape_content",
    "scrape_traffic_signals",
    "scrape_extended_content",
    "scrape_design_quality",
    "scrape_multiple_pages",
]


def normalize_url(url: str) -> str:
    """Trim and default to https; raises ``InvalidUrlError`` if unparseable."""
    url = (url or "").strip()
    if not url.startswith("http"):
        url = f"https://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise InvalidUrlError("Invalid URL format")
    return url


async def probe_site(url: str, timeout: float = 5.0) -> dict:
    """Quick HEAD (redirects followed) to learn the final URL and SSL state."""
    async with client_session(aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.head(url, allow_redirects=True) as resp:
            final_url = str(resp.url)
    return {"final_url": final_url, "ssl": final_url.startswith("https")}


async def scrape_website(
    url: str, max_pages: int = 1, additional_urls: list[str] | None = None
) -> ScrapedData:
    target = normalize_url(url)
    logger.info("🔍 Starting scrape for %s (max %d pages)", target, max_pages)

    (technical, content, traffic, extended, design, pages) = await asyncio.gather(
        scrape_technical(target),
        scrape_content(target),
        scrape_traffic_signals(target),
        scrape_extended_content(target),
        scrape_design_quality(target),
        scrape_multiple_pages(target, max_pages, additional_urls or []),
        return_exceptions=True,
    )

    if isinstance(technical, BaseException):
        logger.error("❌ Technical scrape failed for %s: %s", target, technical)
        raise CollectionError(f"Technical scrape failed: {technical}") from technical
    if isinstance(content, BaseException):
        logger.error("❌ Content scrape failed for %s: %s", target, content)
        raise CollectionError(f"Content scrape failed: {content}") from content

    traffic = _optional("Traffic signals", traffic)
    extended = _optional("Extended content", extended)
    design = _optional("Design quality", design)
    pages = _optional("Multi-page", pages) or []

    logger.info("✅ Scrape complete for %s (%d pages)", target, len(pages))
    merged = {**technical, **content, "url": target}
    merged["final_url"] = technical.get("final_url") or target
    return ScrapedData(
        **merged,
        traffic_signals=traffic,
        extended_content=extended,
        design_quality=design,
        pages=pages or None,
    )


def _optional(label: str, result):
    if isinstance(result, BaseException):
        logger.warning("⚠️ %s scrape failed: %s (continuing without)", label, result)
        return None
    return result
