"""
Multi-page collector and per-page scoring.

The home page is always first, then caller-supplied URLs, then internal links
discovered on the home page (well-known sections first), up to ``max_pages``.
"""

import asyncio
import logging
import re
from urllib.parse import urljoin, urlparse

import aiohttp

from webaudit.pipeline.collectors.content import cta_texts
from webaudit.pipeline.collectors.fetch import (
    body_html,
    client_session,
    extract_text,
    fetch_page,
    find_tags,
    headings,
    links,
    meta_content,
    origin,
    title_of,
)
from webaudit.schemas.audit import PageData, PageScore, PageSubScores

logger = logging.getLogger(__name__)

PRIORITY_PATHS = [
    "/about",
    "/about-us",
    "/pricing",
    "/contact",
    "/contact-us",
    "/services",
    "/products",
    "/features",
    "/blog",
    "/team",
    "/careers",
    "/faq",
]

_SKIP_EXT_RE = re.compile(r"\.(jpg|jpeg|png|gif|svg|pdf|css|js|ico)$", re.I)


async def scrape_multiple_pages(
    url: str, max_pages: int = 1, additional_urls: list[str] | None = None
) -> list[PageData]:
    base = origin(url)
    async with client_session() as session:
        home_html, home = await _scrape_page(session, url, "/")
        pages = [home]
        seen = {"/"}

        for extra in additional_urls or []:
            if len(pages) >= max_pages:
                break
            full_url, path = resolve_additional(base, extra)
            try:
                _, page = await _scrape_page(session, full_url, path)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning("⚠️ Additional page %s failed: %s", full_url, e)
                continue
            pages.append(page)
            seen.add(path.rstrip("/") or "/")

        if len(pages) < max_pages:
            for path in sort_by_priority(discover_links(home_html, base)):
                if len(pages) >= max_pages:
                    break
                if path in seen:
                    continue
                try:
                    _, page = await _scrape_page(session, f"{base}{path}", path)
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.warning("⚠️ Discovered page %s failed: %s", path, e)
                    continue
                pages.append(page)
                seen.add(path)

    logger.info("📄 Scraped %d page(s) from %s", len(pages), base)
    return pages


def resolve_additional(base: str, value: str) -> tuple[str, str]:
    """Full URL, ``/path`` or bare ``path`` → ``(full_url, path)``."""
    if value.startswith(("http://", "https://")):
        return value, urlparse(value).path or "/"
    if value.startswith("/"):
        return f"{base}{value}", value
    return f"{base}/{value}", f"/{value}"


def discover_links(html: str, base: str) -> list[str]:
    """Same-origin page paths linked from ``html``, trailing slash removed."""
    found: list[str] = []
    for href, _ in links(html):
        if not (href.startswith("http") or href.startswith("/")):
            continue
        full = urlparse(urljoin(base, href))
        if f"{full.scheme}://{full.netloc}" != base:
            continue
        path = full.path
        if path in ("", "/") or "#" in path:
            continue
        if _SKIP_EXT_RE.search(path) or "wp-admin" in path or "wp-login" in path:
            continue
        path = path.rstrip("/")
        if path not in found:
            found.append(path)
    return found


def sort_by_priority(paths: list[str]) -> list[str]:
    """Paths matching a well-known section first (in section order), rest after."""
    prioritized: list[str] = []
    for wanted in PRIORITY_PATHS:
        for path in paths:
            lower = path.lower()
            if lower == wanted or lower.startswith(wanted + "/") or wanted in lower:
                if path not in prioritized:
                    prioritized.append(path)
                break
    return prioritized + [p for p in paths if p not in prioritized]


async def _scrape_page(
    session: aiohttp.ClientSession, url: str, path: str
) -> tuple[str, PageData]:
    fetched = await fetch_page(session, url)
    html = fetched.html
    text = extract_text(body_html(html))
    return html, PageData(
        url=url,
        path=path,
        title=title_of(html),
        meta_description=meta_content(html, "description"),
        h1=headings(html, 1),
        load_time=fetched.load_time_ms,
        word_count=len(text.split()),
        image_count=len(find_tags(html, "img")),
        has_form=bool(re.search(r"<form\b", html, re.I)),
        has_cta=bool(cta_texts(html)),
    )


# ── Scoring ─────────────────────────────────────────────


def calculate_page_score(page: PageData) -> int:
    """Start at 100 and deduct; load time weighs most."""
    score = 100

    if page.load_time >= 10000:
        score -= 50
    elif page.load_time >= 7000:
        score -= 40
    elif page.load_time >= 5000:
        score -= 30
    elif page.load_time >= 3000:
        score -= 20
    elif page.load_time >= 2000:
        score -= 10

    if not page.title:
        score -= 15
    elif len(page.title) < 30 or len(page.title) > 60:
        score -= 5

    if not page.meta_description:
        score -= 10
    elif len(page.meta_description) < 120 or len(page.meta_description) > 160:
        score -= 3

    if not page.h1:
        score -= 10
    elif len(page.h1) > 1:
        score -= 5

    if page.word_count < 100:
        score -= 10
    elif page.word_count < 300:
        score -= 5

    if not page.has_cta:
        score -= 5

    return min(100, max(0, score))


def build_page_score(page: PageData) -> PageScore:
    if page.load_time < 3000:
        technical = 80
    elif page.load_time < 5000:
        technical = 60
    else:
        technical = 40

    if page.word_count >= 300:
        content = 80
    elif page.word_count >= 100:
        content = 60
    else:
        content = 40

    ux = (40 if page.has_cta else 0) + (30 if len(page.h1) == 1 else 15) + (30 if page.has_form else 0)

    return PageScore(
        url=page.url,
        path=page.path,
        title=page.title,
        overall_score=calculate_page_score(page),
        scores=PageSubScores(technical=technical, content=content, ux=ux),
    )


def rank_pages(
    pages: list[PageData] | None,
) -> tuple[list[PageScore], PageScore | None, PageScore | None]:
    """Scores sorted best first, plus the best and worst page."""
    scored = sorted(
        (build_page_score(p) for p in pages or []),
        key=lambda s: s.overall_score,
        reverse=True,
    )
    if not scored:
        return [], None, None
    return scored, scored[0], scored[-1]
