"""
WebAudit — Shared HTTP fetch and regex HTML helpers for the collectors.
Uses aiohttp + regex parsing, no DOM library.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from html import unescape
from urllib.parse import urljoin, urlparse

import aiohttp

from webaudit.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchedPage:
    url: str
    final_url: str
    status: int
    html: str
    load_time_ms: int


def client_session(timeout: aiohttp.ClientTimeout | None = None) -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        timeout=timeout or aiohttp.ClientTimeout(total=settings.scraper_timeout_secs, connect=10),
        headers={"User-Agent": settings.scraper_user_agent},
    )


async def fetch_page(session: aiohttp.ClientSession, url: str) -> FetchedPage:
    """GET ``url`` following redirects. Raises on network errors.

    Bodies larger than ``max_page_bytes`` are truncated, not rejected.
    """
    started = time.monotonic()
    async with session.get(url, allow_redirects=True) as resp:
        body = await resp.content.read(settings.max_page_bytes)
        elapsed = int((time.monotonic() - started) * 1000)
        return FetchedPage(
            url=url,
            final_url=str(resp.url),
            status=resp.status,
            html=body.decode(resp.charset or "utf-8", errors="replace"),
            load_time_ms=elapsed,
        )


async def fetch_html(url: str) -> FetchedPage:
    """One-shot fetch with its own session; raises on non-2xx."""
    async with client_session() as session:
        page = await fetch_page(session, url)
    if page.status >= 400:
        raise RuntimeError(f"HTTP {page.status} fetching {url}")
    return page


async def fetch_text(session: aiohttp.ClientSession, url: str) -> str | None:
    """Fetch a small text resource (robots.txt, sitemap.xml). None unless 200."""
    try:
        async with session.get(url, allow_redirects=True) as resp:
            if resp.status != 200:
                return None
            body = await resp.content.read(settings.max_page_bytes)
            return body.decode("utf-8", errors="replace")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("fetch %s failed: %s", url, e)
        return None


# ── Regex extraction ────────────────────────────────────


_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_ATTR_RE = re.compile(r"""([\w:-]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))""")


def clean(fragment: str) -> str:
    """Strip tags, decode entities and collapse whitespace."""
    return _WS_RE.sub(" ", unescape(_TAG_RE.sub(" ", fragment))).strip()


def extract_text(html: str) -> str:
    """Visible text of a document (scripts, styles and noscript removed)."""
    text = re.sub(r"<(script|style|noscript)[^>]*>[\s\S]*?</\1>", "", html, flags=re.I)
    return clean(text)


def body_html(html: str) -> str:
    match = re.search(r"<body[^>]*>([\s\S]*)</body>", html, re.I)
    return match.group(1) if match else html


def parse_attrs(tag: str) -> dict[str, str]:
    """Attributes of one opening tag, names lowercased."""
    attrs: dict[str, str] = {}
    for m in _ATTR_RE.finditer(tag):
        value = next((g for g in m.groups()[1:] if g is not None), "")
        attrs[m.group(1).lower()] = unescape(value)
    return attrs


def find_tags(html: str, name: str) -> list[dict[str, str]]:
    """Attributes of every ``<name ...>`` opening tag."""
    pattern = re.compile(rf"<{name}\b([^>]*)>", re.I)
    return [parse_attrs(m.group(1)) for m in pattern.finditer(html)]


def find_elements(html: str, name: str) -> list[tuple[dict[str, str], str]]:
    """``(attrs, inner_html)`` for every ``<name>...</name>`` element (not nested)."""
    pattern = re.compile(rf"<{name}\b([^>]*)>([\s\S]*?)</{name}>", re.I)
    return [(parse_attrs(m.group(1)), m.group(2)) for m in pattern.finditer(html)]


def section(html: str, name: str) -> str:
    """Concatenated inner HTML of every ``<name>`` element."""
    return " ".join(inner for _, inner in find_elements(html, name))


def title_of(html: str) -> str | None:
    match = re.search(r"<title[^>]*>([\s\S]*?)</title>", html, re.I)
    if not match:
        return None
    return clean(match.group(1)) or None


def meta_content(html: str, key: str) -> str | None:
    """``content`` of the first meta tag whose name or property equals ``key``."""
    key = key.lower()
    for attrs in find_tags(html, "meta"):
        if (attrs.get("name") or attrs.get("property") or "").lower() == key:
            return attrs.get("content")
    return None


def headings(html: str, level: int) -> list[str]:
    texts = (clean(inner) for _, inner in find_elements(html, f"h{level}"))
    return [t for t in texts if t]


def links(html: str) -> list[tuple[str, str]]:
    """``(href, text)`` for every anchor with an href."""
    out = []
    for attrs, inner in find_elements(html, "a"):
        href = attrs.get("href")
        if href:
            out.append((href, clean(inner)))
    return out


def has_class(attrs: dict[str, str], pattern: str) -> bool:
    return bool(re.search(pattern, attrs.get("class", ""), re.I))


def absolute(base: str, href: str | None) -> str | None:
    if not href:
        return None
    return urljoin(base, href)


def origin(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}"
