"""
Technical collector: status, timing, SSL, head metadata, brand images.
Critical: a failure here fails the run.
"""

import json
import logging
import re

from webaudit.pipeline.collectors.fetch import (
    FetchedPage,
    absolute,
    fetch_html,
    find_elements,
    find_tags,
    meta_content,
    title_of,
)

logger = logging.getLogger(__name__)

_ANALYTICS_RE = re.compile(r"googletagmanager|google-analytics|gtag\(|dataLayer", re.I)


async def scrape_technical(url: str) -> dict:
    page = await fetch_html(url)
    logger.info("🔧 Technical fetch %s → %s in %dms", url, page.status, page.load_time_ms)
    return extract_technical(page)


def extract_technical(page: FetchedPage) -> dict:
    html = page.html
    base = page.final_url
    link_tags = find_tags(html, "link")

    viewport = meta_content(html, "viewport") or ""
    favicon_url = _favicon_url(link_tags, base)
    og_image = absolute(base, meta_content(html, "og:image"))
    twitter_image = absolute(base, meta_content(html, "twitter:image"))
    schema_logo = absolute(base, _schema_logo(html))

    return {
        "url": page.url,
        "final_url": page.final_url,
        "load_time": page.load_time_ms,
        "status_code": page.status,
        "ssl": page.final_url.startswith("https"),
        "title": title_of(html),
        "meta_description": meta_content(html, "description"),
        "mobile_viewport": "width=device-width" in viewport,
        "favicon": any("icon" in t.get("rel", "").lower() for t in link_tags),
        "favicon_url": favicon_url,
        "og_image_url": og_image,
        "logo_url": og_image or twitter_image or schema_logo or favicon_url,
        "image_count": len(find_tags(html, "img")),
        "has_analytics": bool(_ANALYTICS_RE.search(html)),
        "has_forms": bool(re.search(r"<form\b", html, re.I)),
        "content_length": len(html),
        "broken_links": [],
    }


def _favicon_url(link_tags: list[dict[str, str]], base: str) -> str | None:
    # apple-touch-icon wins over icon, then shortcut icon
    for rel in ("apple-touch-icon", "icon", "shortcut icon"):
        for tag in link_tags:
            if tag.get("rel", "").lower().strip() == rel and tag.get("href"):
                return absolute(base, tag["href"])
    return None


def _schema_logo(html: str) -> str | None:
    """Organization/LocalBusiness logo from ld+json blocks."""
    for attrs, body in find_elements(html, "script"):
        if attrs.get("type", "").lower() != "application/ld+json":
            continue
        try:
            data = json.loads(body)
        except ValueError:
            continue
        candidates = data if isinstance(data, list) else [data]
        for item in list(candidates):
            if isinstance(item, dict) and isinstance(item.get("@graph"), list):
                candidates.extend(item["@graph"])
        for item in candidates:
            if not isinstance(item, dict) or not item.get("logo"):
                continue
            logo = item["logo"]
            if isinstance(logo, str):
                return logo
            if isinstance(logo, dict) and logo.get("url"):
                return logo["url"]
    return None
