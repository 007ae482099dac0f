"""
Traffic-readiness collector: analytics, pixels, sitemap/robots, structured
data, blog volume, social profiles and on-page SEO counts.
"""

import asyncio
import json
import logging
import re
from urllib.parse import urlparse

import aiohttp

from webaudit.pipeline.collectors.fetch import (
    client_session,
    fetch_page,
    fetch_text,
    find_elements,
    find_tags,
    links,
    meta_content,
    origin,
    title_of,
)
from webaudit.schemas.audit import SocialLink, TrafficSignals

logger = logging.getLogger(__name__)

OTHER_ANALYTICS = [
    ("Plausible", "plausible"),
    ("Fathom", "usefathom"),
    ("Mixpanel", "mixpanel"),
    ("Hotjar", "hotjar"),
    ("Segment", "segment"),
    ("Amplitude", "amplitude"),
]

PIXELS = [
    ("Facebook", ("fbevents",)),
    ("LinkedIn", ("snap.licdn.com", "linkedin.com/px")),
    ("Twitter/X", ("static.ads-twitter.com",)),
    ("TikTok", ("analytics.tiktok.com",)),
]

SOCIAL_PLATFORMS = [
    ("Facebook", re.compile(r"facebook\.com", re.I)),
    ("Twitter/X", re.compile(r"twitter\.com|x\.com", re.I)),
    ("LinkedIn", re.compile(r"linkedin\.com", re.I)),
    ("Instagram", re.compile(r"instagram\.com", re.I)),
    ("YouTube", re.compile(r"youtube\.com", re.I)),
    ("TikTok", re.compile(r"tiktok\.com", re.I)),
    ("GitHub", re.compile(r"github\.com", re.I)),
    ("Discord", re.compile(r"discord\.com|discord\.gg", re.I)),
    ("Pinterest", re.compile(r"pinterest\.com", re.I)),
]

BLOG_PATHS = ["/blog", "/posts", "/articles", "/news", "/insights", "/updates"]
BLOG_LINK_TEXTS = {"blog", "articles", "insights"}
RESOURCE_PATHS = ["/resources", "/guides", "/ebooks", "/whitepapers", "/case-studies", "/library"]
_POST_CLASS_RE = re.compile(r"\b(post|blog-post|entry)\b|post-|article-", re.I)


async def scrape_traffic_signals(url: str) -> TrafficSignals:
    async with client_session() as session:
        page = await fetch_page(session, url)
        base = origin(page.final_url)

        sitemap = await fetch_text(session, f"{base}/sitemap.xml")
        robots = await fetch_text(session, f"{base}/robots.txt")

        signals = extract_traffic_signals(page.html, page.final_url)
        blog_posts = 0
        if signals["blog_exists"]:
            blog_posts = await _estimate_blog_posts(session, base)

    return TrafficSignals(
        **signals,
        has_sitemap=sitemap is not None,
        sitemap_page_count=(sitemap.count("<loc>") or None) if sitemap else None,
        has_robots_txt=robots is not None,
        robots_allows_crawling=robots_allows_crawling(robots),
        estimated_blog_posts=blog_posts,
    )


def robots_allows_crawling(robots: str | None) -> bool:
    """False only when a rule disallows the whole site (`Disallow: /`)."""
    if robots is None:
        return True
    for line in robots.lower().splitlines():
        rule = line.split("#", 1)[0].strip()
        if rule.startswith("disallow:") and rule[len("disallow:"):].strip() == "/":
            return False
    return True


def extract_traffic_signals(html: str, final_url: str) -> dict:
    scripts = " ".join(
        f"{attrs.get('src', '')} {body}" for attrs, body in find_elements(html, "script")
    ).lower()
    anchors = links(html)
    hrefs = [href for href, _ in anchors]
    texts = [text.lower() for _, text in anchors]

    title = title_of(html) or ""
    description = meta_content(html, "description") or ""
    site = origin(final_url)
    host = urlparse(final_url).hostname or ""

    return {
        "has_google_analytics": "google-analytics" in scripts or "gtag" in scripts,
        "has_gtm": "googletagmanager" in scripts or "datalayer" in scripts,
        "has_other_analytics": [name for name, marker in OTHER_ANALYTICS if marker in scripts],
        "has_pixels": [name for name, markers in PIXELS if any(m in scripts for m in markers)],
        "has_structured_data": bool(structured_data_types(html)),
        "structured_data_types": structured_data_types(html),
        "canonical_tag": any(
            t.get("rel", "").lower() == "canonical" for t in find_tags(html, "link")
        ),
        "blog_exists": any(p in h for h in hrefs for p in BLOG_PATHS)
        or any(t in BLOG_LINK_TEXTS for t in texts),
        "has_resources_section": any(p in h for h in hrefs for p in RESOURCE_PATHS)
        or any(w in t for t in texts for w in ("resource", "guide", "download")),
        "social_links": social_profiles(hrefs),
        "meta_title": bool(title),
        "meta_title_length": len(title),
        "meta_description": bool(description),
        "meta_description_length": len(description),
        "h1_count": len(re.findall(r"<h1\b", html, re.I)),
        "internal_link_count": sum(1 for h in hrefs if h.startswith("/") or h.startswith(site)),
        "external_link_count": sum(1 for h in hrefs if h.startswith("http") and host not in h),
    }


def structured_data_types(html: str) -> list[str]:
    """Distinct ``@type`` values from ld+json blocks, including ``@graph`` items."""
    types: list[str] = []
    for attrs, body in find_elements(html, "script"):
        if attrs.get("type", "").lower() != "application/ld+json":
            continue
        try:
            data = json.loads(body)
        except ValueError:
            continue
        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict):
                continue
            graph = item.get("@graph")
            for node in [item] + (graph if isinstance(graph, list) else []):
                if not isinstance(node, dict):
                    continue
                kind = node.get("@type")
                for t in kind if isinstance(kind, list) else [kind]:
                    if isinstance(t, str) and t not in types:
                        types.append(t)
    return types


def social_profiles(hrefs: list[str], platforms=SOCIAL_PLATFORMS) -> list[SocialLink]:
    """First link per platform, in document order of discovery."""
    found: dict[str, str] = {}
    for href in hrefs:
        for name, pattern in platforms:
            if name not in found and pattern.search(href):
                found[name] = href
    return [SocialLink(platform=name, url=href) for name, href in found.items()]


async def _estimate_blog_posts(session: aiohttp.ClientSession, base: str) -> int:
    for path in BLOG_PATHS[:-1]:
        try:
            page = await fetch_page(session, f"{base}{path}")
        except (aiohttp.ClientError, asyncio.TimeoutError):
            continue
        if page.status != 200:
            continue
        count = count_posts(page.html)
        if count > 0:
            return count
    return 0


def count_posts(html: str) -> int:
    count = len(re.findall(r"<article\b", html, re.I))
    for name in ("div", "li", "section"):
        count += sum(1 for t in find_tags(html, name) if _POST_CLASS_RE.search(t.get("class", "")))
    return count
