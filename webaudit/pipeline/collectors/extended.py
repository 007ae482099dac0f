"""
Extended-content collector: trust, content strategy, conversion, multimedia
and business-overview signals from the home page plus a few known paths.
"""

import asyncio
import logging
import re

import aiohttp

from webaudit.pipeline.collectors.content import cta_texts
from webaudit.pipeline.collectors.fetch import (
    body_html,
    clean,
    client_session,
    extract_text,
    fetch_page,
    find_elements,
    find_tags,
    has_class,
    links,
    origin,
)
from webaudit.pipeline.collectors.traffic import SOCIAL_PLATFORMS, count_posts, social_profiles
from webaudit.schemas.audit import ExtendedContent

logger = logging.getLogger(__name__)

TRUST_BADGE_MARKERS = [
    "ssl", "secure", "verified", "certified", "trusted", "badge",
    "bbb", "norton", "mcafee", "truste", "gdpr", "hipaa", "soc2", "iso",
]

BADGE_TYPES = [
    ("BBB", ("bbb",)),
    ("Norton", ("norton",)),
    ("McAfee", ("mcafee",)),
    ("SSL Secure", ("ssl", "secure")),
    ("GDPR", ("gdpr",)),
    ("HIPAA", ("hipaa",)),
    ("SOC 2", ("soc2", "soc 2")),
    ("ISO", ("iso",)),
]

RESOURCE_TYPES = [
    ("guides", ("guide",)),
    ("ebooks", ("ebook", "e-book")),
    ("whitepapers", ("whitepaper", "white paper")),
    ("templates", ("template",)),
    ("checklists", ("checklist",)),
    ("webinars", ("webinar",)),
    ("case studies", ("case study", "case-study")),
]

MISSION_KEYWORDS = ["mission", "vision", "values", "our story", "who we are", "what we do"]
AUDIENCE_KEYWORDS = [
    "for businesses", "for teams", "for developers", "for marketers",
    "for startups", "for enterprise", "for small business", "for agencies",
    "designed for", "built for", "made for", "perfect for",
]

PRICING_PATHS = ["/pricing", "/plans", "/packages"]
BLOG_PATHS = ["/blog", "/articles", "/news", "/insights"]
RESOURCE_PATHS = ["/resources", "/library", "/downloads"]

PRICE_RE = re.compile(r"\$\d+|\d+/mo|\d+/month|\d+/year", re.I)
_TESTIMONIAL_CLASS_RE = re.compile(r"testimonial|review|quote|customer-story|success-story", re.I)


async def scrape_extended_content(url: str) -> ExtendedContent:
    async with client_session() as session:
        page = await fetch_page(session, url)
        base = origin(page.final_url)
        signals = extract_extended(page.html)

        pricing = "none"
        for path in PRICING_PATHS:
            text = await _page_text(session, f"{base}{path}")
            if text is not None:
                pricing = pricing_transparency(text)
                break

        blog_posts = 0
        if signals["has_blog"]:
            for path in BLOG_PATHS:
                html = await _page_html(session, f"{base}{path}")
                blog_posts = count_posts(html) if html else 0
                if blog_posts:
                    break

        resources: list[str] = []
        if signals["has_resources_section"]:
            for path in RESOURCE_PATHS:
                text = await _page_text(session, f"{base}{path}")
                resources = resource_types(text) if text else []
                if resources:
                    break

    return ExtendedContent(
        **signals,
        pricing_transparency=pricing,
        blog_post_count=blog_posts,
        resource_types=resources,
    )


def extract_extended(html: str) -> dict:
    body_text = extract_text(body_html(html)).lower()
    anchors = [(href.lower(), text.lower()) for href, text in links(html)]

    def linked(*, hrefs=(), texts=(), exact=()) -> bool:
        return any(
            any(h in href for h in hrefs) or any(t in text for t in texts) or text in exact
            for href, text in anchors
        )

    testimonials = sum(
        1
        for name in ("div", "section", "article", "li", "figure")
        for attrs in find_tags(html, name)
        if _TESTIMONIAL_CLASS_RE.search(attrs.get("class", ""))
    ) + len(re.findall(r"<blockquote\b", html, re.I))

    images = [f"{t.get('alt', '')} {t.get('src', '')}".lower() for t in find_tags(html, "img")]
    badges = [img for img in images if any(m in img for m in TRUST_BADGE_MARKERS)]

    leads = lead_capture_types(html)
    ctas = cta_texts(html)
    videos = video_sources(html)

    return {
        "has_testimonials": testimonials > 0,
        "testimonial_count": testimonials,
        "has_team_page": linked(hrefs=("/team", "/about"), texts=("team", "about us")),
        "has_case_studies": linked(
            hrefs=("/case-stud", "/success-stor"), texts=("case stud", "success stor")
        ),
        "has_privacy_policy": linked(hrefs=("/privacy",), texts=("privacy",)),
        "has_terms_of_service": linked(
            hrefs=("/terms",), texts=("terms of service", "terms & conditions")
        ),
        "has_trust_badges": bool(badges),
        "trust_badge_types": [
            name for name, markers in BADGE_TYPES if any(m in b for b in badges for m in markers)
        ],
        "has_blog": linked(
            hrefs=("/blog", "/articles", "/news", "/insights"), exact=("blog", "articles")
        ),
        "has_resources_section": linked(
            hrefs=("/resources", "/guides", "/ebooks", "/whitepapers"),
            texts=("resource", "guide", "download"),
        ),
        "has_lead_capture": bool(leads),
        "lead_capture_types": leads,
        "has_email_signup": "newsletter" in leads or "email signup" in leads,
        "has_pricing_page": linked(hrefs=("/pricing",), texts=("pricing", "plans")),
        "cta_count": len(ctas),
        "cta_types": list(dict.fromkeys(ctas))[:10],
        "has_video_content": videos[0] > 0,
        "video_count": videos[0],
        "video_sources": videos[1],
        "has_podcast": linked(
            hrefs=("podcast", "spotify", "apple.com/podcast"), texts=("podcast",)
        ),
        "social_profiles": social_profiles(
            [href for href, _ in anchors], platforms=SOCIAL_PLATFORMS[:6]
        ),
        "has_about_page": linked(hrefs=("/about",), exact=("about", "about us")),
        "has_contact_page": linked(hrefs=("/contact",), texts=("contact",)),
        "has_mission_statement": any(k in body_text for k in MISSION_KEYWORDS),
        "target_audience_clarity": any(k in body_text for k in AUDIENCE_KEYWORDS),
    }


def lead_capture_types(html: str) -> list[str]:
    types: list[str] = []

    def add(kind: str) -> None:
        if kind not in types:
            types.append(kind)

    for _, inner in find_elements(html, "form"):
        markup = inner.lower()
        text = clean(inner).lower()
        if "newsletter" in markup or "subscribe" in text or "sign up" in text:
            add("newsletter")
        if "contact" in text or "get in touch" in text:
            add("contact")
        if "demo" in text or "schedule" in text or "book" in text:
            add("demo request")
        if "quote" in text or "pricing" in text:
            add("quote request")
        if re.search(r"type\s*=\s*[\"']?email", markup) and not types:
            add("email signup")
    return types


def video_sources(html: str) -> tuple[int, list[str]]:
    """``(count, sources)`` for video tags and embedded players."""
    sources: list[str] = []
    count = len(re.findall(r"<video\b", html, re.I))
    if count:
        sources.append("self-hosted")
    for attrs in find_tags(html, "iframe"):
        src = attrs.get("src", "").lower()
        for marker, name in (("youtube", "YouTube"), ("vimeo", "Vimeo"), ("wistia", "Wistia")):
            if marker in src:
                count += 1
                if name not in sources:
                    sources.append(name)
    return count, sources


def pricing_transparency(text: str) -> str:
    text = text.lower()
    if PRICE_RE.search(text):
        return "visible"
    if any(
        k in text
        for k in ("contact sales", "contact us", "get a quote", "request pricing",
                  "custom pricing", "pricing on request")
    ):
        return "contact-sales"
    return "hidden"


def resource_types(text: str) -> list[str]:
    text = text.lower()
    return [name for name, markers in RESOURCE_TYPES if any(m in text for m in markers)]


async def _page_html(session: aiohttp.ClientSession, url: str) -> str | None:
    try:
        page = await fetch_page(session, url)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("extended: %s unreachable: %s", url, e)
        return None
    return page.html if page.status < 400 else None


async def _page_text(session: aiohttp.ClientSession, url: str) -> str | None:
    html = await _page_html(session, url)
    return extract_text(body_html(html)) if html is not None else None
