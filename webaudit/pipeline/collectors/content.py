"""
Content collector: headings, body copy, CTAs, navigation, social links, e-mails.
Critical: a failure here fails the run.
"""

import logging
import re

from webaudit.pipeline.collectors.fetch import (
    absolute,
    body_html,
    clean,
    extract_text,
    fetch_html,
    find_elements,
    has_class,
    headings,
    links,
    section,
)

logger = logging.getLogger(__name__)

BODY_TEXT_LIMIT = 5000
MAX_H2 = 10
MAX_CTAS = 10
MAX_NAV_LINKS = 15
MAX_EMAILS = 10

SOCIAL_RE = re.compile(r"facebook|twitter|linkedin|instagram|youtube|tiktok|x\.com", re.I)
EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

# Addresses that look like e-mails but are asset names or service noise
_EMAIL_REJECT = [
    re.compile(r"\.(png|jpg|jpeg|gif|svg|webp|ico)$", re.I),
    re.compile(r"@example\.(com|org|net)$", re.I),
    re.compile(r"@(sentry|wixpress|wordpress|cloudflare)\.io?$", re.I),
    re.compile(r"noreply@", re.I),
    re.compile(r"test@", re.I),
    re.compile(r"@.*\.(local|test|invalid)$", re.I),
]


async def scrape_content(url: str) -> dict:
    page = await fetch_html(url)
    return extract_content(page.html, page.final_url)


def extract_content(html: str, base_url: str) -> dict:
    body_text = extract_text(body_html(html))[:BODY_TEXT_LIMIT]
    return {
        "h1": headings(html, 1),
        "h2": headings(html, 2)[:MAX_H2],
        "body_text": body_text,
        "cta_buttons": _dedupe(cta_texts(html))[:MAX_CTAS],
        "nav_links": _dedupe(_nav_texts(html))[:MAX_NAV_LINKS],
        "social_links": _dedupe(
            absolute(base_url, href) for href, _ in links(html) if SOCIAL_RE.search(href)
        ),
        "emails": extract_emails(html, body_text),
    }


def cta_texts(html: str) -> list[str]:
    """Text of buttons and button-like links, 1-49 chars."""
    texts = [clean(inner) for _, inner in find_elements(html, "button")]
    for attrs, inner in find_elements(html, "a"):
        if has_class(attrs, r"\b(btn|button)\b|cta") or attrs.get("role") == "button":
            texts.append(clean(inner))
    for name in ("div", "span"):
        for attrs, inner in find_elements(html, name):
            if has_class(attrs, r"cta|btn") or attrs.get("role") == "button":
                texts.append(clean(inner))
    return [t for t in texts if 0 < len(t) < 50]


def _nav_texts(html: str) -> list[str]:
    scope = section(html, "nav") + " " + section(html, "header")
    return [text for _, text in links(scope) if 0 < len(text) < 30]


def extract_emails(html: str, body_text: str) -> list[str]:
    found = []
    for href, _ in links(html):
        if href.lower().startswith("mailto:"):
            address = href[7:].split("?")[0].strip().lower()
            if address:
                found.append(address)
    found += [e.lower() for e in EMAIL_RE.findall(body_text)]
    footer = extract_text(section(html, "footer"))
    found += [e.lower() for e in EMAIL_RE.findall(footer)]

    valid = [e for e in _dedupe(found) if not any(p.search(e) for p in _EMAIL_REJECT)]
    return valid[:MAX_EMAILS]


def _dedupe(items) -> list[str]:
    return list(dict.fromkeys(i for i in items if i))
