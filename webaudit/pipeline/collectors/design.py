"""
Design-quality collector: footer freshness, URL hygiene, palette size,
animation libraries, layout patterns and mobile readiness.

Works on markup and inline CSS only; computed styles are out of reach without
a browser, so palette and layout checks read declared values.
"""

import logging
import re
from datetime import datetime, timezone
from urllib.parse import urlparse

from webaudit.pipeline.collectors.fetch import (
    extract_text,
    fetch_html,
    find_elements,
    find_tags,
    meta_content,
    section,
)
from webaudit.schemas.audit import (
    AnimationAnalysis,
    ColorAnalysis,
    DesignQuality,
    LayoutAnalysis,
    MobileAnalysis,
    UrlAnalysis,
)

logger = logging.getLogger(__name__)

COPYRIGHT_RE = re.compile(r"(?:©|copyright|\(c\))\s*(\d{4})", re.I)
COPYRIGHT_SUFFIX_RE = re.compile(r"(\d{4})\s*(?:©|copyright|\(c\))", re.I)
ANY_YEAR_RE = re.compile(r"\b(20[0-3]\d)\b")
HEX_COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")
FILE_EXT_RE = re.compile(r"\.(html|php|asp|aspx|jsp|htm)$", re.I)

# (name, markers searched in script sources/bodies, markers searched in the whole document)
ANIMATION_LIBRARIES = [
    ("GSAP", ("gsap", "greensock"), ("gsap",)),
    ("AOS", ("aos.js", "aos.css", "/aos@", "aos.init"), ("data-aos",)),
    ("Framer Motion", ("framer-motion", "framer", "motion/react"), ()),
    ("Animate.css", ("animatecss",), ("animate__",)),
    ("Lottie", ("lottie", "bodymovin"), ()),
    ("Anime.js", ("animejs",), ()),
    ("Velocity.js", ("velocity",), ()),
    ("ScrollMagic", ("scrollmagic",), ()),
    ("Locomotive Scroll", ("locomotive",), ("data-scroll",)),
    ("ScrollTrigger", ("scrolltrigger",), ()),
    ("Barba.js", ("barba",), ()),
    ("Swup", ("swup",), ()),
    ("Highway.js", ("highway",), ()),
    ("Popmotion", ("popmotion",), ()),
    ("Motion One", ("motion-one", "@motionone"), ()),
    ("Splitting.js", ("splitting",), ("data-splitting",)),
]

LAYOUT_PATTERNS = [
    ("Hero section", "hero"),
    ("Features grid", "feature"),
    ("Testimonials", "testimonial"),
    ("Pricing section", "pricing"),
    ("CTA section", "cta"),
    ("FAQ section", "faq"),
    ("Contact section", "contact"),
]

MOBILE_MENU_MARKERS = ["hamburger", "mobile-menu", "nav-toggle", "menu-toggle", "mobile-nav"]
_SECTION_CLASS_RE = re.compile(r"section", re.I)


async def scrape_design_quality(url: str) -> DesignQuality:
    page = await fetch_html(url)
    return extract_design(page.html, page.final_url)


def extract_design(html: str, final_url: str, *, year: int | None = None) -> DesignQuality:
    year = year or datetime.now(timezone.utc).year
    footer = _footer_html(html)
    copyright_year = copyright_year_of(extract_text(footer)) if footer else None

    styles = " ".join(body for _, body in find_elements(html, "style"))
    inline = " ".join(t.get("style", "") for t in _all_tags(html))
    css = f"{styles} {inline}"

    return DesignQuality(
        has_footer=bool(footer),
        footer_copyright_year=copyright_year,
        is_current_year=copyright_year == year,
        years_outdated=year - copyright_year if copyright_year else 0,
        url_analysis=analyze_url(final_url),
        color_analysis=analyze_colors(css),
        animation_analysis=analyze_animations(html, styles),
        layout_analysis=analyze_layout(html, css),
        mobile_analysis=analyze_mobile(html, styles),
    )


def copyright_year_of(text: str) -> int | None:
    """Year from "© 2024", "2024 ©" or "Copyright 2020 - 2024"; else any 20xx year."""
    for pattern in (
        re.compile(r"(?:©|copyright)\s*\d{4}\s*[-–]\s*(\d{4})", re.I),
        COPYRIGHT_RE,
        COPYRIGHT_SUFFIX_RE,
        ANY_YEAR_RE,
    ):
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def analyze_url(url: str) -> UrlAnalysis:
    parsed = urlparse(url)
    path = parsed.path
    issues = []

    has_query = bool(parsed.query)
    has_ext = bool(FILE_EXT_RE.search(path))
    underscores = "_" in path
    lowercase = path == path.lower()
    hierarchy = len([p for p in path.split("/") if p]) <= 4

    if has_query:
        issues.append("URL contains query parameters")
    if has_ext:
        issues.append("URL contains file extension (.html, .php, etc.)")
    if underscores:
        issues.append("URL uses underscores instead of hyphens")
    if not lowercase:
        issues.append("URL contains uppercase characters")
    if len(url) > 75:
        issues.append("URL is too long (>75 characters)")
    if not hierarchy:
        issues.append("URL hierarchy is too deep")

    return UrlAnalysis(
        is_clean_url=not has_query and not has_ext and lowercase,
        has_proper_hierarchy=hierarchy,
        uses_hyphens="-" in path,
        is_lowercase=lowercase,
        has_file_extension=has_ext,
        url_length=len(url),
        issues=issues,
    )


def analyze_colors(css: str) -> ColorAnalysis:
    counts: dict[str, int] = {}
    for raw in HEX_COLOR_RE.findall(css):
        color = _normalize_hex(raw)
        counts[color] = counts.get(color, 0) + 1

    issues = []
    if len(counts) > 20:
        issues.append("Too many colors used (>20), inconsistent palette")
    if len(counts) > 15:
        issues.append("Consider reducing color palette for consistency")

    ranked = sorted(counts, key=lambda c: counts[c], reverse=True)
    return ColorAnalysis(
        primary_colors=ranked[:5],
        color_count=len(counts),
        has_consistent_palette=len(counts) <= 15,
        issues=issues,
    )


def analyze_animations(html: str, styles: str) -> AnimationAnalysis:
    doc = html.lower()
    scripts = " ".join(
        f"{attrs.get('src', '')} {body}" for attrs, body in find_elements(html, "script")
    ).lower()

    libraries = [
        name
        for name, script_markers, doc_markers in ANIMATION_LIBRARIES
        if any(m in scripts for m in script_markers) or any(m in doc for m in doc_markers)
    ]
    if "Anime.js" not in libraries and re.search(r"anime\s*\(", scripts):
        libraries.append("Anime.js")

    css_animations = bool(re.search(r"@keyframes|animation(-name)?\s*:", styles, re.I))
    css_transitions = bool(re.search(r"transition(-property)?\s*:", styles, re.I))
    scroll = any(m in doc for m in ("data-aos", "data-scroll", "data-parallax", "data-rellax")) or any(
        lib in libraries for lib in ("ScrollMagic", "Locomotive Scroll", "ScrollTrigger")
    )
    parallax = "parallax" in doc or "data-rellax" in doc or "rellax" in scripts
    transitions = (
        any(lib in libraries for lib in ("Barba.js", "Swup", "Highway.js"))
        or "page-transition" in scripts
        or "data-barba" in doc
    )

    return AnimationAnalysis(
        has_animations=css_animations or css_transitions or bool(libraries),
        has_css_animations=css_animations,
        has_css_transitions=css_transitions,
        has_js_animations=bool(libraries),
        animation_libraries=libraries,
        has_scroll_animations=scroll,
        has_canvas=bool(re.search(r"<canvas\b", html, re.I)),
        has_parallax=parallax,
        has_page_transitions=transitions,
        has_hover_effects=":hover" in styles.lower(),
    )


def analyze_layout(html: str, css: str) -> LayoutAnalysis:
    doc = html.lower()
    sections = len(re.findall(r"<(section|article)\b", html, re.I)) + sum(
        1 for t in find_tags(html, "div") if _SECTION_CLASS_RE.search(t.get("class", ""))
    )
    grid = bool(re.search(r"display\s*:\s*(inline-)?grid", css, re.I)) or "grid-cols" in doc
    flex = bool(re.search(r"display\s*:\s*(inline-)?flex", css, re.I)) or bool(
        re.search(r"class\s*=\s*[\"'][^\"']*\bflex\b", doc)
    )
    responsive = meta_content(html, "viewport") is not None
    h1 = len(re.findall(r"<h1\b", html, re.I))
    h2 = len(re.findall(r"<h2\b", html, re.I))
    hierarchy = h1 >= 1 and h2 >= h1

    issues = []
    if sections < 3:
        issues.append("Page may lack visual structure (few sections)")
    if not grid and not flex:
        issues.append("Not using modern CSS layout (Grid/Flexbox)")
    if not hierarchy:
        issues.append("Heading hierarchy may need improvement")
    if not responsive:
        issues.append("Missing responsive viewport meta tag")

    return LayoutAnalysis(
        section_count=sections,
        uses_grid_system=grid,
        uses_flexbox=flex,
        has_responsive_design=responsive,
        has_visual_hierarchy=hierarchy,
        layout_patterns=[name for name, marker in LAYOUT_PATTERNS if marker in doc],
        issues=issues,
    )


def analyze_mobile(html: str, styles: str) -> MobileAnalysis:
    doc = html.lower()
    viewport = meta_content(html, "viewport")
    score = 100
    issues = []

    if viewport is None:
        issues.append("Missing viewport meta tag")
        score -= 30

    # <link media="..."> counts as a responsive stylesheet
    media = "@media" in styles.lower() or any("media" in t for t in find_tags(html, "link"))
    if not media:
        issues.append("No CSS media queries detected")
        score -= 15

    menu = any(m in doc for m in MOBILE_MENU_MARKERS) or bool(
        re.search(r"aria-label\s*=\s*[\"'][^\"']*menu", doc)
    )
    sticky = bool(re.search(r"position\s*:\s*(fixed|sticky)", styles, re.I)) or bool(
        re.search(r"class\s*=\s*[\"'][^\"']*\b(sticky|fixed)\b", doc)
    )
    if menu:
        score = min(100, score + 5)
    if sticky:
        score = min(100, score + 5)

    return MobileAnalysis(
        has_viewport_meta=viewport is not None,
        viewport_content=viewport,
        has_mobile_menu=menu,
        has_media_queries=media,
        has_sticky_header=sticky,
        mobile_score=max(0, score),
        issues=issues,
    )


def _footer_html(html: str) -> str:
    footer = section(html, "footer")
    if footer:
        return footer
    for attrs, inner in find_elements(html, "div"):
        if "footer" in attrs.get("class", "").lower() or "footer" in attrs.get("id", "").lower():
            return inner
    return ""


def _all_tags(html: str) -> list[dict[str, str]]:
    return [t for name in ("div", "section", "span", "a", "header", "body") for t in find_tags(html, name)]


def _normalize_hex(raw: str) -> str:
    value = raw.lower()
    if len(value) == 4:
        value = "#" + "".join(ch * 2 for ch in value[1:])
    return value
