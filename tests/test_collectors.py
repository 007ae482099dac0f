"""
Tests for the collector set — pure HTML extraction, page scoring and the fan-out merge.
"""

from unittest.mock import AsyncMock, patch

import pytest

from webaudit.errors import CollectionError, InvalidUrlError
from webaudit.pipeline.collectors import normalize_url, scrape_website
from webaudit.pipeline.collectors.content import extract_content, extract_emails
from webaudit.pipeline.collectors.design import (
    analyze_colors,
    analyze_mobile,
    analyze_url,
    copyright_year_of,
    extract_design,
)
from webaudit.pipeline.collectors.extended import (
    extract_extended,
    pricing_transparency,
    resource_types,
    video_sources,
)
from webaudit.pipeline.collectors.fetch import FetchedPage, clean, find_tags, meta_content
from webaudit.pipeline.collectors.pages import (
    build_page_score,
    calculate_page_score,
    discover_links,
    rank_pages,
    resolve_additional,
    sort_by_priority,
)
from webaudit.pipeline.collectors.technical import extract_technical
from webaudit.pipeline.collectors.traffic import (
    count_posts,
    extract_traffic_signals,
    robots_allows_crawling,
    structured_data_types,
)
from webaudit.schemas.audit import PageData, TrafficSignals

HOME_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <title>Sunrise Bakery | Handmade Pastries</title>
  <meta name="description" content="Fresh-baked pastries &amp; catering in Portland.">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta property="og:image" content="/img/og.png">
  <link rel="icon" href="/favicon.ico">
  <link rel="apple-touch-icon" href="/apple-touch-icon.png">
  <link rel="canonical" href="https://www.sunrise-bakery.com/">
  <script async src="https://www.googletagmanager.com/gtag/js?id=G-123"></script>
  <script>window.dataLayer = window.dataLayer || []; gtag('config', 'G-123');</script>
  <script type="application/ld+json">
    {"@context": "https://schema.org", "@graph": [
      {"@type": "Bakery", "name": "Sunrise Bakery", "logo": "https://cdn.sunrise.com/logo.png"},
      {"@type": ["WebSite", "Organization"]}
    ]}
  </script>
  <style>
    .hero { display: flex; transition: opacity .3s; }
    .grid { display: grid; }
    a:hover { color: #D4763C; }
    @media (max-width: 640px) { .hero { display: block; } }
    header { position: sticky; background: #fff; color: #333333; }
  </style>
</head>
<body>
  <header>
    <nav>
      <a href="/">Home</a>
      <a href="/menu">Menu</a>
      <a href="/about">About</a>
      <a href="/blog">Blog</a>
      <a href="/contact">Contact</a>
      <button class="menu-toggle" aria-label="Open menu">Menu</button>
    </nav>
  </header>
  <section class="hero">
    <h1>Welcome to Sunrise Bakery</h1>
    <p>Our mission is simple: pastries made for families who love mornings.</p>
    <a class="btn btn-primary" href="/order">Order Now</a>
  </section>
  <section class="features"><h2>Our Pastries</h2><h2>Catering</h2></section>
  <section class="testimonial"><blockquote>Best croissants in town!</blockquote></section>
  <form class="newsletter"><input type="email" name="email"><button>Subscribe</button></form>
  <iframe src="https://www.youtube.com/embed/abc"></iframe>
  <img src="/img/bbb-badge.png" alt="BBB accredited">
  <footer>
    <a href="https://instagram.com/sunrisebakery">Instagram</a>
    <a href="https://facebook.com/sunrisebakery">Facebook</a>
    <a href="mailto:Hello@Sunrise-Bakery.com?subject=Hi">Email us</a>
    <a href="/privacy">Privacy Policy</a>
    <p>Catering: orders@sunrise-bakery.com, noreply@sunrise-bakery.com</p>
    <p>&copy; 2020 - 2024 Sunrise Bakery</p>
  </footer>
</body>
</html>"""


def home_page() -> FetchedPage:
    return FetchedPage(
        url="https://sunrise-bakery.com",
        final_url="https://www.sunrise-bakery.com/",
        status=200,
        html=HOME_HTML,
        load_time_ms=850,
    )


# ── URL handling ────────────────────────────────────────

class TestNormalizeUrl:
    def test_adds_https(self):
        assert normalize_url("  sunrise-bakery.com ") == "https://sunrise-bakery.com"

    def test_keeps_scheme(self):
        assert normalize_url("http://sunrise-bakery.com/menu") == "http://sunrise-bakery.com/menu"

    @pytest.mark.parametrize("bad", ["", "https://", "http:///nohost"])
    def test_invalid(self, bad):
        with pytest.raises(InvalidUrlError, match="Invalid URL format"):
            normalize_url(bad)


# ── HTML helpers ────────────────────────────────────────

class TestHtmlHelpers:
    def test_clean(self):
        assert clean("<b>Fresh</b>\n  &amp; <i>warm</i>") == "Fresh & warm"

    def test_meta_content_by_name_or_property(self):
        assert meta_content(HOME_HTML, "description") == "Fresh-baked pastries & catering in Portland."
        assert meta_content(HOME_HTML, "og:image") == "/img/og.png"
        assert meta_content(HOME_HTML, "twitter:image") is None

    def test_find_tags(self):
        rels = [t["rel"] for t in find_tags(HOME_HTML, "link")]
        assert rels == ["icon", "apple-touch-icon", "canonical"]


# ── Technical / content ─────────────────────────────────

class TestTechnical:
    def test_extract(self):
        data = extract_technical(home_page())
        assert data["final_url"] == "https://www.sunrise-bakery.com/"
        assert data["status_code"] == 200
        assert data["load_time"] == 850
        assert data["ssl"] is True
        assert data["title"] == "Sunrise Bakery | Handmade Pastries"
        assert data["mobile_viewport"] is True
        assert data["has_analytics"] is True
        assert data["has_forms"] is True
        assert data["image_count"] == 1

    def test_brand_images(self):
        data = extract_technical(home_page())
        assert data["favicon"] is True
        assert data["favicon_url"] == "https://www.sunrise-bakery.com/apple-touch-icon.png"
        assert data["og_image_url"] == "https://www.sunrise-bakery.com/img/og.png"
        # og:image wins over the schema.org logo
        assert data["logo_url"] == data["og_image_url"]

    def test_schema_logo_when_no_og_image(self):
        html = HOME_HTML.replace('<meta property="og:image" content="/img/og.png">', "")
        page = FetchedPage("https://a.com", "https://a.com/", 200, html, 10)
        assert extract_technical(page)["logo_url"] == "https://cdn.sunrise.com/logo.png"


class TestContent:
    def test_extract(self):
        data = extract_content(HOME_HTML, "https://www.sunrise-bakery.com/")
        assert data["h1"] == ["Welcome to Sunrise Bakery"]
        assert data["h2"] == ["Our Pastries", "Catering"]
        assert "Order Now" in data["cta_buttons"]
        assert "Subscribe" in data["cta_buttons"]
        assert data["nav_links"] == ["Home", "Menu", "About", "Blog", "Contact"]
        assert data["social_links"] == [
            "https://instagram.com/sunrisebakery",
            "https://facebook.com/sunrisebakery",
        ]
        assert "window.dataLayer" not in data["body_text"]

    def test_emails(self):
        emails = extract_content(HOME_HTML, "https://www.sunrise-bakery.com/")["emails"]
        assert emails == ["hello@sunrise-bakery.com", "orders@sunrise-bakery.com"]

    def test_email_noise_filtered(self):
        html = '<p>logo@2x.png test@foo.com ada@example.com real@acme.io</p>'
        assert extract_emails(html, "logo@2x.png test@foo.com ada@example.com real@acme.io") == [
            "real@acme.io"
        ]


# ── Traffic signals ─────────────────────────────────────

class TestTraffic:
    def test_extract(self):
        data = extract_traffic_signals(HOME_HTML, "https://www.sunrise-bakery.com/")
        assert data["has_google_analytics"] is True
        assert data["has_gtm"] is True
        assert data["canonical_tag"] is True
        assert data["blog_exists"] is True
        assert data["h1_count"] == 1
        assert [s.platform for s in data["social_links"]] == ["Instagram", "Facebook"]
        assert data["external_link_count"] == 2
        assert data["meta_title_length"] == len("Sunrise Bakery | Handmade Pastries")
        TrafficSignals(**data)

    def test_structured_data_types(self):
        assert structured_data_types(HOME_HTML) == ["Bakery", "WebSite", "Organization"]

    def test_structured_data_ignores_bad_json(self):
        html = '<script type="application/ld+json">{not json}</script>'
        assert structured_data_types(html) == []

    @pytest.mark.parametrize(
        "robots,allowed",
        [
            (None, True),
            ("User-agent: *\nDisallow:", True),
            ("User-agent: *\nDisallow: /admin", True),
            ("User-agent: *\nDisallow: /", False),
            ("User-agent: *\nDISALLOW: /   # everything", False),
        ],
    )
    def test_robots(self, robots, allowed):
        assert robots_allows_crawling(robots) is allowed

    def test_count_posts(self):
        html = '<article></article><article></article><div class="post-card"></div><li class="menu"></li>'
        assert count_posts(html) == 3


# ── Extended content ────────────────────────────────────

class TestExtended:
    def test_extract(self):
        data = extract_extended(HOME_HTML)
        assert data["has_testimonials"] is True
        assert data["testimonial_count"] == 2  # section + blockquote
        assert data["has_privacy_policy"] is True
        assert data["has_trust_badges"] is True
        assert data["trust_badge_types"] == ["BBB"]
        assert data["has_lead_capture"] is True
        assert data["lead_capture_types"] == ["newsletter"]
        assert data["has_email_signup"] is True
        assert data["has_video_content"] is True
        assert data["video_sources"] == ["YouTube"]
        assert data["has_about_page"] is True
        assert data["has_mission_statement"] is True
        assert data["target_audience_clarity"] is True

    def test_video_sources(self):
        html = '<video src="a.mp4"></video><iframe src="https://player.vimeo.com/1"></iframe>'
        assert video_sources(html) == (2, ["self-hosted", "Vimeo"])

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Starter $29 per month", "visible"),
            ("Plans from 49/mo", "visible"),
            ("Contact sales for a custom plan", "contact-sales"),
            ("Our plans fit every team", "hidden"),
        ],
    )
    def test_pricing_transparency(self, text, expected):
        assert pricing_transparency(text) == expected

    def test_resource_types(self):
        assert resource_types("Free Guide and Webinar replays") == ["guides", "webinars"]


# ── Design quality ──────────────────────────────────────

class TestDesign:
    @pytest.mark.parametrize(
        "text,year",
        [
            ("© 2020 - 2024 Sunrise Bakery", 2024),
            ("Copyright 2023 Acme", 2023),
            ("2022 © Acme", 2022),
            ("All rights reserved 2021", 2021),
            ("All rights reserved", None),
        ],
    )
    def test_copyright_year(self, text, year):
        assert copyright_year_of(text) == year

    def test_extract(self):
        design = extract_design(HOME_HTML, "https://www.sunrise-bakery.com/", year=2026)
        assert design.has_footer
        assert design.footer_copyright_year == 2024
        assert design.years_outdated == 2
        assert not design.is_current_year
        assert design.layout_analysis.uses_flexbox
        assert design.layout_analysis.uses_grid_system
        assert "Hero section" in design.layout_analysis.layout_patterns
        assert design.animation_analysis.has_css_transitions
        assert design.animation_analysis.has_hover_effects
        assert design.mobile_analysis.has_viewport_meta
        assert design.mobile_analysis.has_media_queries
        assert design.mobile_analysis.has_mobile_menu
        assert design.mobile_analysis.has_sticky_header
        assert design.mobile_analysis.mobile_score == 100

    def test_url_analysis(self):
        clean_url = analyze_url("https://acme.com/about-us")
        assert clean_url.is_clean_url and clean_url.issues == []

        messy = analyze_url("https://acme.com/Products/Item_View.php?id=3")
        assert not messy.is_clean_url
        assert messy.has_file_extension
        assert "URL contains query parameters" in messy.issues
        assert "URL uses underscores instead of hyphens" in messy.issues
        assert "URL contains uppercase characters" in messy.issues

    def test_colors(self):
        colors = analyze_colors("#fff #FFFFFF #000 #D4763C #d4763c")
        assert colors.color_count == 3
        assert colors.primary_colors[:2] == ["#ffffff", "#d4763c"]
        assert colors.has_consistent_palette

        many = analyze_colors(" ".join(f"#{i:06x}" for i in range(21)))
        assert not many.has_consistent_palette
        assert len(many.issues) == 2

    def test_mobile_without_viewport(self):
        mobile = analyze_mobile("<html><body></body></html>", "")
        assert mobile.mobile_score == 55
        assert mobile.issues == ["Missing viewport meta tag", "No CSS media queries detected"]


# ── Pages ───────────────────────────────────────────────

class TestPageDiscovery:
    def test_resolve_additional(self):
        base = "https://acme.com"
        assert resolve_additional(base, "https://acme.com/pricing") == ("https://acme.com/pricing", "/pricing")
        assert resolve_additional(base, "/team") == ("https://acme.com/team", "/team")
        assert resolve_additional(base, "faq") == ("https://acme.com/faq", "/faq")

    def test_discover_links(self):
        html = """
          <a href="/about/">About</a><a href="https://acme.com/pricing">Pricing</a>
          <a href="https://other.com/x">Other</a><a href="/logo.png">Logo</a>
          <a href="/wp-admin/">Admin</a><a href="#top">Top</a><a href="/">Home</a>
          <a href="/about">Dup</a>
        """
        assert discover_links(html, "https://acme.com") == ["/about", "/pricing"]

    def test_sort_by_priority(self):
        paths = ["/shop", "/blog", "/contact", "/about-us", "/random"]
        assert sort_by_priority(paths) == ["/about-us", "/contact", "/blog", "/shop", "/random"]


class TestPageScoring:
    def test_perfect_page(self):
        page = PageData(
            url="u", path="/", title="A" * 40, meta_description="d" * 140, h1=["Hi"],
            load_time=800, word_count=500, has_cta=True,
        )
        assert calculate_page_score(page) == 100

    def test_deductions(self):
        page = PageData(url="u", path="/x", load_time=12000, word_count=10)
        # -50 load, -15 title, -10 meta, -10 h1, -10 words, -5 cta
        assert calculate_page_score(page) == 0

    def test_minor_deductions(self):
        page = PageData(
            url="u", path="/", title="Short", meta_description="too short", h1=["a", "b"],
            load_time=2500, word_count=150, has_cta=True,
        )
        # -10 load, -5 title, -3 meta, -5 h1, -5 words
        assert calculate_page_score(page) == 72

    def test_sub_scores(self):
        page = PageData(url="u", path="/", h1=["Hi"], load_time=4000, word_count=320, has_cta=True, has_form=True)
        scores = build_page_score(page).scores
        assert (scores.technical, scores.content, scores.ux) == (60, 80, 100)

    def test_rank(self):
        good = PageData(url="a", path="/", title="A" * 40, h1=["x"], word_count=400, has_cta=True)
        bad = PageData(url="b", path="/b", load_time=9000)
        ranked, best, worst = rank_pages([bad, good])
        assert [p.path for p in ranked] == ["/", "/b"]
        assert best.path == "/" and worst.path == "/b"

    def test_rank_empty(self):
        assert rank_pages(None) == ([], None, None)


# ── Fan-out merge ───────────────────────────────────────

TECHNICAL = {
    "url": "https://acme.com", "final_url": "https://www.acme.com/", "load_time": 500,
    "status_code": 200, "ssl": True, "title": "Acme",
}
CONTENT = {"h1": ["Acme"], "h2": [], "body_text": "Hello", "emails": ["hi@acme.com"]}


def patch_collectors(**overrides):
    targets = {
        "scrape_technical": AsyncMock(return_value=TECHNICAL),
        "scrape_content": AsyncMock(return_value=CONTENT),
        "scrape_traffic_signals": AsyncMock(return_value=TrafficSignals(has_sitemap=True)),
        "scrape_extended_content": AsyncMock(side_effect=RuntimeError("extended down")),
        "scrape_design_quality": AsyncMock(side_effect=RuntimeError("design down")),
        "scrape_multiple_pages": AsyncMock(return_value=[]),
    }
    targets.update(overrides)
    return patch.multiple("webaudit.pipeline.collectors", **targets)


class TestScrapeWebsite:
    async def test_merges_and_degrades(self):
        with patch_collectors():
            data = await scrape_website("acme.com")
        assert data.url == "https://acme.com"
        assert data.final_url == "https://www.acme.com/"
        assert data.title == "Acme"
        assert data.emails == ["hi@acme.com"]
        assert data.traffic_signals.has_sitemap
        assert data.extended_content is None
        assert data.design_quality is None
        assert data.pages is None

    async def test_technical_failure_is_fatal(self):
        with patch_collectors(scrape_technical=AsyncMock(side_effect=RuntimeError("HTTP 503"))):
            with pytest.raises(CollectionError, match="Technical scrape failed: HTTP 503"):
                await scrape_website("acme.com")

    async def test_content_failure_is_fatal(self):
        with patch_collectors(scrape_content=AsyncMock(side_effect=RuntimeError("reset"))):
            with pytest.raises(CollectionError, match="Content scrape failed: reset"):
                await scrape_website("acme.com")

    async def test_passes_page_options(self):
        pages = AsyncMock(return_value=[PageData(url="https://acme.com", path="/")])
        with patch_collectors(scrape_multiple_pages=pages):
            data = await scrape_website("acme.com", max_pages=3, additional_urls=["/team"])
        pages.assert_awaited_once_with("https://acme.com", 3, ["/team"])
        assert len(data.pages) == 1
