"""
WebAudit — Pydantic models for collected data, scores and streamed results.

All models serialize with camelCase aliases (``model_dump(by_alias=True)``)
because the stream is consumed by a JavaScript dashboard.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

Severity = Literal["critical", "warning", "info"]
Rating = Literal["good", "needs-improvement", "poor"]


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class FrozenModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "frozen": True}


# ── Collected signals ───────────────────────────────────

class SocialLink(FrozenModel):
    platform: str
    url: str


class TrafficSignals(FrozenModel):
    # Analytics & tracking
    has_google_analytics: bool = False
    has_gtm: bool = False
    has_other_analytics: list[str] = []
    has_pixels: list[str] = []

    # SEO infrastructure
    has_sitemap: bool = False
    sitemap_page_count: int | None = None
    has_robots_txt: bool = False
    robots_allows_crawling: bool = True
    has_structured_data: bool = False
    structured_data_types: list[str] = []
    canonical_tag: bool = False

    # Content volume
    blog_exists: bool = False
    estimated_blog_posts: int = 0
    has_resources_section: bool = False

    social_links: list[SocialLink] = []

    # On-page SEO
    meta_title: bool = False
    meta_title_length: int = 0
    meta_description: bool = False
    meta_description_length: int = 0
    h1_count: int = 0
    internal_link_count: int = 0
    external_link_count: int = 0


class ExtendedContent(FrozenModel):
    # Trust & credibility
    has_testimonials: bool = False
    testimonial_count: int = 0
    has_team_page: bool = False
    has_case_studies: bool = False
    has_privacy_policy: bool = False
    has_terms_of_service: bool = False
    has_trust_badges: bool = False
    trust_badge_types: list[str] = []

    # Content strategy
    has_blog: bool = False
    blog_post_count: int = 0
    has_resources_section: bool = False
    resource_types: list[str] = []

    # Conversion & engagement
    has_lead_capture: bool = False
    lead_capture_types: list[str] = []
    has_email_signup: bool = False
    has_pricing_page: bool = False
    pricing_transparency: Literal["visible", "hidden", "contact-sales", "none"] = "none"
    cta_count: int = 0
    cta_types: list[str] = []

    # Social & multimedia
    has_video_content: bool = False
    video_sources: list[str] = []
    video_count: int = 0
    has_podcast: bool = False
    social_profiles: list[SocialLink] = []

    # Business overview
    has_about_page: bool = False
    has_contact_page: bool = False
    has_mission_statement: bool = False
    target_audience_clarity: bool = False


class UrlAnalysis(FrozenModel):
    is_clean_url: bool = True
    has_proper_hierarchy: bool = True
    uses_hyphens: bool = True
    is_lowercase: bool = True
    has_file_extension: bool = False
    url_length: int = 0
    issues: list[str] = []


class ColorAnalysis(FrozenModel):
    primary_colors: list[str] = []
    color_count: int = 0
    has_consistent_palette: bool = True
    issues: list[str] = []


class AnimationAnalysis(FrozenModel):
    has_animations: bool = False
    has_css_animations: bool = False
    has_css_transitions: bool = False
    has_js_animations: bool = False
    animation_libraries: list[str] = []
    has_scroll_animations: bool = False
    has_canvas: bool = False
    has_parallax: bool = False
    has_page_transitions: bool = False
    has_hover_effects: bool = False


class LayoutAnalysis(FrozenModel):
    section_count: int = 0
    uses_grid_system: bool = False
    uses_flexbox: bool = False
    has_responsive_design: bool = False
    has_visual_hierarchy: bool = False
    layout_patterns: list[str] = []
    issues: list[str] = []


class MobileAnalysis(FrozenModel):
    has_viewport_meta: bool = False
    viewport_content: str | None = None
    has_mobile_menu: bool = False
    has_media_queries: bool = False
    has_sticky_header: bool = False
    mobile_score: int = 0
    issues: list[str] = []


class DesignQuality(FrozenModel):
    footer_copyright_year: int | None = None
    is_current_year: bool = False
    years_outdated: int = 0
    has_footer: bool = False
    url_analysis: UrlAnalysis = UrlAnalysis()
    color_analysis: ColorAnalysis = ColorAnalysis()
    animation_analysis: AnimationAnalysis = AnimationAnalysis()
    layout_analysis: LayoutAnalysis = LayoutAnalysis()
    mobile_analysis: MobileAnalysis = MobileAnalysis()


class PageData(FrozenModel):
    url: str
    path: str
    title: str | None = None
    meta_description: str | None = None
    h1: list[str] = []
    load_time: int = 0
    word_count: int = 0
    image_count: int = 0
    has_form: bool = False
    has_cta: bool = False


class Screenshots(FrozenModel):
    desktop: str | None = None
    mobile: str | None = None


class ScrapedData(FrozenModel):
    """Everything collected about one URL for one run. Never mutated."""

    url: str
    final_url: str
    load_time: int = 0
    status_code: int = 0

    title: str | None = None
    meta_description: str | None = None
    favicon: bool = False
    favicon_url: str | None = None
    og_image_url: str | None = None
    logo_url: str | None = None

    ssl: bool = False
    ssl_error: str | None = None
    mobile_viewport: bool = False
    content_length: int = 0
    image_count: int = 0
    broken_links: list[str] = []

    h1: list[str] = []
    h2: list[str] = []
    body_text: str = ""
    cta_buttons: list[str] = []
    nav_links: list[str] = []

    has_analytics: bool = False
    has_forms: bool = False
    social_links: list[str] = []
    emails: list[str] = []

    traffic_signals: TrafficSignals | None = None
    extended_content: ExtendedContent | None = None
    design_quality: DesignQuality | None = None
    pages: list[PageData] | None = None
    screenshots: Screenshots | None = None


# ── Scoring results ─────────────────────────────────────

class Issue(FrozenModel):
    severity: Severity = "info"
    title: str = ""
    description: str = ""
    impact: str = ""


class PassingItem(FrozenModel):
    title: str = ""
    description: str = ""
    value: str | None = None


class CategoryAnalysis(FrozenModel):
    """Parsed model output for one category, before it is named and weighted."""

    score: int
    issues: list[Issue] = []
    passing: list[PassingItem] = []
    recommendations: list[str] = []


class CategoryScore(FrozenModel):
    name: str
    slug: str
    score: int = Field(ge=0, le=100)
    weight: float
    issues: list[Issue] = []
    passing: list[PassingItem] = []
    recommendations: list[str] = []


class SiteSection(FrozenModel):
    name: str
    path: str
    exists: bool
    description: str = ""


class WebsiteTypeAnalysis(FrozenModel):
    primary_type: str
    confidence: int = 0
    characteristics: list[str] = []
    sub_type: str | None = None


class WebsiteBrief(FrozenModel):
    business_name: str
    business_description: str
    target_audience: str
    industry: str
    site_type: str
    total_pages: int
    website_type: WebsiteTypeAnalysis | None = None
    site_structure: list[SiteSection] | None = None


class TokenUsage(FrozenModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    estimated_cost: float = 0.0


class PageSubScores(FrozenModel):
    technical: int
    content: int
    ux: int


class PageScore(FrozenModel):
    url: str
    path: str
    title: str | None = None
    overall_score: int
    scores: PageSubScores
    issues: list[Issue] = []
    passing: list[PassingItem] = []


# ── PageSpeed Insights ──────────────────────────────────

class CoreWebVitals(FrozenModel):
    lcp: float | None = None
    lcp_rating: Rating | None = None
    fid: float | None = None
    fid_rating: Rating | None = None
    cls: float | None = None
    cls_rating: Rating | None = None
    inp: float | None = None
    inp_rating: Rating | None = None
    fcp: float | None = None
    fcp_rating: Rating | None = None
    ttfb: float | None = None
    ttfb_rating: Rating | None = None


class LighthouseScores(FrozenModel):
    performance: int | None = None
    accessibility: int | None = None
    best_practices: int | None = None
    seo: int | None = None


class LabMetrics(FrozenModel):
    first_contentful_paint: float | None = None
    largest_contentful_paint: float | None = None
    total_blocking_time: float | None = None
    cumulative_layout_shift: float | None = None
    speed_index: float | None = None
    time_to_interactive: float | None = None


class PerformanceOpportunity(FrozenModel):
    id: str
    title: str
    description: str = ""
    savings: str | None = None
    score: float | None = None


class PageSpeedData(FrozenModel):
    fetch_time: str
    final_url: str
    strategy: Literal["mobile", "desktop"]
    core_web_vitals: CoreWebVitals
    has_field_data: bool = False
    lighthouse_scores: LighthouseScores
    metrics: LabMetrics
    opportunities: list[PerformanceOpportunity] = []
    passed_audits: int = 0
    total_audits: int = 0


class PageSpeedError(FrozenModel):
    error: Literal[True] = True
    message: str
    code: str | None = None


class PageSpeedSnapshot(FrozenModel):
    mobile: PageSpeedData | None = None
    desktop: PageSpeedData | None = None


# ── Terminal result ─────────────────────────────────────

class AuditResult(FrozenModel):
    id: str
    url: str
    overall_score: int
    categories: list[CategoryScore]
    summary: str
    scraped_at: datetime
    analyzed_at: datetime
    client_logo: str | None = None
    brief: WebsiteBrief
    page_count: int = 0
    pages_analyzed: list[PageScore] = []
    best_page: PageScore | None = None
    worst_page: PageScore | None = None
    token_usage: TokenUsage
    page_speed: PageSpeedSnapshot = PageSpeedSnapshot()


# ── Requests & events ───────────────────────────────────

TERMINAL_EVENTS = frozenset({"complete", "error"})


class AuditEvent(BaseModel):
    """One named event in an audit's progress stream."""

    event: Literal["status", "scraped", "pagespeed", "brief", "category", "pages", "complete", "error"]
    data: dict

    model_config = {"frozen": True}

    @property
    def is_terminal(self) -> bool:
        return self.event in TERMINAL_EVENTS
