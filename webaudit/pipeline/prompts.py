"""
WebAudit — Prompt templates for category scoring, the website brief and the
executive summary.

Every category prompt asks for the same JSON shape so one parser handles all
of them (see ``webaudit.pipeline.analyzer``).
"""

from datetime import datetime, timezone

from webaudit.schemas.audit import CategoryScore, ScrapedData

# ─────────────────────────────────────────────────────────────
#  Shared pieces
# ─────────────────────────────────────────────────────────────

ANALYST_SYSTEM = """You are a senior website auditor at WebAudit. You score one aspect of a website at a time from data a crawler collected.

Be specific: reference actual text, counts and URLs from the data. Never invent facts that are not in the data.
Output ONLY valid JSON. No explanations, no markdown fences."""

RESULT_FORMAT = """## Task
Return a JSON object with:
- score: number 0-100
- issues: array of {severity: 'critical'|'warning'|'info', title: string, description: string, impact: string}
- passing: array of {title: string, description: string, value: string} - things the site does WELL
- recommendations: array of strings (actionable fixes, be specific)

Be comprehensive. List every element checked as either an issue OR a passing item.
Return ONLY valid JSON, no markdown formatting or other text."""


def _v(value, missing: str = "Unknown") -> str:
    """Render one data point for a prompt."""
    if value is None:
        return missing
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) if value else missing
    if value == "":
        return missing
    return str(value)


def _scope(data: ScrapedData) -> str:
    page_count = len(data.pages or []) or 1
    if page_count == 1:
        return (
            "IMPORTANT: This analysis is based on a SINGLE PAGE (the homepage/entry page).\n"
            'When reporting findings, say "this page" not "the site" - you cannot make claims '
            "about the entire site from one page."
        )
    return (
        f"This analysis is based on {page_count} pages across the site, "
        "giving a broader view of the overall website."
    )


def _headlines(data: ScrapedData) -> str:
    return (
        f"H1: {' | '.join(data.h1) or 'None found'}\n"
        f"H2: {' | '.join(data.h2[:5]) or 'None found'}"
    )


# ─────────────────────────────────────────────────────────────
#  CATEGORY PROMPTS
# ─────────────────────────────────────────────────────────────


def business_overview(data: ScrapedData) -> str:
    ext = data.extended_content
    return f"""You are analyzing a website's business overview.

## Scope
{_scope(data)}

## Website Data
URL: {data.url}
Page Title: {_v(data.title, 'None')}

## Business Presence
Has About Page: {_v(ext and ext.has_about_page)}
Has Contact Page: {_v(ext and ext.has_contact_page)}
Has Mission Statement: {_v(ext and ext.has_mission_statement)}

## Homepage Copy (first 2000 chars)
{data.body_text[:2000] or 'No text extracted'}

## Headlines
{_headlines(data)}

## Navigation
{_v(data.nav_links, 'None found')}

## Scoring Guidelines
CRITICAL: no clear indication of what the business does, no way to tell who they serve, missing contact information.
WARNING: vague value proposition, no differentiation, missing about page, unclear target market.
POSITIVE: clear statement of what they do, obvious target audience, visible contact information, professional about page.

{RESULT_FORMAT}"""


def technical_foundation(data: ScrapedData) -> str:
    return f"""You are analyzing a website's technical foundation.

## Scope
{_scope(data)}

## Website Data
URL: {data.url}
Final URL: {data.final_url}
Load Time: {data.load_time}ms
Status Code: {data.status_code}
SSL/HTTPS: {_v(data.ssl)}
Mobile Viewport: {_v(data.mobile_viewport)}
Has Favicon: {_v(data.favicon)}
Image Count: {data.image_count}
Has Analytics: {_v(data.has_analytics)}
Has Forms: {_v(data.has_forms)}
Content Size: {round(data.content_length / 1024)}KB
Meta Title: {_v(data.title, 'MISSING')}
Meta Description: {_v(data.meta_description, 'MISSING')}
Broken Links: {_v(data.broken_links, 'None found')}

## Scoring Guidelines
- Load time under 3s = good, 3-5s = okay, over 5s = poor
- SSL is required (critical if missing)
- Mobile viewport is required (critical if missing)
- Meta title should be 50-60 characters
- Meta description should be 150-160 characters
- Analytics tracking is expected for business sites
- Favicon helps with branding and bookmarks

{RESULT_FORMAT}"""


def brand_messaging(data: ScrapedData) -> str:
    return f"""You are analyzing a website's brand and messaging.

## Scope
{_scope(data)}

## Website Data
URL: {data.url}
Page Title: {_v(data.title, 'None')}
Meta Description: {_v(data.meta_description, 'None')}

## Headlines Found
{_headlines(data)}

## Homepage Copy (first 3000 chars)
{data.body_text[:3000] or 'No text extracted'}

## CTAs Found
{_v(data.cta_buttons, 'None found')}

## Navigation Items
{_v(data.nav_links, 'None found')}

## Scoring Guidelines
- A clear value proposition in the H1 or first paragraph is critical
- Copy should answer: what do they do, for whom, and why it matters
- CTAs should be specific and action-oriented
- Generic copy like "Welcome" or "We are the best" is a warning
- Messaging should differentiate from competitors

{RESULT_FORMAT}"""


def user_experience(data: ScrapedData) -> str:
    design = data.design_quality
    layout = design.layout_analysis if design else None
    animation = design.animation_analysis if design else None
    mobile = design.mobile_analysis if design else None
    colors = design.color_analysis if design else None

    return f"""You are analyzing a website's user experience.

## Scope
{_scope(data)}

## Website Data
URL: {data.url}
Mobile Viewport: {_v(data.mobile_viewport)}
Has Forms: {_v(data.has_forms)}
Load Time: {data.load_time}ms

## Navigation
{_v(data.nav_links, 'None found')}

## CTAs Found
{_v(data.cta_buttons, 'None found')}

## Content Structure
H1 Count: {len(data.h1)}
H2 Count: {len(data.h2)}
Image Count: {data.image_count}

## Colour
Primary Colors: {_v(colors and colors.primary_colors, 'Not analyzed')}
Color Count: {_v(colors and colors.color_count)}
Consistent Palette: {_v(colors and colors.has_consistent_palette)}
Color Issues: {_v(colors and colors.issues, 'None')}

## Animations & Interactions
Has Animations: {_v(animation and animation.has_animations)}
CSS Transitions: {_v(animation and animation.has_css_transitions)}
Animation Libraries: {_v(animation and animation.animation_libraries, 'None')}
Scroll Animations: {_v(animation and animation.has_scroll_animations)}
Has Parallax Effects: {_v(animation and animation.has_parallax)}

## Layout
Section Count: {_v(layout and layout.section_count)}
Uses Grid System: {_v(layout and layout.uses_grid_system)}
Uses Flexbox: {_v(layout and layout.uses_flexbox)}
Layout Patterns Found: {_v(layout and layout.layout_patterns, 'None detected')}
Layout Issues: {_v(layout and layout.issues, 'None')}

## Mobile Experience
Has Viewport Meta: {_v(mobile and mobile.has_viewport_meta)}
Has Mobile Menu: {_v(mobile and mobile.has_mobile_menu)}
Has Media Queries: {_v(mobile and mobile.has_media_queries)}
Has Sticky Header: {_v(mobile and mobile.has_sticky_header)}
Mobile Score: {_v(mobile and mobile.mobile_score)}/100
Mobile Issues: {_v(mobile and mobile.issues, 'None')}

## Scoring Guidelines
CRITICAL: mobile viewport not configured, no CSS transitions at all (feels dated).
WARNING: too many colours (>15), inconsistent layout, no mobile menu, missing visual hierarchy.
POSITIVE: responsive layout, smooth transitions, modern layout patterns, sticky header, mobile menu.
Professional animation libraries (GSAP, Framer Motion, Lottie, Three.js) signal intentional motion design; do not penalize them as bloat.

{RESULT_FORMAT}"""


def traffic_readiness(data: ScrapedData) -> str:
    signals = data.traffic_signals
    if signals is None:
        return """You are analyzing a website's traffic readiness but no data was collected.
Return a JSON object with score: 50, a warning issue about incomplete analysis, an empty passing array, and a recommendation to retry.
Return ONLY valid JSON."""

    url_analysis = data.design_quality.url_analysis if data.design_quality else None
    sitemap = (
        f"Yes ({signals.sitemap_page_count or 'unknown'} pages)" if signals.has_sitemap else "NOT FOUND"
    )
    if not signals.has_robots_txt:
        robots = "NOT FOUND"
    elif signals.robots_allows_crawling:
        robots = "Yes, allows crawling"
    else:
        robots = "Yes, but blocks crawling"
    socials = "\n".join(f"- {s.platform}" for s in signals.social_links) or "- No social links found"
    url_block = (
        f"Is Clean URL: {_v(url_analysis.is_clean_url)}\n"
        f"Uses Hyphens: {_v(url_analysis.uses_hyphens)}\n"
        f"Is Lowercase: {_v(url_analysis.is_lowercase)}\n"
        f"Has File Extension: {_v(url_analysis.has_file_extension)}\n"
        f"URL Length: {url_analysis.url_length} characters\n"
        f"URL Issues: {_v(url_analysis.issues, 'None')}"
        if url_analysis
        else "URL analysis not available"
    )

    return f"""You are analyzing a website's traffic readiness.

## Analytics & Tracking
Google Analytics: {'Installed' if signals.has_google_analytics else 'NOT DETECTED'}
Google Tag Manager: {'Installed' if signals.has_gtm else 'NOT DETECTED'}
Other Analytics: {_v(signals.has_other_analytics, 'None')}
Marketing Pixels: {_v(signals.has_pixels, 'None')}

## SEO Infrastructure
Sitemap.xml: {sitemap}
Robots.txt: {robots}
Structured Data: {_v(signals.structured_data_types, 'None') if signals.has_structured_data else 'None'}
Canonical Tags: {_v(signals.canonical_tag)}

## Content Volume
Blog/Articles Section: {f'Yes (~{signals.estimated_blog_posts} posts visible)' if signals.blog_exists else 'No'}
Resources Section: {_v(signals.has_resources_section)}

## Social Presence
{socials}

## On-Page SEO
Meta Title: {f'Yes ({signals.meta_title_length} chars)' if signals.meta_title else 'MISSING'}
Meta Description: {f'Yes ({signals.meta_description_length} chars)' if signals.meta_description else 'MISSING'}
H1 Tags: {signals.h1_count}
Internal Links: {signals.internal_link_count}
External Links: {signals.external_link_count}

## URL Structure
{url_block}

## Scoring Guidelines
CRITICAL: no analytics at all, no sitemap, missing meta title/description, URLs with file extensions.
WARNING: no blog, no social presence, no structured data, wrong title/description length, query parameters or underscores in URLs.
POSITIVE: multiple analytics tools, active blog, structured data, sitemap with many pages, clean lowercase URLs.

Focus on what they need to DO to be ready for traffic.

{RESULT_FORMAT}"""


def security(data: ScrapedData) -> str:
    return f"""You are analyzing a website's security basics.

## Scope
{_scope(data)}

## Website Data
URL: {data.url}
Final URL: {data.final_url}
SSL/HTTPS: {_v(data.ssl)}
SSL Certificate Error: {_v(data.ssl_error, 'None')}
Has Forms: {_v(data.has_forms)}
Status Code: {data.status_code}

## Scoring Guidelines
- SSL/HTTPS is mandatory (critical if missing)
- SSL certificate errors (expired, invalid) are CRITICAL; the score should be very low
- Forms without HTTPS are a major security risk
- HTTP should redirect to HTTPS

Note: this is a basic surface-level check, not a penetration test.

{RESULT_FORMAT}"""


def content_strategy(data: ScrapedData) -> str:
    ext = data.extended_content
    return f"""You are analyzing a website's content strategy.

## Scope
{_scope(data)}

## Content Presence
Has Blog: {_v(ext and ext.has_blog)}
Blog Post Count: {ext.blog_post_count if ext else 0}
Has Resources Section: {_v(ext and ext.has_resources_section)}
Resource Types: {_v(ext and ext.resource_types, 'None detected')}

## SEO Elements
Meta Title: {_v(data.title, 'MISSING')}
Meta Description: {_v(data.meta_description, 'MISSING')}
{_headlines(data)}

## Homepage Content (first 2000 chars)
{data.body_text[:2000] or 'No text extracted'}

## Scoring Guidelines
CRITICAL: no visible content strategy (no blog, no resources), thin content, missing SEO fundamentals.
WARNING: blog with fewer than 5 posts, no downloadable resources, generic or unfocused content.
POSITIVE: active blog, several resource types, SEO-optimized headlines, content that addresses pain points.

{RESULT_FORMAT}"""


def conversion_engagement(data: ScrapedData) -> str:
    ext = data.extended_content
    cta_count = ext.cta_count if ext else len(data.cta_buttons)
    cta_types = (ext.cta_types if ext and ext.cta_types else data.cta_buttons)
    return f"""You are analyzing a website's conversion & engagement.

## Scope
{_scope(data)}

## Lead Capture
Has Lead Capture: {_v(ext and ext.has_lead_capture)}
Lead Capture Types: {_v(ext and ext.lead_capture_types, 'None')}
Has Email Signup: {_v(ext and ext.has_email_signup)}
Has Pricing Page: {_v(ext and ext.has_pricing_page)}
Pricing Transparency: {_v(ext and ext.pricing_transparency)}

## CTAs
CTA Count: {cta_count}
CTA Types: {_v(cta_types, 'None')}

## Forms
Has Forms: {_v(data.has_forms)}

## Navigation
{_v(data.nav_links, 'None')}

## Scoring Guidelines
CRITICAL: no clear CTA on the homepage, no way to contact or engage, no conversion path.
WARNING: generic CTAs ("Submit", "Click here"), hidden pricing, no lead capture.
POSITIVE: specific CTAs, several conversion paths, visible pricing, newsletter signup, demo/trial option.

{RESULT_FORMAT}"""


def social_multimedia(data: ScrapedData) -> str:
    ext = data.extended_content
    traffic = data.traffic_signals
    if ext and ext.social_profiles:
        socials = "\n".join(f"- {s.platform}: {s.url}" for s in ext.social_profiles)
    elif traffic and traffic.social_links:
        socials = "\n".join(f"- {s.platform}" for s in traffic.social_links)
    else:
        socials = "No social links found"

    return f"""You are analyzing a website's social & multimedia presence.

## Scope
{_scope(data)}

## Social Profiles
{socials}

## Video Content
Has Video: {_v(ext and ext.has_video_content)}
Video Count: {ext.video_count if ext else 0}
Video Sources: {_v(ext and ext.video_sources, 'None')}

## Other Media
Has Podcast: {_v(ext and ext.has_podcast)}
Image Count: {data.image_count}

## Scoring Guidelines
CRITICAL: no social presence at all.
WARNING: no video content, broken or outdated social links.
POSITIVE: several relevant social channels, embedded video, podcast/audio content.

{RESULT_FORMAT}"""


def trust_credibility(data: ScrapedData) -> str:
    ext = data.extended_content
    design = data.design_quality
    current_year = datetime.now(timezone.utc).year
    return f"""You are analyzing a website's trust & credibility.

## Scope
{_scope(data)}

## Trust Elements
Has Testimonials: {_v(ext and ext.has_testimonials)}
Testimonial Count: {ext.testimonial_count if ext else 0}
Has Case Studies: {_v(ext and ext.has_case_studies)}
Has Team Page: {_v(ext and ext.has_team_page)}

## Legal & Compliance
Has Privacy Policy: {_v(ext and ext.has_privacy_policy)}
Has Terms of Service: {_v(ext and ext.has_terms_of_service)}
SSL/HTTPS: {_v(data.ssl)}

## Trust Badges
Has Trust Badges: {_v(ext and ext.has_trust_badges)}
Badge Types: {_v(ext and ext.trust_badge_types, 'None')}

## Contact
Has Contact Page: {_v(ext and ext.has_contact_page)}
Has About Page: {_v(ext and ext.has_about_page)}

## Website Freshness
Has Footer: {_v(design and design.has_footer)}
Footer Copyright Year: {_v(design and design.footer_copyright_year, 'Not found')}
Current Year: {current_year}
Years Outdated: {design.years_outdated if design else 0}

## Scoring Guidelines
CRITICAL: no SSL, no privacy policy, no contact information, copyright year 3+ years outdated.
WARNING: no testimonials, no team/about information, missing terms, copyright 1-2 years outdated.
POSITIVE: testimonials, case studies, team page, trust badges, current copyright year ({current_year}).

An outdated copyright year is a SIGNIFICANT trust issue: visitors assume the site is abandoned.

{RESULT_FORMAT}"""


# ─────────────────────────────────────────────────────────────
#  BRIEF: business profile
# ─────────────────────────────────────────────────────────────

BRIEF_SYSTEM = """You are a business analyst at WebAudit. You infer a short business profile from crawled website data.

Output ONLY valid JSON. No explanations, no markdown fences."""


def website_brief(data: ScrapedData) -> str:
    ext = data.extended_content
    animation = data.design_quality.animation_analysis if data.design_quality else None
    has_blog = ext.has_blog if ext else (data.traffic_signals.blog_exists if data.traffic_signals else None)
    socials = [s.platform for s in ext.social_profiles] if ext else []

    return f"""Create a brief summary of this website.

## Website Data
URL: {data.url}
Title: {_v(data.title)}
Meta Description: {_v(data.meta_description, 'None')}
Navigation Links: {_v(data.nav_links)}
Main Headings (H1): {' | '.join(data.h1) or 'Unknown'}
Section Headings (H2): {' | '.join(data.h2[:5]) or 'Unknown'}
CTA Buttons: {_v(data.cta_buttons, 'None')}
Has Pricing Page: {_v(ext and ext.has_pricing_page)}
Has Blog: {_v(has_blog)}
Has About Page: {_v(ext and ext.has_about_page)}
Has Case Studies: {_v(ext and ext.has_case_studies)}
Has Contact Page: {_v(ext and ext.has_contact_page)}
Social Profiles: {_v(socials, 'None')}
Animation Libraries: {_v(animation and animation.animation_libraries, 'None')}

## Task
Return a JSON object with:
- businessName: string (company/person name, from title or content)
- businessDescription: string (1-2 sentences on what they do/offer)
- targetAudience: string (be specific, e.g. "Small business owners", not "businesses")
- industry: string (e.g. "Marketing", "Technology", "Healthcare", "E-commerce")
- siteType: string (one of "SaaS", "Agency", "E-commerce", "Portfolio", "Blog", "Corporate", "Non-profit", "Local Business", "Marketplace", "Service Provider", "Creative/Immersive")
- websiteType: {{primaryType: string, confidence: 0-100, characteristics: [3-5 strings], subType: string}}
- siteStructure: array of {{name: string, path: string, exists: boolean, description: string}} for sections such as About, Services, Portfolio, Blog, Pricing, Contact, Team, FAQ

If you can't determine something, make your best educated guess from the available signals.
Return ONLY valid JSON, no markdown formatting."""


# ─────────────────────────────────────────────────────────────
#  SUMMARY: executive summary
# ─────────────────────────────────────────────────────────────


def executive_summary(
    data: ScrapedData, categories: list[CategoryScore], overall: int
) -> str:
    critical = [i for c in categories for i in c.issues if i.severity == "critical"][:3]
    strength = max(categories, key=lambda c: c.score, default=None)

    scores = "\n".join(f"- {c.name}: {c.score}/100" for c in categories) or "- None"
    issues = "\n".join(f"- {i.title}: {i.description}" for i in critical) or "- No critical issues found"
    top = f"{strength.name} ({strength.score}/100)" if strength else "None"

    return f"""Write a 2-3 sentence executive summary for a website audit report.

Website: {data.url}
Overall Score: {overall}/100

Category Scores:
{scores}

Top Strength: {top}

Critical Issues:
{issues}

Write a professional, direct summary that:
1. States the overall assessment (good/needs work/critical issues)
2. Highlights the biggest strength
3. Calls out the most important issue to fix

Return only the summary text, no JSON or formatting."""
