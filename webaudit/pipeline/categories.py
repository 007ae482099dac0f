"""
WebAudit — Category catalog and score aggregation.

``Category`` is the single source of truth for which dimensions exist, their
display names and their fixed weights. Requested identifiers are validated
against it up front, so a typo is rejected instead of silently skipped.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable, Iterable

from webaudit.errors import UnknownCategoryError
from webaudit.pipeline import prompts
from webaudit.schemas.audit import CategoryScore, ScrapedData


class Category(Enum):
    BUSINESS = ("business", "Business Overview", 1.0)
    TECHNICAL = ("technical", "Technical Foundation", 1.2)
    BRAND = ("brand", "Brand & Messaging", 1.0)
    UX = ("ux", "User Experience", 1.0)
    TRAFFIC = ("traffic", "Traffic Readiness", 1.0)
    SECURITY = ("security", "Security", 0.8)
    CONTENT = ("content", "Content Strategy", 0.8)
    CONVERSION = ("conversion", "Conversion & Engagement", 1.0)
    SOCIAL = ("social", "Social & Multimedia", 0.6)
    TRUST = ("trust", "Trust & Credibility", 1.0)

    def __init__(self, slug: str, label: str, weight: float):
        self.slug = slug
        self.label = label
        self.weight = weight

    @classmethod
    def from_slug(cls, slug: str) -> "Category":
        for member in cls:
            if member.slug == slug:
                return member
        raise UnknownCategoryError([slug])

    def prompt(self, data: ScrapedData) -> str:
        return _PROMPTS[self](data)


_PROMPTS: dict[Category, Callable[[ScrapedData], str]] = {
    Category.BUSINESS: prompts.business_overview,
    Category.TECHNICAL: prompts.technical_foundation,
    Category.BRAND: prompts.brand_messaging,
    Category.UX: prompts.user_experience,
    Category.TRAFFIC: prompts.traffic_readiness,
    Category.SECURITY: prompts.security,
    Category.CONTENT: prompts.content_strategy,
    Category.CONVERSION: prompts.conversion_engagement,
    Category.SOCIAL: prompts.social_multimedia,
    Category.TRUST: prompts.trust_credibility,
}

ALL_SLUGS: list[str] = [c.slug for c in Category]


def parse_categories(raw: str | Iterable[str] | None) -> list[Category]:
    """Parse ``"technical,brand"`` (or an iterable of ids) into catalog order.

    Empty input selects every category. Unknown ids raise
    ``UnknownCategoryError`` listing all of them.
    """
    if raw is None:
        return list(Category)
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    wanted = {s.strip().lower() for s in items if s and s.strip()}
    if not wanted:
        return list(Category)

    unknown = sorted(wanted - set(ALL_SLUGS))
    if unknown:
        raise UnknownCategoryError(unknown)
    return [c for c in Category if c.slug in wanted]


def select_categories(
    requested: Iterable[Category], allowed: Iterable[str] | None
) -> list[Category]:
    """Requested ∩ entitled ∩ catalog, in catalog order. ``None`` = no limit."""
    requested = set(requested)
    allowed_set = set(ALL_SLUGS) if allowed is None else set(allowed)
    return [c for c in Category if c in requested and c.slug in allowed_set]


class ScoreAggregator:
    """Running weighted mean of category scores.

    Sums are kept as ``Decimal`` so the result does not depend on the order
    categories finish in.
    """

    def __init__(self):
        self.weighted_sum = Decimal(0)
        self.total_weight = Decimal(0)
        self.count = 0

    def add(self, score: int, weight: float) -> int:
        w = Decimal(str(weight))
        self.weighted_sum += Decimal(score) * w
        self.total_weight += w
        self.count += 1
        return self.score

    @property
    def score(self) -> int:
        if self.total_weight <= 0:
            return 0
        mean = self.weighted_sum / self.total_weight
        return int(mean.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def overall_score(categories: Iterable[CategoryScore]) -> int:
    """Weighted mean over ``categories`` in one pass."""
    agg = ScoreAggregator()
    for c in categories:
        agg.add(c.score, c.weight)
    return agg.score
