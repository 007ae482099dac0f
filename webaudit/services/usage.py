"""
WebAudit — Plan-based usage limits.

Monthly balance is spent before purchased audit packs. Canceled subscriptions
drop to free-tier limits and lose their packs; past-due ones are blocked.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webaudit.models.user import UserProfile
from webaudit.pipeline.categories import ALL_SLUGS

logger = logging.getLogger(__name__)

# tier → audits per month, pages per audit, categories (None = all)
TIER_LIMITS: dict[str, dict] = {
    "free": {
        "audits": 1,
        "pages": 1,
        "categories": ["business", "technical", "brand"],
    },
    "starter": {
        "audits": 5,
        "pages": 3,
        "categories": ["business", "technical", "brand", "ux", "content", "security"],
    },
    "pro": {"audits": 25, "pages": 10, "categories": None},
    "agency": {"audits": 100, "pages": 25, "categories": None},
}


def tier_categories(tier: str) -> list[str]:
    limits = TIER_LIMITS.get(tier, TIER_LIMITS["free"])
    return list(ALL_SLUGS) if limits["categories"] is None else list(limits["categories"])


@dataclass
class UsageCheck:
    allowed: bool
    reason: str | None = None
    audits_remaining: int = 0
    audits_limit: int = 0
    purchased_audits: int = 0
    tier: str = "free"
    pages_limit: int = 1
    allowed_categories: list[str] = field(default_factory=list)
    can_buy_packs: bool = False


class UsageService:
    """Entitlement lookups against ``user_profiles``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def check_usage(self, user_id: str) -> UsageCheck:
        async with self._session_factory() as db:
            profile = await db.get(UserProfile, user_id)

        if profile is None:
            return UsageCheck(
                allowed=False,
                reason="User profile not found",
                allowed_categories=tier_categories("free"),
            )

        tier = profile.tier if profile.tier in TIER_LIMITS else "free"
        limits = TIER_LIMITS[tier]
        purchased = profile.purchased_audits or 0
        used = profile.audits_used_this_month or 0

        if profile.subscription_status == "past_due":
            return UsageCheck(
                allowed=False,
                reason="Your payment is past due. Please update your payment method to continue.",
                audits_limit=profile.audits_limit,
                purchased_audits=purchased,
                tier=tier,
                pages_limit=limits["pages"],
                allowed_categories=tier_categories(tier),
            )

        if profile.subscription_status == "canceled":
            free = TIER_LIMITS["free"]
            exhausted = used >= free["audits"]
            return UsageCheck(
                allowed=not exhausted,
                reason=(
                    "Your subscription was canceled. Upgrade to continue auditing."
                    if exhausted
                    else None
                ),
                audits_remaining=max(0, free["audits"] - used),
                audits_limit=free["audits"],
                purchased_audits=0,
                tier="free",
                pages_limit=free["pages"],
                allowed_categories=tier_categories("free"),
            )

        monthly_remaining = max(0, profile.audits_limit - used)
        can_buy = tier != "free"

        if monthly_remaining + purchased <= 0:
            return UsageCheck(
                allowed=False,
                reason=(
                    "You've used all your audits. Purchase an audit pack to continue."
                    if can_buy
                    else "You've reached your monthly audit limit. Upgrade your plan for more audits."
                ),
                audits_limit=profile.audits_limit,
                purchased_audits=purchased,
                tier=tier,
                pages_limit=limits["pages"],
                allowed_categories=tier_categories(tier),
                can_buy_packs=can_buy,
            )

        return UsageCheck(
            allowed=True,
            audits_remaining=monthly_remaining,
            audits_limit=profile.audits_limit,
            purchased_audits=purchased,
            tier=tier,
            pages_limit=limits["pages"],
            allowed_categories=tier_categories(tier),
            can_buy_packs=can_buy,
        )

    async def increment_usage(self, user_id: str) -> bool:
        """Charge one audit. Returns False when nothing could be charged."""
        async with self._session_factory() as db:
            profile = await db.get(UserProfile, user_id)
            if profile is None:
                logger.warning("Usage increment for unknown user %s", user_id)
                return False

            used = profile.audits_used_this_month or 0
            if profile.audits_limit - used > 0:
                profile.audits_used_this_month = used + 1
            elif (profile.purchased_audits or 0) > 0:
                profile.purchased_audits -= 1
            else:
                logger.warning("User %s has no audits left to charge", user_id)
                return False

            profile.last_audit_at = datetime.now(timezone.utc)
            await db.commit()
        return True
