"""
WebAudit — Exponential backoff for rate-limited model calls.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Phrases that indicate the provider throttled us (case-insensitive)
_RATE_LIMIT_MARKERS = [
    "rate_limit",
    "rate limit",
    "ratelimitreached",
    "429",
]


def is_rate_limited(err: BaseException) -> bool:
    """True when ``err`` signals rate-limiting (HTTP 429 or a known marker)."""
    if getattr(err, "status", None) == 429:
        return True
    msg = str(err).lower()
    return any(marker in msg for marker in _RATE_LIMIT_MARKERS)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 2.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``fn``, retrying only rate-limit failures.

    Attempt ``n`` (0-based) that is rate limited waits ``base_delay * 2**n``
    before the next one; at most ``max_retries + 1`` attempts are made. Any
    other exception propagates immediately.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as err:
            if not is_rate_limited(err) or attempt >= max_retries:
                raise
            delay = base_delay * (2 ** attempt)
            logger.warning(
                "⏳ Rate limited, retry %d/%d in %.1fs", attempt + 1, max_retries, delay
            )
            await sleep(delay)
            attempt += 1
