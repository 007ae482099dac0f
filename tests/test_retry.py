"""
Tests for the rate-limit retry wrapper.
"""

import pytest

from webaudit.services.ai import AIRequestError
from webaudit.services.retry import is_rate_limited, with_retry


class SleepRecorder:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class TestIsRateLimited:
    def test_status_429(self):
        assert is_rate_limited(AIRequestError("Too many", status=429))

    def test_message_markers(self):
        assert is_rate_limited(RuntimeError("Error: rate_limit_error"))
        assert is_rate_limited(RuntimeError("Rate limit reached for model"))
        assert is_rate_limited(RuntimeError("RateLimitReached"))
        assert is_rate_limited(RuntimeError("AI API HTTP 429: slow down"))

    def test_other_errors(self):
        assert not is_rate_limited(AIRequestError("AI API HTTP 500: boom", status=500))
        assert not is_rate_limited(ValueError("bad json"))


class TestWithRetry:
    async def test_success_first_try(self):
        sleep = SleepRecorder()

        async def op():
            return "ok"

        assert await with_retry(op, sleep=sleep) == "ok"
        assert sleep.delays == []

    async def test_retry_ceiling_and_delays(self):
        """Always rate limited → exactly max_retries + 1 attempts, then raise."""
        sleep = SleepRecorder()
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            raise AIRequestError("rate limit", status=429)

        with pytest.raises(AIRequestError):
            await with_retry(op, max_retries=3, base_delay=2.0, sleep=sleep)

        assert attempts["n"] == 4
        assert sleep.delays == [2.0, 4.0, 8.0]

    async def test_non_retryable_raises_immediately(self):
        sleep = SleepRecorder()
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            raise ValueError("not a rate limit")

        with pytest.raises(ValueError):
            await with_retry(op, max_retries=3, sleep=sleep)

        assert attempts["n"] == 1
        assert sleep.delays == []

    async def test_recovers_after_rate_limit(self):
        sleep = SleepRecorder()
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            if attempts["n"] < 3:
                raise RuntimeError("429 Too Many Requests")
            return 42

        assert await with_retry(op, max_retries=3, base_delay=0.5, sleep=sleep) == 42
        assert sleep.delays == [0.5, 1.0]

    async def test_zero_retries(self):
        sleep = SleepRecorder()
        attempts = {"n": 0}

        async def op():
            attempts["n"] += 1
            raise RuntimeError("rate limit")

        with pytest.raises(RuntimeError):
            await with_retry(op, max_retries=0, sleep=sleep)
        assert attempts["n"] == 1
