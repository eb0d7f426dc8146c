"""Tests for the outbound provider token bucket limiter."""

from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from tangohub.app.core.rate_limits import RateLimitTable
from tangohub.app.exceptions import ConfigurationError, RateLimitExceededError
from tangohub.app.services.rate_limiter import RateLimiterService
from tangohub.app.services.retry import RetryPolicy

DAY = 86400
# 100 seconds past a UTC midnight
START = 19_000 * DAY + 100.0


class FakeClock:
    """Virtual clock whose async sleep advances time instantly."""

    def __init__(self, start: float = START):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def table():
    return RateLimitTable.from_dict({
        "openai": {
            "gpt-4o": {"requests_per_minute": 5},
            "gpt-4o-mini": {"requests_per_minute": 60},
        },
        "groq": {
            "llama-3.1-8b-instant": {"requests_per_minute": 60, "requests_per_day": 3},
        },
    })


@pytest.fixture
def limiter(table, clock):
    return RateLimiterService(table, poll_interval_ms=100, clock=clock, sleep=clock.sleep)


def _http_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError(f"HTTP {status}", request=request, response=response)


class TestAcquireToken:
    """Tests for non-blocking token acquisition."""

    def test_allows_up_to_capacity_then_refuses(self, limiter):
        """A fresh bucket admits exactly requests_per_minute calls."""
        results = [limiter.acquire_token("openai", "gpt-4o") for _ in range(6)]
        assert results == [True] * 5 + [False]

    def test_refills_over_time(self, limiter, clock):
        """One second at 60 rpm restores one token."""
        for _ in range(60):
            assert limiter.acquire_token("openai", "gpt-4o-mini") is True
        assert limiter.acquire_token("openai", "gpt-4o-mini") is False

        clock.advance(1.0)
        assert limiter.acquire_token("openai", "gpt-4o-mini") is True
        assert limiter.acquire_token("openai", "gpt-4o-mini") is False

    def test_never_exceeds_capacity(self, limiter, clock):
        """Long idle periods do not accumulate more than capacity."""
        limiter.acquire_token("openai", "gpt-4o")
        clock.advance(3600)
        assert limiter.get_token_count("openai", "gpt-4o") == 5

    def test_pairs_are_independent(self, limiter):
        """Exhausting one model leaves others untouched."""
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")
        assert limiter.acquire_token("openai", "gpt-4o") is False
        assert limiter.acquire_token("openai", "gpt-4o-mini") is True

    def test_unknown_pair_raises(self, limiter):
        """Unconfigured pairs fail loudly and create no bucket."""
        with pytest.raises(ConfigurationError) as exc_info:
            limiter.acquire_token("openai", "gpt-5-ultra")
        assert exc_info.value.platform == "openai"
        assert exc_info.value.model == "gpt-5-ultra"
        assert limiter.active_buckets() == []

    def test_concurrent_acquires_respect_capacity(self, table, clock):
        """Threads racing for tokens never overdraw the bucket."""
        limiter = RateLimiterService(table, clock=clock, sleep=clock.sleep)
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: limiter.acquire_token("openai", "gpt-4o-mini"), range(100)))
        assert results.count(True) == 60
        assert limiter.get_token_count("openai", "gpt-4o-mini") == 0


class TestDailyBudget:
    """Tests for the per-day request budget."""

    def test_daily_budget_blocks_with_tokens_left(self, limiter):
        for _ in range(3):
            assert limiter.acquire_token("groq", "llama-3.1-8b-instant") is True
        assert limiter.acquire_token("groq", "llama-3.1-8b-instant") is False
        assert limiter.get_token_count("groq", "llama-3.1-8b-instant") == 57
        assert limiter.is_rate_limited("groq", "llama-3.1-8b-instant") is True

    def test_daily_budget_resets_at_utc_midnight(self, limiter, clock):
        for _ in range(3):
            limiter.acquire_token("groq", "llama-3.1-8b-instant")
        assert limiter.acquire_token("groq", "llama-3.1-8b-instant") is False

        clock.advance(DAY - 100)
        assert limiter.is_rate_limited("groq", "llama-3.1-8b-instant") is False
        assert limiter.acquire_token("groq", "llama-3.1-8b-instant") is True


class TestBucketInspection:
    """Tests for token counts, resets and wait estimates."""

    def test_token_count_for_unknown_bucket_is_zero(self, limiter):
        """Reading a count does not create a bucket."""
        assert limiter.get_token_count("openai", "gpt-4o") == 0
        assert limiter.get_token_count("nobody", "nothing") == 0
        assert limiter.active_buckets() == []

    def test_token_count_is_floored(self, limiter, clock):
        for _ in range(60):
            limiter.acquire_token("openai", "gpt-4o-mini")
        clock.advance(2.5)
        assert limiter.get_token_count("openai", "gpt-4o-mini") == 2

    def test_reset_recreates_full_bucket(self, limiter):
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")
        limiter.reset_token_bucket("openai", "gpt-4o")

        assert limiter.get_token_count("openai", "gpt-4o") == 0
        assert "openai:gpt-4o" not in limiter.active_buckets()
        assert limiter.acquire_token("openai", "gpt-4o") is True
        assert limiter.get_token_count("openai", "gpt-4o") == 4

    def test_reset_unknown_bucket_is_noop(self, limiter):
        limiter.reset_token_bucket("openai", "gpt-4o")
        assert limiter.active_buckets() == []

    def test_time_until_next_token(self, limiter, clock):
        assert limiter.time_until_next_token_ms("openai", "gpt-4o-mini") == 0
        for _ in range(60):
            limiter.acquire_token("openai", "gpt-4o-mini")
        assert limiter.time_until_next_token_ms("openai", "gpt-4o-mini") == 1000
        clock.advance(0.5)
        assert limiter.time_until_next_token_ms("openai", "gpt-4o-mini") == 500

    def test_is_rate_limited(self, limiter):
        assert limiter.is_rate_limited("openai", "gpt-4o") is False
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")
        assert limiter.is_rate_limited("openai", "gpt-4o") is True


class TestWaitForToken:
    """Tests for the polling acquire."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_tokens_available(self, limiter, clock):
        assert await limiter.wait_for_token("openai", "gpt-4o", max_wait_ms=1000) is True
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_waits_for_refill(self, limiter, clock):
        """At 60 rpm an empty bucket has a token again after about a second."""
        for _ in range(60):
            limiter.acquire_token("openai", "gpt-4o-mini")
        start = clock.now

        assert await limiter.wait_for_token("openai", "gpt-4o-mini", max_wait_ms=2000) is True
        assert 0.9 <= clock.now - start <= 1.2
        assert all(s <= 0.1 for s in clock.sleeps)

    @pytest.mark.asyncio
    async def test_times_out(self, limiter, clock):
        """At 5 rpm a token takes 12s, longer than the deadline."""
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")
        start = clock.now

        assert await limiter.wait_for_token("openai", "gpt-4o", max_wait_ms=500) is False
        assert clock.now - start == pytest.approx(0.5, abs=1e-3)

    @pytest.mark.asyncio
    async def test_zero_wait_checks_once(self, limiter, clock):
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")
        assert await limiter.wait_for_token("openai", "gpt-4o", max_wait_ms=0) is False
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_unknown_pair_raises(self, limiter):
        with pytest.raises(ConfigurationError):
            await limiter.wait_for_token("mystery", "model", max_wait_ms=100)

    @pytest.mark.asyncio
    async def test_wait_records_single_outcome(self, limiter):
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")
        await limiter.wait_for_token("openai", "gpt-4o", max_wait_ms=300)

        metrics = limiter.get_metrics("openai", "gpt-4o")[0]
        assert metrics["total_requests"] == 6
        assert metrics["rate_limited_requests"] == 1
        assert metrics["waited_requests"] == 1
        assert metrics["average_wait_ms"] == pytest.approx(300, abs=1)


class TestExecuteWithRetry:
    """Tests for rate-limited provider calls with backoff."""

    @pytest.mark.asyncio
    async def test_success_first_try(self, limiter):
        calls = []

        async def operation():
            calls.append(1)
            return "ok"

        assert await limiter.execute_with_retry("openai", "gpt-4o", operation) == "ok"
        assert len(calls) == 1
        assert limiter.get_token_count("openai", "gpt-4o") == 4

    @pytest.mark.asyncio
    async def test_retries_provider_429(self, limiter, clock):
        calls = []

        async def operation():
            calls.append(1)
            if len(calls) == 1:
                raise _http_error(429)
            return "ok"

        policy = RetryPolicy(max_retries=2, base_delay=0.5, jitter=0)
        result = await limiter.execute_with_retry("openai", "gpt-4o", operation, policy=policy)

        assert result == "ok"
        assert len(calls) == 2
        assert clock.sleeps == [0.5]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, limiter, clock):
        async def operation():
            raise _http_error(429)

        policy = RetryPolicy(max_retries=2, base_delay=1.0, jitter=0)
        with pytest.raises(httpx.HTTPStatusError):
            await limiter.execute_with_retry("openai", "gpt-4o", operation, policy=policy)
        assert clock.sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_non_rate_limit_errors_propagate(self, limiter):
        calls = []

        async def operation():
            calls.append(1)
            raise _http_error(500)

        with pytest.raises(httpx.HTTPStatusError):
            await limiter.execute_with_retry("openai", "gpt-4o", operation)
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_raises_when_no_token(self, limiter):
        for _ in range(5):
            limiter.acquire_token("openai", "gpt-4o")

        async def operation():
            return "never"

        policy = RetryPolicy(max_retries=0, jitter=0)
        with pytest.raises(RateLimitExceededError) as exc_info:
            await limiter.execute_with_retry(
                "openai", "gpt-4o", operation, policy=policy, max_wait_ms=0
            )
        assert exc_info.value.retry_after_ms > 0
        assert exc_info.value.status_code == 429


class TestMetrics:
    """Tests for admission metrics."""

    def test_counts_outcomes(self, limiter):
        for _ in range(6):
            limiter.acquire_token("openai", "gpt-4o")

        metrics = limiter.get_metrics(platform="openai")
        assert len(metrics) == 1
        assert metrics[0]["model"] == "gpt-4o"
        assert metrics[0]["total_requests"] == 6
        assert metrics[0]["successful_requests"] == 5
        assert metrics[0]["rate_limited_requests"] == 1
        assert metrics[0]["capacity"] == 5

    def test_summary(self, limiter):
        limiter.acquire_token("openai", "gpt-4o")
        limiter.acquire_token("groq", "llama-3.1-8b-instant")

        summary = limiter.get_metrics_summary()
        assert summary["total_platforms"] == 2
        assert summary["total_requests"] == 2
        assert summary["total_successful"] == 2
        assert summary["average_wait_ms"] == 0.0
        assert summary["platform_breakdown"]["groq"]["requests"] == 1

    def test_reset_clears_metrics(self, limiter):
        for _ in range(3):
            limiter.acquire_token("openai", "gpt-4o")
        limiter.reset_token_bucket("openai", "gpt-4o")

        (metrics,) = limiter.get_metrics("openai", "gpt-4o")
        assert metrics["total_requests"] == 0
        assert metrics["successful_requests"] == 0
        assert metrics["rate_limited_requests"] == 0
        assert metrics["average_wait_ms"] == 0.0

    def test_reset_leaves_other_metrics(self, limiter):
        limiter.acquire_token("openai", "gpt-4o")
        limiter.acquire_token("groq", "llama-3.1-8b-instant")
        limiter.reset_token_bucket("openai", "gpt-4o")
        assert limiter.get_metrics("groq")[0]["total_requests"] == 1
