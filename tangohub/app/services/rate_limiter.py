"""Token bucket rate limiter for outbound AI provider calls.

Each (platform, model) pair gets its own continuously refilling bucket
sized to the provider's requests-per-minute quota, plus a daily request
budget that resets at UTC midnight. Buckets are created lazily from the
static rate-limit table and live for the process lifetime.
"""

import asyncio
import math
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from tangohub.app.core.logging import get_log_context, get_logger
from tangohub.app.core.rate_limits import ModelKey, RateLimitConfig, RateLimitTable
from tangohub.app.exceptions import RateLimitExceededError
from tangohub.app.services.retry import RetryPolicy

logger = get_logger(__name__)

T = TypeVar("T")

SECONDS_PER_DAY = 86400


@dataclass
class TokenBucket:
    """Token bucket state for one (platform, model) pair."""
    tokens: float
    capacity: float
    refill_rate: float  # tokens per second
    last_refill: float
    requests_today: int = 0
    daily_reset_at: float = 0.0


@dataclass
class RateLimitMetrics:
    """Admission counters for one (platform, model) pair."""
    platform: str
    model: str
    total_requests: int = 0
    successful_requests: int = 0
    rate_limited_requests: int = 0
    waited_requests: int = 0
    average_wait_ms: float = 0.0
    current_tokens: float = 0.0
    capacity: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "model": self.model,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "rate_limited_requests": self.rate_limited_requests,
            "waited_requests": self.waited_requests,
            "average_wait_ms": round(self.average_wait_ms, 2),
            "current_tokens": math.floor(self.current_tokens),
            "capacity": self.capacity,
        }


def _next_utc_midnight(now: float) -> float:
    return (math.floor(now / SECONDS_PER_DAY) + 1) * SECONDS_PER_DAY


class RateLimiterService:
    """Per-(platform, model) token bucket limiter.

    Usage:
        limiter = RateLimiterService(RateLimitTable.default())
        if limiter.acquire_token("openai", "gpt-4o"):
            ...  # call the provider
        elif await limiter.wait_for_token("openai", "gpt-4o", max_wait_ms=2000):
            ...

    Every read-modify-write on a bucket happens under one lock with no
    suspension point inside, so the limiter is safe for both async and
    thread-pool callers.
    """

    def __init__(
        self,
        table: RateLimitTable,
        poll_interval_ms: int = 100,
        max_wait_ms: int = 30000,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the limiter.

        Args:
            table: Validated static quota table
            poll_interval_ms: Polling cadence of wait_for_token
            max_wait_ms: Default wait_for_token deadline
            clock: Wall-clock source in seconds (injectable for tests)
            sleep: Async sleep used between polls and retries
        """
        self._table = table
        self.poll_interval_ms = poll_interval_ms
        self.max_wait_ms = max_wait_ms
        self._clock = clock
        self._sleep = sleep
        self._buckets: Dict[ModelKey, TokenBucket] = {}
        self._metrics: Dict[ModelKey, RateLimitMetrics] = {}
        self._lock = threading.Lock()

    @property
    def table(self) -> RateLimitTable:
        return self._table

    def _create_bucket(self, key: ModelKey, config: RateLimitConfig) -> TokenBucket:
        now = self._clock()
        bucket = TokenBucket(
            tokens=float(config.requests_per_minute),
            capacity=float(config.requests_per_minute),
            refill_rate=config.requests_per_minute / 60.0,
            last_refill=now,
            daily_reset_at=_next_utc_midnight(now),
        )
        self._buckets[key] = bucket
        self._metrics.setdefault(key, RateLimitMetrics(platform=key.platform, model=key.model))
        logger.info(
            f"Initialized token bucket {key} | "
            f"rate: {bucket.refill_rate:.2f} req/s | capacity: {bucket.capacity:g} | "
            f"daily: {config.requests_per_day or 'unlimited'}",
            extra=get_log_context(platform=key.platform, model=key.model),
        )
        return bucket

    def _refill(self, bucket: TokenBucket) -> None:
        now = self._clock()
        elapsed = max(0.0, now - bucket.last_refill)
        bucket.tokens = min(bucket.capacity, bucket.tokens + elapsed * bucket.refill_rate)
        bucket.last_refill = now

    def _daily_budget_left(self, key: ModelKey, bucket: TokenBucket, config: RateLimitConfig) -> bool:
        now = self._clock()
        if now >= bucket.daily_reset_at:
            bucket.requests_today = 0
            bucket.daily_reset_at = _next_utc_midnight(now)
            logger.info(f"Daily request budget reset for {key}")

        if config.requests_per_day and bucket.requests_today >= config.requests_per_day:
            logger.warning(
                f"Daily request budget reached for {key} ({config.requests_per_day} requests)",
                extra=get_log_context(platform=key.platform, model=key.model),
            )
            return False
        return True

    def _try_acquire(self, key: ModelKey, config: RateLimitConfig) -> bool:
        """Refill, then check and deduct. Caller holds the lock."""
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._create_bucket(key, config)

        self._refill(bucket)

        if not self._daily_budget_left(key, bucket, config):
            return False

        if bucket.tokens >= 1:
            bucket.tokens -= 1
            bucket.requests_today += 1
            return True
        return False

    def _record(self, key: ModelKey, allowed: bool, wait_ms: Optional[float] = None) -> None:
        """Update metrics. Caller holds the lock."""
        metrics = self._metrics.setdefault(key, RateLimitMetrics(platform=key.platform, model=key.model))
        metrics.total_requests += 1
        if allowed:
            metrics.successful_requests += 1
        else:
            metrics.rate_limited_requests += 1

        if wait_ms is not None:
            total_wait = metrics.average_wait_ms * metrics.waited_requests + wait_ms
            metrics.waited_requests += 1
            metrics.average_wait_ms = total_wait / metrics.waited_requests

        bucket = self._buckets.get(key)
        if bucket is not None:
            metrics.current_tokens = bucket.tokens
            metrics.capacity = bucket.capacity

    def acquire_token(self, platform: str, model: str) -> bool:
        """Take one token for the pair if available.

        Raises:
            ConfigurationError: If no rate limit is configured for the pair.
        """
        config = self._table.require(platform, model)
        key = ModelKey(platform, model)

        with self._lock:
            allowed = self._try_acquire(key, config)
            self._record(key, allowed)
            remaining = self._buckets[key].tokens

        if allowed:
            logger.debug(f"Token acquired for {key} | remaining: {remaining:.2f}")
        else:
            logger.debug(
                f"Rate limited {key}",
                extra=get_log_context(platform=platform, model=model),
            )
        return allowed

    async def wait_for_token(
        self,
        platform: str,
        model: str,
        max_wait_ms: Optional[int] = None,
    ) -> bool:
        """Poll for a token until one is acquired or the deadline passes.

        Returns:
            True if a token was acquired, False on timeout.

        Raises:
            ConfigurationError: If no rate limit is configured for the pair.
        """
        config = self._table.require(platform, model)
        key = ModelKey(platform, model)
        wait_ms = self.max_wait_ms if max_wait_ms is None else max_wait_ms
        poll_seconds = self.poll_interval_ms / 1000.0

        start = self._clock()
        deadline = start + wait_ms / 1000.0

        while True:
            with self._lock:
                allowed = self._try_acquire(key, config)
            if allowed:
                break
            remaining = deadline - self._clock()
            if remaining <= 0:
                break
            await self._sleep(min(poll_seconds, remaining))

        waited_ms = (self._clock() - start) * 1000.0
        with self._lock:
            self._record(key, allowed, wait_ms=waited_ms)

        if not allowed:
            logger.warning(
                f"Timed out after {wait_ms}ms waiting for token on {key}",
                extra=get_log_context(platform=platform, model=model),
            )
        return allowed

    def get_token_count(self, platform: str, model: str) -> int:
        """Floored token count after a refill; 0 for unknown buckets."""
        with self._lock:
            bucket = self._buckets.get(ModelKey(platform, model))
            if bucket is None:
                return 0
            self._refill(bucket)
            return math.floor(bucket.tokens)

    def reset_token_bucket(self, platform: str, model: str) -> None:
        """Drop the bucket and zero its metrics; the next acquire recreates it full."""
        key = ModelKey(platform, model)
        with self._lock:
            removed = self._buckets.pop(key, None)
            if key in self._metrics:
                self._metrics[key] = RateLimitMetrics(platform=key.platform, model=key.model)
        if removed is not None:
            logger.info(f"Reset token bucket for {key}")

    def is_rate_limited(self, platform: str, model: str) -> bool:
        """Whether an acquire would currently be refused."""
        key = ModelKey(platform, model)
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return False
            self._refill(bucket)
            if bucket.tokens < 1:
                return True
            config = self._table.get(key)
            if config is None or not config.requests_per_day:
                return False
            if self._clock() >= bucket.daily_reset_at:
                return False
            return bucket.requests_today >= config.requests_per_day

    def time_until_next_token_ms(self, platform: str, model: str) -> int:
        with self._lock:
            bucket = self._buckets.get(ModelKey(platform, model))
            if bucket is None:
                return 0
            self._refill(bucket)
            if bucket.tokens >= 1:
                return 0
            return math.ceil((1 - bucket.tokens) / bucket.refill_rate * 1000)

    async def execute_with_retry(
        self,
        platform: str,
        model: str,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        max_wait_ms: Optional[int] = None,
    ) -> T:
        """Run an async provider call behind the limiter with backoff.

        Each attempt waits for a token first. Provider rate-limit failures
        (HTTP 429 or RateLimitExceededError) are retried with exponential
        backoff; any other error propagates immediately.

        Raises:
            RateLimitExceededError: If no token could be obtained on the
                final attempt.
            ConfigurationError: If no rate limit is configured for the pair.
        """
        retry_policy = policy or RetryPolicy()

        for attempt in range(retry_policy.max_retries + 1):
            try:
                if not await self.wait_for_token(platform, model, max_wait_ms):
                    raise RateLimitExceededError(
                        platform,
                        model,
                        retry_after_ms=self.time_until_next_token_ms(platform, model),
                    )
                result = await operation()
                if attempt > 0:
                    logger.info(f"Retry succeeded on attempt {attempt + 1} for {platform}:{model}")
                return result
            except Exception as e:
                if not retry_policy.is_retryable(e):
                    raise

                if attempt >= retry_policy.max_retries:
                    logger.warning(
                        f"Max retries ({retry_policy.max_retries}) exceeded for {platform}:{model}: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise

                delay = retry_policy.calculate_delay(attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{retry_policy.max_retries} for {platform}:{model} "
                    f"after {type(e).__name__}: {e}. Waiting {delay:.2f}s..."
                )
                await self._sleep(delay)

        raise RateLimitExceededError(platform, model)

    def get_metrics(
        self,
        platform: Optional[str] = None,
        model: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._metrics.values())
        if platform is not None:
            items = [m for m in items if m.platform == platform]
        if model is not None:
            items = [m for m in items if m.model == model]
        return [m.to_dict() for m in items]

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Totals across all buckets with a per-platform breakdown."""
        with self._lock:
            items = list(self._metrics.values())

        breakdown: Dict[str, Dict[str, int]] = {}
        for m in items:
            entry = breakdown.setdefault(
                m.platform, {"requests": 0, "successful": 0, "rate_limited": 0, "waited": 0}
            )
            entry["requests"] += m.total_requests
            entry["successful"] += m.successful_requests
            entry["rate_limited"] += m.rate_limited_requests
            entry["waited"] += m.waited_requests

        waited = [m for m in items if m.waited_requests]
        return {
            "total_platforms": len(breakdown),
            "total_requests": sum(m.total_requests for m in items),
            "total_successful": sum(m.successful_requests for m in items),
            "total_rate_limited": sum(m.rate_limited_requests for m in items),
            "total_waited": sum(m.waited_requests for m in items),
            "average_wait_ms": (
                sum(m.average_wait_ms for m in waited) / len(waited) if waited else 0.0
            ),
            "platform_breakdown": breakdown,
        }

    def active_buckets(self) -> List[str]:
        with self._lock:
            return [str(key) for key in self._buckets]
