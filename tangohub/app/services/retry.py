"""Retry policy with exponential backoff for rate-limited provider calls."""

import random
from dataclasses import dataclass
from typing import Tuple, Type

import httpx

from tangohub.app.exceptions import RateLimitExceededError


@dataclass
class RetryPolicy:
    """Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay between retries in seconds (default: 1.0)
        max_delay: Maximum delay between retries in seconds (default: 30.0)
        exponential_base: Base for exponential calculation (default: 2.0)
        jitter: Upper bound of random seconds added to each delay
        retryable_exceptions: Exception types that trigger a retry

    Example:
        >>> policy = RetryPolicy(max_retries=5, base_delay=1.0, jitter=0)
        >>> policy.calculate_delay(attempt=2)
        4.0
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: float = 1.0
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        httpx.HTTPStatusError,
        RateLimitExceededError,
    )

    def calculate_delay(self, attempt: int) -> float:
        """Delay for a 0-indexed attempt, capped at max_delay, plus jitter."""
        delay = min(self.base_delay * (self.exponential_base**attempt), self.max_delay)
        if self.jitter > 0:
            delay += random.uniform(0, self.jitter)
        return delay

    def is_retryable(self, exception: Exception) -> bool:
        """Only provider rate-limit failures are retried.

        For HTTPStatusError, only 429 responses count.
        """
        if isinstance(exception, httpx.HTTPStatusError):
            return exception.response.status_code == 429

        return isinstance(exception, self.retryable_exceptions)
