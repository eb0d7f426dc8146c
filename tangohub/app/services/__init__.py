"""Services package for tangohub.

This package provides:
- Token bucket rate limiting for outbound AI provider calls
- Retry policy for provider rate-limit failures
- The in-memory post feed
- The scoring engine (see services.scoring)
"""

from tangohub.app.services.post_store import PostStore
from tangohub.app.services.rate_limiter import RateLimiterService, RateLimitMetrics, TokenBucket
from tangohub.app.services.retry import RetryPolicy

__all__ = [
    "PostStore",
    "RateLimiterService",
    "RateLimitMetrics",
    "TokenBucket",
    "RetryPolicy",
]
