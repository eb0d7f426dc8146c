"""Core utilities for the tangohub application."""

from tangohub.app.core.cache import ResponseCache, build_cache_key
from tangohub.app.core.config import settings
from tangohub.app.core.logging import get_logger, setup_logging
from tangohub.app.core.rate_limits import ModelKey, RateLimitConfig, RateLimitTable, load_rate_limit_table
from tangohub.app.core.scheduler import CacheSweeper, PeriodicTask

__all__ = [
    "ResponseCache",
    "build_cache_key",
    "settings",
    "get_logger",
    "setup_logging",
    "ModelKey",
    "RateLimitConfig",
    "RateLimitTable",
    "load_rate_limit_table",
    "CacheSweeper",
    "PeriodicTask",
]
