"""Application composition root and FastAPI dependencies.

All process-local state (token buckets, cached responses, trending
history, the post feed) is owned by one AppComponents instance built at
startup and reached through ``request.app.state``. Tests build a fresh
instance per app.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from tangohub.app.core.cache import ResponseCache
from tangohub.app.core.config import Settings, settings as default_settings
from tangohub.app.core.logging import get_logger
from tangohub.app.core.rate_limits import RateLimitTable, load_rate_limit_table
from tangohub.app.core.scheduler import CacheSweeper
from tangohub.app.services.post_store import PostStore
from tangohub.app.services.rate_limiter import RateLimiterService
from tangohub.app.services.scoring import (
    AttendancePredictor,
    EngagementPredictor,
    SentimentAnalyzer,
    TrendingTopicDetector,
)

logger = get_logger(__name__)


@dataclass
class AppComponents:
    settings: Settings
    rate_limiter: RateLimiterService
    response_cache: ResponseCache
    cache_sweeper: CacheSweeper
    post_store: PostStore
    engagement: EngagementPredictor
    attendance: AttendancePredictor
    sentiment: SentimentAnalyzer
    trending: TrendingTopicDetector

    async def start(self) -> None:
        await self.cache_sweeper.start()

    async def stop(self) -> None:
        await self.cache_sweeper.stop()


def build_components(
    app_settings: Optional[Settings] = None,
    rate_limits: Optional[RateLimitTable] = None,
) -> AppComponents:
    """Create every component once, failing fast on bad configuration.

    Raises:
        ConfigurationError: If the rate-limit table cannot be loaded.
    """
    cfg = app_settings or default_settings
    table = rate_limits or load_rate_limit_table(cfg.rate_limits_file)
    cache = ResponseCache(default_ttl=cfg.cache_default_ttl)

    components = AppComponents(
        settings=cfg,
        rate_limiter=RateLimiterService(
            table,
            poll_interval_ms=cfg.rate_limit_poll_interval_ms,
            max_wait_ms=cfg.rate_limit_max_wait_ms,
        ),
        response_cache=cache,
        cache_sweeper=CacheSweeper(cache, interval=cfg.cache_sweep_interval_seconds),
        post_store=PostStore(),
        engagement=EngagementPredictor(),
        attendance=AttendancePredictor(),
        sentiment=SentimentAnalyzer(),
        trending=TrendingTopicDetector(),
    )
    logger.info(f"Components ready: {len(table)} rate-limited models across {len(table.platforms())} platforms")
    return components


def get_components(request: Request) -> AppComponents:
    return request.app.state.components
