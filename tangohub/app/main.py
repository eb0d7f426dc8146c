"""Application factory for the tangohub API.

``create_app`` builds the shared components, mounts the routers and
middleware, and registers the exception handlers. The bundled routes never
call ``RateLimiterService.execute_with_retry`` themselves; the 429 handler
serves applications that embed this factory and add routes making provider
calls through the limiter, so a refused call surfaces as HTTP 429 with a
``Retry-After`` header.
"""

import math
import traceback
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tangohub.app.api.admin import router as admin_router
from tangohub.app.api.posts import router as posts_router
from tangohub.app.api.predictions import router as predictions_router
from tangohub.app.core.config import Settings, settings as default_settings
from tangohub.app.core.logging import get_logger, setup_logging
from tangohub.app.dependencies import AppComponents, build_components
from tangohub.app.exceptions import ConfigurationError, RateLimitExceededError
from tangohub.app.middleware.request_id import RequestIdMiddleware, get_request_id
from tangohub.app.middleware.response_cache import ResponseCacheMiddleware


def create_app(
    app_settings: Optional[Settings] = None,
    components: Optional[AppComponents] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings override (defaults to the environment)
        components: Pre-built components, mainly for tests

    Returns:
        Configured FastAPI application instance
    """
    cfg = app_settings or default_settings
    setup_logging()
    logger = get_logger(__name__)

    # Composition root: fails fast on an invalid rate-limit table
    components = components or build_components(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start background maintenance on startup and stop it on shutdown."""
        await components.start()
        logger.info(
            "Application startup complete",
            extra={
                "rate_limited_models": len(components.rate_limiter.table),
                "cache_enabled": cfg.cache_enabled,
                "debug_mode": cfg.debug,
            },
        )

        yield

        await components.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="TangoHub Core",
        description="Engagement, attendance, sentiment and trending scoring with provider rate limiting and response caching",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.components = components

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(
        ResponseCacheMiddleware,
        cache=components.response_cache,
        prefixes=cfg.cache_prefixes,
        ttl_seconds=cfg.cache_default_ttl,
        enabled=cfg.cache_enabled,
    )
    app.add_middleware(RequestIdMiddleware)

    app.include_router(posts_router)
    app.include_router(predictions_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with component status."""
        return {
            "status": "ok",
            "components": {
                "cache": {
                    "status": "ok",
                    "enabled": cfg.cache_enabled,
                    "size": components.response_cache.size(),
                    "sweeper_running": components.cache_sweeper.running,
                },
                "rate_limiter": {
                    "status": "ok",
                    "configured_models": len(components.rate_limiter.table),
                    "active_buckets": len(components.rate_limiter.active_buckets()),
                },
                "posts": {"status": "ok", "count": len(components.post_store)},
            },
        }

    @app.exception_handler(RateLimitExceededError)
    async def rate_limit_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        """Handle RateLimitExceededError and return HTTP 429 response."""
        retry_after_s = max(1, math.ceil(exc.retry_after_ms / 1000))
        return JSONResponse(
            status_code=429,
            content={
                "error": "rate_limit_exceeded",
                "message": exc.message,
                "platform": exc.platform,
                "model": exc.model,
                "retry_after_ms": exc.retry_after_ms,
            },
            headers={"Retry-After": str(retry_after_s)},
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        """Handle ConfigurationError and return HTTP 500 response."""
        logger.error(
            f"Configuration error: {exc.message}",
            extra={"request_id": get_request_id(request), "platform": exc.platform, "model": exc.model},
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "configuration_error",
                "message": exc.message if cfg.debug else "Service misconfigured",
                "request_id": get_request_id(request),
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; debug mode adds the
        exception message and type.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
                "traceback": traceback.format_exc(),
            },
        )

        content = {
            "error": "internal_error",
            "message": "Internal server error",
            "request_id": request_id,
        }
        if cfg.debug:
            content["message"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
