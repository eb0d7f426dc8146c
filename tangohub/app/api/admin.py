"""Operational endpoints for the rate limiter and response cache."""

import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from tangohub.app.api.schemas import InvalidateRequest
from tangohub.app.core.logging import get_logger
from tangohub.app.dependencies import AppComponents, get_components
from tangohub.app.core.rate_limits import ModelKey

logger = get_logger(__name__)
router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.get("/rate-limits")
async def rate_limit_metrics(
    platform: Optional[str] = None,
    components: AppComponents = Depends(get_components),
) -> Dict[str, Any]:
    limiter = components.rate_limiter
    return {
        "summary": limiter.get_metrics_summary(),
        "buckets": limiter.get_metrics(platform=platform),
    }


@router.post("/rate-limits/{platform}/{model:path}/reset")
async def reset_rate_limit(
    platform: str,
    model: str,
    components: AppComponents = Depends(get_components),
) -> Dict[str, Any]:
    if ModelKey(platform, model) not in components.rate_limiter.table:
        raise HTTPException(status_code=404, detail=f"No rate limit configured for {platform}:{model}")
    components.rate_limiter.reset_token_bucket(platform, model)
    return {"platform": platform, "model": model, "reset": True}


@router.get("/cache/stats")
async def cache_stats(components: AppComponents = Depends(get_components)) -> Dict[str, Any]:
    return components.response_cache.get_stats()


@router.post("/cache/invalidate")
async def invalidate_cache(
    payload: InvalidateRequest,
    components: AppComponents = Depends(get_components),
) -> Dict[str, Any]:
    if payload.regex:
        try:
            pattern = re.compile(payload.pattern)
        except re.error as e:
            raise HTTPException(status_code=400, detail=f"Invalid regular expression: {e}")
        removed = components.response_cache.invalidate(pattern)
    else:
        removed = components.response_cache.invalidate(payload.pattern)
    logger.info(f"Invalidated {removed} cache entries matching {payload.pattern!r}")
    return {"removed": removed}


@router.delete("/cache")
async def clear_cache(components: AppComponents = Depends(get_components)) -> Dict[str, Any]:
    removed = components.response_cache.clear()
    logger.info(f"Cleared response cache ({removed} entries)")
    return {"removed": removed}
