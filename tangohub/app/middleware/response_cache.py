"""Response caching middleware.

Caches successful JSON responses of GET requests under configured path
prefixes and invalidates related entries after successful mutations.
"""

import hashlib
import re
from typing import Dict, Iterable, Mapping, Optional, Pattern, Sequence, Union

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from tangohub.app.core.cache import ResponseCache, build_cache_key
from tangohub.app.core.logging import get_logger

logger = get_logger(__name__)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

InvalidationPattern = Union[str, Pattern[str]]

# Mutations under a prefix invalidate every cached read matching the patterns
DEFAULT_INVALIDATION_RULES: Dict[str, Sequence[InvalidationPattern]] = {
    "/api/v1/posts": (re.compile(r"^GET:/api/v1/(posts|trending)"),),
}


def get_user_identity(request: Request) -> str:
    """Identity used to partition cached responses.

    Bearer tokens are hashed so raw credentials never end up in cache keys.
    """
    user_id = request.headers.get("X-User-ID", "").strip()
    if user_id:
        return user_id

    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth[7:].strip()
        if token:
            return "token:" + hashlib.sha256(token.encode()).hexdigest()[:32]

    return "anonymous"


def _query_params(request: Request) -> Dict[str, object]:
    params: Dict[str, object] = {}
    for key in request.query_params.keys():
        values = request.query_params.getlist(key)
        params[key] = values if len(values) > 1 else values[0]
    return params


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """Serve cacheable GETs from a ResponseCache.

    Hits carry ``X-Cache: HIT``; stored misses carry ``X-Cache: MISS``.
    """

    def __init__(
        self,
        app,
        cache: ResponseCache,
        prefixes: Iterable[str] = ("/api/v1",),
        ttl_seconds: Optional[int] = None,
        invalidation_rules: Optional[Mapping[str, Sequence[InvalidationPattern]]] = None,
        enabled: bool = True,
    ):
        super().__init__(app)
        self.cache = cache
        self.prefixes = tuple(prefixes)
        self.ttl_seconds = ttl_seconds
        self.invalidation_rules = dict(
            DEFAULT_INVALIDATION_RULES if invalidation_rules is None else invalidation_rules
        )
        self.enabled = enabled

    def _is_cacheable(self, request: Request) -> bool:
        return request.method == "GET" and request.url.path.startswith(self.prefixes)

    def invalidate_for_path(self, path: str) -> int:
        removed = 0
        for prefix, patterns in self.invalidation_rules.items():
            if path.startswith(prefix):
                for pattern in patterns:
                    removed += self.cache.invalidate(pattern)
        return removed

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        if not self.enabled:
            return await call_next(request)

        if request.method in MUTATING_METHODS:
            response = await call_next(request)
            if response.status_code < 400:
                removed = self.invalidate_for_path(request.url.path)
                if removed:
                    logger.debug(
                        f"Invalidated {removed} cached responses after {request.method} {request.url.path}"
                    )
            return response

        if not self._is_cacheable(request):
            return await call_next(request)

        key = build_cache_key(
            request.method, request.url.path, get_user_identity(request), _query_params(request)
        )
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit", extra={"path": request.url.path, "cache_status": "HIT"})
            return Response(
                content=cached["body"],
                status_code=cached["status_code"],
                media_type=cached["media_type"],
                headers={"X-Cache": "HIT"},
            )

        response = await call_next(request)
        media_type = response.headers.get("content-type", "")
        if response.status_code != 200 or not media_type.startswith("application/json"):
            return response

        body = b"".join([chunk async for chunk in response.body_iterator])
        self.cache.set(
            key,
            {"body": body, "status_code": response.status_code, "media_type": media_type},
            self.ttl_seconds,
        )
        miss = Response(content=body, status_code=response.status_code)
        # raw pairs keep repeated headers such as set-cookie
        miss.raw_headers.extend(
            (name, value) for name, value in response.headers.raw if name.lower() != b"content-length"
        )
        miss.headers["X-Cache"] = "MISS"
        return miss
