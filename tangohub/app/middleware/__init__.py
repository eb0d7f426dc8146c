"""Middleware package for tangohub."""

from tangohub.app.middleware.request_id import RequestIdMiddleware, get_request_id
from tangohub.app.middleware.response_cache import ResponseCacheMiddleware, get_user_identity

__all__ = [
    "RequestIdMiddleware",
    "ResponseCacheMiddleware",
    "get_request_id",
    "get_user_identity",
]
