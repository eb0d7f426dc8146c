"""API endpoints package for tangohub."""

from tangohub.app.api.admin import router as admin_router
from tangohub.app.api.posts import router as posts_router
from tangohub.app.api.predictions import router as predictions_router

__all__ = [
    "admin_router",
    "posts_router",
    "predictions_router",
]
