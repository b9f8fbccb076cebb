"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
"""

from fastapi import APIRouter

from coursevault.api.routes.courses import router as courses_router
from coursevault.api.routes.health import router as health_router
from coursevault.api.routes.video_analysis import router as video_analysis_router


def create_api_router() -> APIRouter:
    """Create and configure the API router."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(courses_router, tags=["courses"])
    api_router.include_router(video_analysis_router, tags=["video-analysis"])
    return api_router


__all__ = ["create_api_router"]
