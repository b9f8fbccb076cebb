"""Health check endpoints."""

from fastapi import APIRouter

from coursevault.responses import success_response

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """Liveness check. Does not touch the database or the provider."""
    return success_response({"status": "ok"})
