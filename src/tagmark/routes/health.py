"""Health check endpoint."""

from fastapi import APIRouter

from ..config import settings
from ..services.bookmark_store import get_default_store

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Return service health status and whether a bookmark store is wired up."""
    return {
        "status": "healthy",
        "service": settings.service_name,
        "environment": settings.environment,
        "store": "configured" if get_default_store() is not None else "unconfigured",
    }
