"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter
import structlog

from story_coach import __version__
from story_coach.core.config import settings

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        Service status and which backends are LLM-driven.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "debug": settings.debug,
        "components": {
            "llm": "enabled" if settings.llm_enabled else "disabled",
        },
    }


@router.get("/health/live")
async def liveness():
    """
    Kubernetes-style liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}
