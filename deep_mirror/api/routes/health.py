"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from deep_mirror import __version__
from deep_mirror.api.dependencies import SessionControllerDep
from deep_mirror.core.config import settings

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(controller: SessionControllerDep):
    """
    Health check endpoint.

    Returns:
        System health status including storage. A store that fell back to
        memory reports "degraded"; the service keeps working.
    """
    storage_health = await controller.store.health()

    overall_status = "healthy" if storage_health["status"] != "unhealthy" else "unhealthy"

    return {
        "status": overall_status,
        "version": __version__,
        "debug": settings.debug,
        "components": {
            "storage": storage_health,
            "session": {"phase": controller.state.phase.value, "busy": controller.busy},
        },
    }


@router.get("/health/live")
async def liveness():
    """
    Kubernetes-style liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(controller: SessionControllerDep):
    """
    Kubernetes-style readiness probe.

    Returns 200 if the application is ready to serve requests.
    """
    storage_health = await controller.store.health()

    if storage_health["status"] == "unhealthy":
        log.warning("readiness_check_failed", storage=storage_health)
        raise HTTPException(status_code=503, detail="Storage not ready")

    return {"status": "ready"}
