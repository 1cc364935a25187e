"""
Health check endpoint handler.
"""

from fastapi import APIRouter, Request

from orvale_ops.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring.
    Reports whether the background schedulers are running and when they fire next.
    """
    health_status = {
        "status": "healthy",
        "version": settings.api.app_version,
        "background_services": None,
    }

    services = getattr(request.app.state, "background_services", None)
    if services is None:
        health_status["status"] = "degraded"
        return health_status

    health_status["background_services"] = services.get_status()
    if settings.scheduler.enabled and not services.is_running:
        health_status["status"] = "degraded"

    return health_status
