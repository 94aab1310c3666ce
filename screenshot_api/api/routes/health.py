"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from screenshot_api.api.dependencies import get_service
from screenshot_api.core.service import ScreenshotService
from screenshot_api.models.schemas import HealthStatus

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(service: ScreenshotService = Depends(get_service)) -> JSONResponse:
    """Service health with queue statistics."""
    queue = service.queue
    queue_up = not queue.closed and not queue.paused

    health = HealthStatus(
        status="healthy" if queue_up else "unhealthy",
        version=service.settings.app_version,
        services={
            "queue": {
                "status": "up" if queue_up else "down",
                "stats": queue.stats().model_dump(),
            },
            "rateLimiter": {
                "status": "up",
                "trackedKeys": len(service.rate_limiter),
            },
        },
    )

    return JSONResponse(
        status_code=200 if queue_up else 503,
        content=health.model_dump(mode="json", by_alias=True),
    )
