"""
FastAPI Application
==================

Application factory wiring the screenshot service into the REST API.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
import uvicorn

from screenshot_api.api.errors import register_exception_handlers
from screenshot_api.api.routes.callback import router as callback_router
from screenshot_api.api.routes.health import router as health_router
from screenshot_api.api.routes.screenshot import router as screenshot_router
from screenshot_api.config.logging import get_logger
from screenshot_api.config.settings import Settings, get_settings
from screenshot_api.core.service import ScreenshotService

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None, service: Optional[ScreenshotService] = None
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to use, the global settings by default
        service: Pre-built service, one is created from ``settings`` if omitted

    Returns:
        FastAPI application whose lifespan starts and shuts down the service
    """
    settings = settings or get_settings()
    service = service or ScreenshotService(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Starting FastAPI application")
        try:
            await service.start()
        except Exception as e:
            logger.error("Failed to start screenshot service", error=str(e))
            raise RuntimeError(f"Screenshot service startup failed: {e}")

        try:
            yield
        finally:
            logger.info("Shutting down FastAPI application")
            await service.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="Capture web pages as images and deliver the result by webhook",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore
        """Add request ID to all requests."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)

    app.include_router(screenshot_router)
    app.include_router(health_router)
    app.include_router(callback_router)
    app.mount("/static", StaticFiles(directory=settings.storage_path), name="static")

    @app.get("/", tags=["General"])
    async def root() -> dict[str, Any]:
        """Basic API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs_url": "/docs" if settings.debug else None,
            "health_check": "/api/health",
            "endpoints": {
                "create_screenshot": "POST /api/screenshot",
                "screenshot_status": "GET /api/screenshot/{jobId}",
                "callback_dummy": "POST /api/callback-dummy",
            },
        }

    return app


def run_server(settings: Optional[Settings] = None) -> None:
    """Run the API server with uvicorn."""
    settings = settings or get_settings()
    uvicorn.run(
        "screenshot_api.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug and settings.environment == "development",
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run_server()
