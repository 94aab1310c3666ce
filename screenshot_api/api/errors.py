"""
API Errors
==========

Error type raised by route handlers and the handlers that render errors as
``{"success": false, "error": {...}}`` JSON.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from screenshot_api.config.logging import get_logger
from screenshot_api.models.schemas import ErrorInfo, ErrorResponse

logger = get_logger(__name__)


class ScreenshotAPIError(Exception):
    """Error surfaced to API clients with a status code and machine code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        self.headers = headers
        super().__init__(message)


def _error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorInfo(code=code, message=message, details=details),
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


async def screenshot_api_error_handler(request: Request, exc: ScreenshotAPIError) -> JSONResponse:
    """Render a ScreenshotAPIError."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "API error",
        status_code=exc.status_code,
        error_code=exc.code,
        detail=exc.message,
        request_id=getattr(request.state, "request_id", None),
    )
    return _error_response(
        request, exc.status_code, exc.code, exc.message, exc.details, exc.headers
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (unknown routes, wrong methods) in the same shape."""
    codes = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}
    return _error_response(
        request,
        exc.status_code,
        codes.get(exc.status_code, str(exc.status_code)),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """General exception handler for unexpected errors."""
    settings = request.app.state.settings
    logger.error(
        "Unhandled exception",
        exception=str(exc),
        request_id=getattr(request.state, "request_id", None),
        exc_info=True,
    )
    return _error_response(
        request,
        500,
        "INTERNAL_ERROR",
        "An internal server error occurred",
        details=str(exc) if settings.debug else None,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ScreenshotAPIError, screenshot_api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
