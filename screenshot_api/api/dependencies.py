"""
API Dependencies
================

Request-scoped accessors for the service owned by the application.
"""

from fastapi import Request

from screenshot_api.core.service import ScreenshotService


def get_service(request: Request) -> ScreenshotService:
    """Dependency returning the application's screenshot service."""
    return request.app.state.service


def get_client_ip(request: Request) -> str:
    """Client identity used for rate limiting."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
