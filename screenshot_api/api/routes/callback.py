"""
Dummy Callback Route
====================

Webhook receiver that accepts callbacks and only logs them.
Useful as a ``callbackUrl`` when trying the API by hand.
"""

from fastapi import APIRouter, Request

from screenshot_api.api.errors import ScreenshotAPIError
from screenshot_api.config.logging import get_logger
from screenshot_api.models.schemas import CallbackReceipt

router = APIRouter(prefix="/api", tags=["Callbacks"])
logger = get_logger(__name__)


@router.post("/callback-dummy", response_model=CallbackReceipt)
async def receive_callback(request: Request) -> CallbackReceipt:
    """Accept a callback body and log it."""
    try:
        body = await request.json()
    except ValueError:
        raise ScreenshotAPIError(400, "INVALID_CALLBACK", "Invalid callback payload")

    if not isinstance(body, dict):
        raise ScreenshotAPIError(400, "INVALID_CALLBACK", "Invalid callback payload")

    logger.info("Dummy callback received", job_id=body.get("jobId"), status=body.get("status"))
    return CallbackReceipt()
