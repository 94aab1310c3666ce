"""
Screenshot Routes
=================

Job submission and status polling.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from screenshot_api.api.dependencies import get_client_ip, get_service
from screenshot_api.api.errors import ScreenshotAPIError
from screenshot_api.config.logging import get_logger
from screenshot_api.core.queue.job_queue import QueueClosedError
from screenshot_api.core.ratelimit.limiter import RateLimiter
from screenshot_api.core.service import ScreenshotService
from screenshot_api.models.schemas import (
    ErrorInfo,
    Job,
    JobStatus,
    JobStatusResponse,
    ScreenshotInfo,
    ScreenshotJobData,
    ScreenshotRequest,
    ScreenshotResponse,
    ScreenshotResult,
)

router = APIRouter(prefix="/api", tags=["Screenshots"])
logger = get_logger(__name__)

STATUS_MAP = {
    JobStatus.PENDING: "pending",
    JobStatus.ACTIVE: "processing",
    JobStatus.COMPLETED: "completed",
    JobStatus.FAILED: "failed",
}


def rate_limit_allows(limiter: RateLimiter, key: str) -> bool:
    """Consume one request for ``key``; admits the request if the limiter fails."""
    try:
        return limiter.check_and_consume(key)
    except Exception as e:
        logger.warning("Rate limiter unavailable, allowing request", key=key, error=str(e))
        return True


def job_status_response(job: Job) -> JobStatusResponse:
    """Public view of a screenshot job."""
    data: ScreenshotJobData = job.input
    status = STATUS_MAP[job.status]

    response = JobStatusResponse(
        job_id=job.id,
        status=status,
        target_url=data.target_url,
        progress=job.progress,
        attempts=job.attempts,
        created_at=job.created_at,
        started_at=job.started_at,
        completed_at=job.completed_at,
    )

    if job.status == JobStatus.COMPLETED and job.result is not None:
        result: ScreenshotResult = job.result
        response.screenshot = ScreenshotInfo(
            url=result.image_url,
            format=result.format,
            width=result.width,
            height=result.height,
            size=result.size,
        )

    if job.status == JobStatus.FAILED and job.last_error:
        response.error = ErrorInfo(
            code=job.error_code or "SCREENSHOT_FAILED", message=job.last_error
        )

    return response


@router.post(
    "/screenshot",
    status_code=202,
    response_model=ScreenshotResponse,
    response_model_exclude_none=True,
)
async def create_screenshot(
    request: Request, service: ScreenshotService = Depends(get_service)
) -> ScreenshotResponse:
    """
    Submit a screenshot job.

    The job runs in the background; its outcome is posted to ``callbackUrl``
    and can be polled at ``statusUrl``.
    """
    ip = get_client_ip(request)

    if not rate_limit_allows(service.rate_limiter, ip):
        info = service.rate_limiter.info(ip)
        raise ScreenshotAPIError(
            429,
            "RATE_LIMIT_EXCEEDED",
            f"Too many requests. Please try again in {info.reset_in} seconds.",
            details=info.model_dump(by_alias=True),
            headers={
                "X-RateLimit-Limit": str(info.limit),
                "X-RateLimit-Remaining": str(info.remaining),
                "X-RateLimit-Reset": str(info.reset_in),
            },
        )

    try:
        body = await request.json()
    except ValueError:
        raise ScreenshotAPIError(400, "VALIDATION_ERROR", "Request body must be valid JSON")

    try:
        screenshot_request = ScreenshotRequest.model_validate(body)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        message = errors[0]["msg"].removeprefix("Value error, ")
        raise ScreenshotAPIError(400, "VALIDATION_ERROR", message, details=errors)

    try:
        job = await service.submit(screenshot_request, ip_address=ip)
    except QueueClosedError:
        raise ScreenshotAPIError(503, "SERVICE_UNAVAILABLE", "Service is shutting down")

    logger.info("Screenshot job created", job_id=job.id, target_url=screenshot_request.target_url)

    return ScreenshotResponse(
        success=True,
        job_id=job.id,
        status="pending",
        message="Screenshot job created successfully",
        estimated_time="5-10 seconds",
        status_url=f"/api/screenshot/{job.id}",
    )


@router.get(
    "/screenshot/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
)
async def get_screenshot_status(
    job_id: str, service: ScreenshotService = Depends(get_service)
) -> JobStatusResponse:
    """Current status of a screenshot job."""
    job = service.get_job(job_id)
    if job is None:
        raise ScreenshotAPIError(404, "JOB_NOT_FOUND", f"Job with ID {job_id} not found")
    return job_status_response(job)
