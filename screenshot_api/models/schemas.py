"""
Pydantic Models and Schemas
===========================

Core data models for jobs, screenshot requests, webhook callbacks and
API responses. Public JSON uses camelCase field names.
"""

from typing import Optional, Dict, Any, Literal
from datetime import datetime, timezone
from enum import Enum
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# Enums
class JobStatus(str, Enum):
    """Job lifecycle status."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class ImageFormat(str, Enum):
    """Supported output image formats."""
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Job Models
class Job(BaseModel):
    """
    One unit of asynchronous work tracked by the job queue.

    The queue owns every transient job exclusively; callers only ever see
    snapshot copies returned by ``JobQueue.get_job``.
    """
    id: str = Field(..., description="Job identifier")
    input: Any = Field(None, description="Processor-specific payload")
    status: JobStatus = Field(JobStatus.PENDING, description="Lifecycle status")
    progress: int = Field(0, ge=0, le=100, description="Progress percentage")
    result: Any = Field(None, description="Processor result when completed")
    last_error: Optional[str] = Field(None, description="Message of the last failed attempt")
    error_code: Optional[str] = Field(None, description="Machine code of the last error")
    attempts: int = Field(0, ge=0, description="Execution attempts started")
    max_attempts: int = Field(3, gt=0, description="Attempt cap")
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class QueueStats(BaseModel):
    """Job queue counters."""
    waiting: int = Field(0, ge=0, description="Jobs in the pending list")
    active: int = Field(0, ge=0, description="Attempts in flight")
    completed: int = Field(0, ge=0, description="Completed jobs still retained")
    failed: int = Field(0, ge=0, description="Failed jobs still retained")
    delayed: int = Field(0, ge=0, description="Jobs waiting out a retry backoff")
    total: int = Field(0, ge=0, description="Waiting plus active")


# Screenshot Request Models
class Viewport(CamelModel):
    """Browser viewport size."""
    width: Optional[int] = Field(None, ge=320, le=3840)
    height: Optional[int] = Field(None, ge=240, le=2160)


class ScreenshotOptions(CamelModel):
    """Options for capturing a screenshot."""
    viewport: Optional[Viewport] = None
    full_page: Optional[bool] = None
    format: Optional[ImageFormat] = None
    quality: Optional[int] = Field(None, ge=1, le=100)


def _validate_http_url(value: str, label: str) -> str:
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https"):
        raise ValueError(f"{label} must start with http:// or https://")
    if not parsed.netloc:
        raise ValueError(f"Invalid {label.lower()} format")
    return value


class ScreenshotRequest(CamelModel):
    """Request model for screenshot job submission."""
    target_url: str = Field(..., max_length=2048, description="Page to capture")
    callback_url: str = Field(..., max_length=2048, description="Webhook for the outcome")
    options: Optional[ScreenshotOptions] = None

    @field_validator("target_url")
    @classmethod
    def validate_target_url(cls, v: str) -> str:
        return _validate_http_url(v, "URL")

    @field_validator("callback_url")
    @classmethod
    def validate_callback_url(cls, v: str) -> str:
        return _validate_http_url(v, "Callback URL")


class ScreenshotJobData(CamelModel):
    """Input payload carried by a screenshot job."""
    id: str
    target_url: str
    callback_url: str
    options: Optional[ScreenshotOptions] = None
    ip_address: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class ScreenshotResult(CamelModel):
    """Result of a successful screenshot job."""
    image_url: str
    format: str
    width: int
    height: int
    size: int


class ImageMetadata(BaseModel):
    """Dimensions and size of an encoded image."""
    width: int = 0
    height: int = 0
    size: int = 0
    format: str = "unknown"


# Callback Models
class ScreenshotInfo(CamelModel):
    """Screenshot location and properties."""
    url: str
    format: str
    width: int
    height: int
    size: int


class ErrorInfo(CamelModel):
    """Error code and message."""
    code: str
    message: str
    details: Optional[Any] = None


class CallbackPayload(CamelModel):
    """Webhook body describing a job's terminal outcome."""
    job_id: str
    status: Literal["completed", "failed"]
    target_url: str
    screenshot: Optional[ScreenshotInfo] = None
    error: Optional[ErrorInfo] = None
    completed_at: datetime = Field(default_factory=utcnow)


# API Response Models
class ScreenshotResponse(CamelModel):
    """Response model for job submission."""
    success: bool
    job_id: Optional[str] = None
    status: Optional[Literal["pending", "processing", "completed", "failed"]] = None
    message: Optional[str] = None
    estimated_time: Optional[str] = None
    status_url: Optional[str] = None
    error: Optional[ErrorInfo] = None


class JobStatusResponse(CamelModel):
    """Response model for job status queries."""
    job_id: str
    status: Literal["pending", "processing", "completed", "failed"]
    target_url: str
    progress: int = 0
    attempts: int = 0
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    screenshot: Optional[ScreenshotInfo] = None
    error: Optional[ErrorInfo] = None


class RateLimitInfo(CamelModel):
    """Rate limit state for one client key."""
    count: int
    limit: int
    remaining: int
    reset_in: int


class HealthStatus(CamelModel):
    """Health check status."""
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime = Field(default_factory=utcnow)
    version: str
    services: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class ErrorResponse(CamelModel):
    """Standard error response model."""
    success: bool = False
    error: ErrorInfo
    request_id: Optional[str] = None


class CallbackReceipt(CamelModel):
    """Acknowledgement returned by the dummy callback endpoint."""
    success: bool = True
    message: str = "Callback received"
