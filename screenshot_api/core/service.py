"""
Screenshot Service
==================

Top-level wiring of the screenshot pipeline.

One ``ScreenshotService`` owns the job queue, job store, janitor, rate
limiter, callback sender, browser and storage uploader, and drives their
start/shutdown lifecycle. The API layer receives it by injection.
"""

import asyncio
import uuid
from typing import Callable, Optional, Set

from screenshot_api.config.logging import get_logger
from screenshot_api.config.settings import Settings, get_settings
from screenshot_api.core.callbacks.sender import CallbackFailed, CallbackSender
from screenshot_api.core.queue.events import JobCompleted, JobEvent
from screenshot_api.core.queue.janitor import Janitor
from screenshot_api.core.queue.job_queue import JobQueue
from screenshot_api.core.queue.job_store import JobStore
from screenshot_api.core.queue.retry import RetryPolicy
from screenshot_api.core.ratelimit.limiter import RateLimiter
from screenshot_api.core.rendering.image_optimizer import get_image_metadata, optimize_image
from screenshot_api.core.rendering.screenshot_generator import ScreenshotGenerator, get_error_code
from screenshot_api.core.storage.uploader import LocalStorageUploader
from screenshot_api.models.schemas import (
    CallbackPayload,
    ErrorInfo,
    Job,
    ScreenshotInfo,
    ScreenshotJobData,
    ScreenshotRequest,
    ScreenshotResult,
)

logger = get_logger(__name__)


class ScreenshotService:
    """Screenshot job pipeline."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        queue: Optional[JobQueue] = None,
        rate_limiter: Optional[RateLimiter] = None,
        callback_sender: Optional[CallbackSender] = None,
        generator: Optional[ScreenshotGenerator] = None,
        uploader: Optional[LocalStorageUploader] = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings

        self.queue = queue or JobQueue(
            "screenshot-jobs",
            store=JobStore(),
            max_attempts=s.queue_max_attempts,
            retry_policy=RetryPolicy(base=s.queue_retry_base, delays=s.queue_retry_delays),
        )
        self.janitor = Janitor(
            self.queue.store, retention=s.job_retention_seconds, interval=s.job_cleanup_interval
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=s.rate_limit_max_requests,
            window_seconds=s.rate_limit_window_seconds,
            cleanup_interval=s.rate_limit_cleanup_interval,
        )
        self.callback_sender = callback_sender or CallbackSender(
            max_retries=s.callback_max_retries,
            retry_delays=s.callback_retry_delays,
            timeout=s.callback_timeout,
            user_agent=s.callback_user_agent,
        )
        self.generator = generator or ScreenshotGenerator(s)
        self.uploader = uploader or LocalStorageUploader(s.storage_path, s.public_base_url)

        self._callback_tasks: Set[asyncio.Task] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.logger = logger.bind(component="screenshot_service")

    async def start(self) -> None:
        """Launch the browser and start processing jobs. Repeated calls are no-ops."""
        if self._unsubscribe is not None:
            self.logger.warning("Screenshot service already started")
            return

        self.logger.info("Starting screenshot service")
        await self.generator.initialize()

        self._unsubscribe = self.queue.subscribe(self._on_job_event)
        self.queue.set_processor(self.settings.queue_concurrency, self.process_job)
        self.janitor.start()
        self.rate_limiter.start()

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop admitting jobs, drain active attempts and release resources."""
        self.logger.info("Shutting down screenshot service")

        await self.queue.shutdown(timeout)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        await self.janitor.stop()
        await self.rate_limiter.stop()

        if self._callback_tasks:
            _, pending = await asyncio.wait(set(self._callback_tasks), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                self.logger.warning("Abandoned pending callbacks", count=len(pending))
                await asyncio.gather(*pending, return_exceptions=True)

        await self.callback_sender.close()
        await self.generator.close()
        self.logger.info("Screenshot service stopped")

    async def submit(self, request: ScreenshotRequest, ip_address: Optional[str] = None) -> Job:
        """Create a screenshot job for a validated request."""
        job_id = str(uuid.uuid4())
        data = ScreenshotJobData(
            id=job_id,
            target_url=request.target_url,
            callback_url=request.callback_url,
            options=request.options,
            ip_address=ip_address,
        )
        return await self.queue.submit(data, job_id=job_id)

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.queue.get_job(job_id)

    async def process_job(self, job: Job) -> ScreenshotResult:
        """
        Capture, encode and store one screenshot.

        Errors propagate to the queue, which owns retries.
        """
        data: ScreenshotJobData = job.input
        options = data.options
        log = self.logger.bind(job_id=job.id, target_url=data.target_url)
        log.info("Processing screenshot job", attempt=job.attempts)

        self.queue.update_progress(job.id, 10)
        raw = await self.generator.capture(data.target_url, options)
        self.queue.update_progress(job.id, 40)

        image_format = self.settings.default_format
        quality = self.settings.default_quality
        if options is not None:
            image_format = options.format.value if options.format else image_format
            quality = options.quality or quality
        encoded, image_format = await asyncio.to_thread(optimize_image, raw, image_format, quality)
        self.queue.update_progress(job.id, 60)

        metadata = get_image_metadata(encoded)
        self.queue.update_progress(job.id, 70)

        image_url = await self.uploader.upload(job.id, encoded, image_format)
        self.queue.update_progress(job.id, 90)

        log.info("Screenshot job finished", size=metadata.size, url=image_url)
        return ScreenshotResult(
            image_url=image_url,
            format=image_format,
            width=metadata.width,
            height=metadata.height,
            size=metadata.size,
        )

    @staticmethod
    def build_callback_payload(event: JobEvent) -> CallbackPayload:
        """Webhook body for a terminal job event."""
        job = event.job
        data: ScreenshotJobData = job.input

        if isinstance(event, JobCompleted):
            result: ScreenshotResult = event.result
            return CallbackPayload(
                job_id=job.id,
                status="completed",
                target_url=data.target_url,
                screenshot=ScreenshotInfo(
                    url=result.image_url,
                    format=result.format,
                    width=result.width,
                    height=result.height,
                    size=result.size,
                ),
                completed_at=job.completed_at,
            )

        return CallbackPayload(
            job_id=job.id,
            status="failed",
            target_url=data.target_url,
            error=ErrorInfo(
                code=get_error_code(event.error),
                message=job.last_error or "Unknown error",
            ),
            completed_at=job.completed_at,
        )

    def _on_job_event(self, event: JobEvent) -> None:
        data: ScreenshotJobData = event.job.input
        payload = self.build_callback_payload(event)

        task = asyncio.get_running_loop().create_task(
            self._deliver_callback(data.callback_url, payload), name=f"callback:{event.job_id}"
        )
        self._callback_tasks.add(task)
        task.add_done_callback(self._callback_tasks.discard)

    async def _deliver_callback(self, url: str, payload: CallbackPayload) -> bool:
        # The job is already terminal; delivery outcome never changes it
        try:
            delivered = await self.callback_sender.send(url, payload)
        except CallbackFailed as e:
            self.logger.error(
                "Callback rejected by endpoint", job_id=payload.job_id, url=url, status=e.status
            )
            return False
        except Exception as e:
            self.logger.error(
                "Callback delivery failed",
                job_id=payload.job_id,
                url=url,
                error=str(e),
                exc_info=True,
            )
            return False

        if not delivered:
            self.logger.error("Callback delivery abandoned", job_id=payload.job_id, url=url)
        return delivered
