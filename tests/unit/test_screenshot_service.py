"""
Unit Tests for Screenshot Service
=================================

Tests for the wired pipeline: processing, retries and webhook callbacks,
using a fake browser and a fake webhook endpoint.
"""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from screenshot_api.core.callbacks import CallbackSender
from screenshot_api.core.queue import JobCompleted, JobFailed
from screenshot_api.core.rendering.screenshot_generator import ScreenshotError
from screenshot_api.core.service import ScreenshotService
from screenshot_api.models.schemas import (
    CallbackPayload,
    ImageFormat,
    Job,
    JobStatus,
    ScreenshotJobData,
    ScreenshotOptions,
    ScreenshotRequest,
    ScreenshotResult,
)

from tests.utils.helpers import wait_for_condition
from tests.utils.mocks import AlwaysFailingGenerator, FakeScreenshotGenerator, FakeSession

WEBHOOK = "https://hooks.example.com/screenshot"


def screenshot_request(**options) -> ScreenshotRequest:
    return ScreenshotRequest(
        target_url="https://example.com",
        callback_url=WEBHOOK,
        options=ScreenshotOptions(**options) if options else None,
    )


class TestLifecycle:
    """Test cases for start and shutdown."""

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, service, fake_generator, webhook_session):
        await service.start()
        assert fake_generator.initialized
        assert not service.queue.paused

        await service.shutdown(timeout=1.0)

        assert service.queue.closed
        assert fake_generator.closed
        assert webhook_session.closed is False

    @pytest.mark.asyncio
    async def test_start_twice_subscribes_once(self, service, fake_generator, webhook_session):
        await service.start()
        await service.start()
        try:
            job = await service.submit(screenshot_request())
            await service.queue.wait_for(job.id, timeout=2.0)
            await wait_for_condition(lambda: len(webhook_session.calls) >= 1)
            await asyncio.sleep(0.02)
        finally:
            await service.shutdown(timeout=1.0)

        assert len(webhook_session.calls) == 1
        assert len(fake_generator.captured) == 1

    def test_builds_components_from_settings(self, test_settings):
        service = ScreenshotService(test_settings, generator=FakeScreenshotGenerator())

        assert service.queue.name == "screenshot-jobs"
        assert service.queue.max_attempts == test_settings.queue_max_attempts
        assert service.rate_limiter.max_requests == test_settings.rate_limit_max_requests
        assert service.callback_sender.user_agent == "Screenshot-API/1.0"
        assert service.uploader.root == Path(test_settings.storage_path)


class TestProcessing:
    """Test cases for the screenshot job pipeline."""

    @pytest.mark.asyncio
    async def test_job_completes(self, running_service, test_settings):
        job = await running_service.submit(screenshot_request(), ip_address="10.0.0.1")

        assert job.status == JobStatus.PENDING
        assert isinstance(job.input, ScreenshotJobData)
        assert job.input.ip_address == "10.0.0.1"

        finished = await running_service.queue.wait_for(job.id, timeout=2.0)

        assert finished.status == JobStatus.COMPLETED
        assert finished.attempts == 1
        result: ScreenshotResult = finished.result
        assert result.format == "png"
        assert (result.width, result.height) == (64, 48)
        assert result.image_url == f"http://testserver/static/screenshots/{job.id}.png"
        stored = Path(test_settings.storage_path) / "screenshots" / f"{job.id}.png"
        assert stored.stat().st_size == result.size

    @pytest.mark.asyncio
    async def test_requested_format(self, running_service):
        job = await running_service.submit(screenshot_request(format=ImageFormat.JPEG, quality=50))

        finished = await running_service.queue.wait_for(job.id, timeout=2.0)

        assert finished.result.format == "jpeg"
        assert finished.result.image_url.endswith(".jpeg")

    @pytest.mark.asyncio
    async def test_progress_reported(self, service):
        progress = []

        async def capture(url, options=None):
            progress.append(service.queue.get_job(job.id).progress)
            return FakeScreenshotGenerator().png

        service.generator.capture = capture
        await service.start()
        try:
            job = await service.submit(screenshot_request())
            finished = await service.queue.wait_for(job.id, timeout=2.0)
        finally:
            await service.shutdown(timeout=1.0)

        assert progress == [10]
        assert finished.progress == 100

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, test_settings, callback_sender):
        generator = FakeScreenshotGenerator(
            errors=[ScreenshotError("TIMEOUT", "Page loading timeout after 30 seconds")]
        )
        service = ScreenshotService(
            test_settings, callback_sender=callback_sender, generator=generator
        )
        await service.start()
        try:
            job = await service.submit(screenshot_request())
            finished = await service.queue.wait_for(job.id, timeout=2.0)
        finally:
            await service.shutdown(timeout=1.0)

        assert finished.status == JobStatus.COMPLETED
        assert finished.attempts == 2
        assert len(generator.captured) == 2


class TestCallbacks:
    """Test cases for webhook delivery of terminal outcomes."""

    @pytest.mark.asyncio
    async def test_completed_callback(self, running_service, webhook_session):
        job = await running_service.submit(screenshot_request())
        await running_service.queue.wait_for(job.id, timeout=2.0)

        await wait_for_condition(lambda: len(webhook_session.calls) == 1)
        call = webhook_session.calls[0]
        assert call["url"] == WEBHOOK

        body = json.loads(call["data"])
        assert body["jobId"] == job.id
        assert body["status"] == "completed"
        assert body["targetUrl"] == "https://example.com"
        assert body["screenshot"]["url"].endswith(f"/screenshots/{job.id}.png")
        assert body["screenshot"]["width"] == 64

    @pytest.mark.asyncio
    async def test_failed_callback_sent_once(self, test_settings, callback_sender, webhook_session):
        generator = AlwaysFailingGenerator(
            ScreenshotError("NAVIGATION_FAILED", "Cannot navigate to URL")
        )
        service = ScreenshotService(
            test_settings, callback_sender=callback_sender, generator=generator
        )
        await service.start()
        try:
            job = await service.submit(screenshot_request())
            finished = await service.queue.wait_for(job.id, timeout=2.0)
            await wait_for_condition(lambda: len(webhook_session.calls) == 1)
        finally:
            await service.shutdown(timeout=1.0)

        assert finished.status == JobStatus.FAILED
        assert finished.attempts == test_settings.queue_max_attempts
        assert finished.error_code == "NAVIGATION_FAILED"
        assert len(webhook_session.calls) == 1

        body = json.loads(webhook_session.calls[0]["data"])
        assert body["status"] == "failed"
        assert body["error"]["code"] == "NAVIGATION_FAILED"
        assert body["error"]["message"] == "NAVIGATION_FAILED: Cannot navigate to URL"

    @pytest.mark.asyncio
    async def test_unexpected_sender_error_leaves_job_completed(self, test_settings):
        sender = CallbackSender(retry_delays=[0.0], session=FakeSession([200]))
        sender.send = AsyncMock(side_effect=RuntimeError("encoder bug"))
        service = ScreenshotService(
            test_settings, callback_sender=sender, generator=FakeScreenshotGenerator()
        )
        await service.start()
        try:
            job = await service.submit(screenshot_request())
            await service.queue.wait_for(job.id, timeout=2.0)
            await wait_for_condition(lambda: sender.send.await_count == 1)
        finally:
            await service.shutdown(timeout=1.0)

        assert service.get_job(job.id).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unexpected_sender_error_is_reported_undelivered(self, service):
        service.callback_sender.send = AsyncMock(side_effect=RuntimeError("encoder bug"))
        payload = CallbackPayload(
            job_id="job-1", status="completed", target_url="https://example.com"
        )

        assert await service._deliver_callback(WEBHOOK, payload) is False
        service.callback_sender.send.assert_awaited_once_with(WEBHOOK, payload)

    @pytest.mark.asyncio
    async def test_rejected_callback_leaves_job_completed(self, test_settings):
        session = FakeSession([404])
        service = ScreenshotService(
            test_settings,
            callback_sender=CallbackSender(retry_delays=[0.0], session=session),
            generator=FakeScreenshotGenerator(),
        )
        await service.start()
        try:
            job = await service.submit(screenshot_request())
            await service.queue.wait_for(job.id, timeout=2.0)
            await wait_for_condition(lambda: len(session.calls) == 1)
        finally:
            await service.shutdown(timeout=1.0)

        assert service.get_job(job.id).status == JobStatus.COMPLETED


class TestCallbackPayload:
    """Test cases for build_callback_payload."""

    def make_job(self, status: JobStatus, **fields) -> Job:
        data = ScreenshotJobData(id="job-1", target_url="https://example.com", callback_url=WEBHOOK)
        return Job(id="job-1", input=data, status=status, **fields)

    def test_completed(self):
        result = ScreenshotResult(
            image_url="http://x/screenshots/job-1.png", format="png", width=10, height=20, size=30
        )
        event = JobCompleted(job=self.make_job(JobStatus.COMPLETED), result=result)

        payload = ScreenshotService.build_callback_payload(event)

        assert payload.status == "completed"
        assert payload.screenshot.url == result.image_url
        assert payload.error is None

    def test_failed_uses_error_code(self):
        error = ScreenshotError("TIMEOUT", "Page loading timeout after 30 seconds")
        job = self.make_job(JobStatus.FAILED, last_error=str(error))

        payload = ScreenshotService.build_callback_payload(JobFailed(job=job, error=error))

        assert payload.status == "failed"
        assert payload.error.code == "TIMEOUT"
        assert payload.error.message == "TIMEOUT: Page loading timeout after 30 seconds"
        assert payload.screenshot is None

    def test_failed_without_code(self):
        job = self.make_job(JobStatus.FAILED, last_error="boom")

        payload = ScreenshotService.build_callback_payload(
            JobFailed(job=job, error=RuntimeError("boom"))
        )

        assert payload.error.code == "SCREENSHOT_FAILED"
