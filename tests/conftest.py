"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides test settings, fake browser and webhook doubles, and a wired
screenshot service.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Generator, List, Optional

# Configure the environment before the application (and its logging) is imported
_STORAGE_ROOT = tempfile.mkdtemp(prefix="screenshot_api_test_")
os.environ.setdefault("SCREENSHOT_API_ENVIRONMENT", "testing")
os.environ.setdefault("SCREENSHOT_API_STORAGE_PATH", _STORAGE_ROOT)
os.environ.setdefault("SCREENSHOT_API_LOG_LEVEL", "DEBUG")

import pytest
import pytest_asyncio
from pydantic_settings import SettingsConfigDict

from screenshot_api.config.settings import Settings
from screenshot_api.core.callbacks.sender import CallbackSender
from screenshot_api.core.ratelimit.limiter import RateLimiter
from screenshot_api.core.service import ScreenshotService

from tests.utils.mocks import FakeClock, FakeScreenshotGenerator, FakeSession


class TestSettings(Settings):
    """Test-specific settings."""

    __test__ = False

    environment: str = "testing"
    debug: bool = True
    queue_concurrency: int = 2
    queue_retry_delays: Optional[List[float]] = [0.01]
    callback_retry_delays: List[float] = [0.0]
    public_base_url: str = "http://testserver/static"
    log_level: str = "DEBUG"

    model_config = SettingsConfigDict(env_file=".env.test", env_prefix="SCREENSHOT_API_")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test files."""
    temp_path = Path(tempfile.mkdtemp(prefix="screenshot_api_case_"))
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_settings(temp_dir: Path) -> TestSettings:
    """Settings writing screenshots to a per-test directory."""
    return TestSettings(storage_path=temp_dir)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_generator() -> FakeScreenshotGenerator:
    return FakeScreenshotGenerator()


@pytest.fixture
def webhook_session() -> FakeSession:
    """Webhook endpoint accepting every callback."""
    return FakeSession([200])


@pytest.fixture
def callback_sender(webhook_session: FakeSession) -> CallbackSender:
    return CallbackSender(retry_delays=[0.0], session=webhook_session)


@pytest.fixture
def service(
    test_settings: TestSettings,
    fake_generator: FakeScreenshotGenerator,
    callback_sender: CallbackSender,
) -> ScreenshotService:
    """Screenshot service with a fake browser and webhook endpoint, not started."""
    return ScreenshotService(
        test_settings,
        rate_limiter=RateLimiter(
            max_requests=test_settings.rate_limit_max_requests,
            window_seconds=test_settings.rate_limit_window_seconds,
        ),
        callback_sender=callback_sender,
        generator=fake_generator,
    )


@pytest_asyncio.fixture
async def running_service(service: ScreenshotService) -> AsyncGenerator[ScreenshotService, None]:
    """Started screenshot service, shut down after the test."""
    await service.start()
    yield service
    await service.shutdown(timeout=1.0)


def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    shutil.rmtree(_STORAGE_ROOT, ignore_errors=True)
