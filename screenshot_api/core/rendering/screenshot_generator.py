"""
Screenshot Generator
====================

Playwright-based web page capture.
Keeps one browser alive for reuse and opens a fresh context per capture.
"""

from typing import Any, Dict, Optional

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from screenshot_api.config.logging import get_logger
from screenshot_api.config.settings import Settings, get_settings
from screenshot_api.models.schemas import ScreenshotOptions

logger = get_logger(__name__)

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class ScreenshotError(Exception):
    """Exception raised when a page cannot be captured."""

    def __init__(self, code: str, message: str):
        self.code = code
        super().__init__(f"{code}: {message}")


def get_error_code(error: BaseException) -> str:
    """Machine-readable code for a processing error."""
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code

    message = str(error)
    if "TIMEOUT" in message:
        return "TIMEOUT"
    if "NAVIGATION_FAILED" in message:
        return "NAVIGATION_FAILED"
    if "upload" in message.lower():
        return "UPLOAD_FAILED"
    return "SCREENSHOT_FAILED"


class ScreenshotGenerator:
    """Captures web pages as PNG bytes."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="screenshot_generator")
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @property
    def initialized(self) -> bool:
        return self._browser is not None

    async def initialize(self) -> None:
        """Launch the shared browser."""
        if self._browser is not None:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.settings.playwright_headless, args=BROWSER_ARGS
            )
            self.logger.info("Browser launched")
        except Exception as e:
            self.logger.error("Failed to launch browser", error=str(e))
            await self.close()
            raise ScreenshotError("SCREENSHOT_FAILED", f"Browser launch failed: {e}")

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        self.logger.info("Browser closed")

    async def capture(self, url: str, options: Optional[ScreenshotOptions] = None) -> bytes:
        """
        Capture a web page.

        Args:
            url: Page to navigate to
            options: Viewport and full-page options

        Returns:
            PNG bytes

        Raises:
            ScreenshotError: On navigation timeout, navigation failure or
                any other browser error
        """
        if self._browser is None:
            raise ScreenshotError("SCREENSHOT_FAILED", "Browser not initialized")

        options = options or ScreenshotOptions()
        context = await self._create_browser_context(self._browser, options)
        try:
            page = await context.new_page()
            page.set_default_navigation_timeout(self.settings.navigation_timeout)

            self.logger.info("Navigating to page", url=url)
            await page.goto(url, wait_until="networkidle")

            # Dynamic content
            await page.wait_for_timeout(self.settings.wait_after_load)

            full_page = (
                options.full_page if options.full_page is not None else self.settings.default_full_page
            )
            screenshot = await page.screenshot(full_page=full_page, type="png")

            self.logger.info("Page captured", url=url, size=len(screenshot), full_page=full_page)
            return screenshot

        except PlaywrightTimeoutError:
            seconds = self.settings.navigation_timeout // 1000
            raise ScreenshotError("TIMEOUT", f"Page loading timeout after {seconds} seconds")
        except PlaywrightError as e:
            if "net::ERR" in str(e):
                raise ScreenshotError("NAVIGATION_FAILED", "Cannot navigate to URL")
            raise ScreenshotError("SCREENSHOT_FAILED", str(e))
        finally:
            await context.close()

    async def _create_browser_context(
        self, browser: Browser, options: ScreenshotOptions
    ) -> BrowserContext:
        """Create browser context with the requested viewport."""
        viewport = options.viewport
        context_options: Dict[str, Any] = {
            "viewport": {
                "width": (viewport and viewport.width) or self.settings.default_viewport_width,
                "height": (viewport and viewport.height) or self.settings.default_viewport_height,
            },
            "user_agent": DESKTOP_USER_AGENT,
        }
        return await browser.new_context(**context_options)
