"""
Callback Sender
===============

HTTP webhook delivery with its own retry schedule, independent of the job
queue's retries.

Outcomes:
- 2xx: delivered, returns True
- 5xx or transport error: retried after the configured delays, returns False
  once every attempt has been used
- any other status: raises CallbackFailed immediately
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

import aiohttp

from screenshot_api.config.logging import get_logger
from screenshot_api.models.schemas import CallbackPayload

logger = get_logger(__name__)

DEFAULT_RETRY_DELAYS = (60.0, 300.0, 900.0)


class CallbackFailed(Exception):
    """Raised when a webhook endpoint rejects a callback with a non-retryable status."""

    def __init__(self, status: int, url: Optional[str] = None):
        self.status = status
        self.url = url
        super().__init__(f"Callback failed with status {status}")


class CallbackSender:
    """Posts JSON callbacks to client webhook URLs."""

    def __init__(
        self,
        max_retries: int = 3,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        timeout: float = 10.0,
        user_agent: str = "Screenshot-API/1.0",
        session: Optional[aiohttp.ClientSession] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            max_retries: Total delivery attempts for retryable failures
            retry_delays: Seconds to wait after each failed attempt
            timeout: Request timeout in seconds
            user_agent: User-Agent header value
            session: Shared aiohttp session; one is created lazily if omitted
            sleep: Awaitable delay function, overridable for tests
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if not retry_delays:
            raise ValueError("retry_delays must not be empty")
        self.max_retries = max_retries
        self.retry_delays = list(retry_delays)
        self.timeout = timeout
        self.user_agent = user_agent
        self._sleep = sleep
        self._session = session
        self._own_session = session is None
        self.logger = logger.bind(component="callback_sender")

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._own_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this sender created it."""
        if self._own_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def retry_delay(self, attempt: int) -> float:
        """Delay after the zero-based ``attempt``; the last slot repeats."""
        return self.retry_delays[min(attempt, len(self.retry_delays) - 1)]

    async def send(self, url: str, payload: Union[CallbackPayload, Dict[str, Any]]) -> bool:
        """
        Deliver a callback.

        Returns:
            True when the endpoint answered 2xx, False after giving up on
            retryable failures

        Raises:
            CallbackFailed: If the endpoint answered a non-retryable status
        """
        body = self._serialize(payload)

        for attempt in range(self.max_retries):
            try:
                status = await self._post(url, body)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                self.logger.error(
                    "Callback error",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    error=str(e) or e.__class__.__name__,
                )
            else:
                if 200 <= status < 300:
                    self.logger.info("Callback sent successfully", url=url, attempt=attempt + 1)
                    return True
                if status < 500:
                    self.logger.error("Callback rejected", url=url, status=status)
                    raise CallbackFailed(status, url)
                self.logger.warning(
                    "Callback failed",
                    url=url,
                    status=status,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                )

            if attempt < self.max_retries - 1:
                delay = self.retry_delay(attempt)
                self.logger.info("Retrying callback", url=url, retry_in=delay)
                await self._sleep(delay)

        self.logger.error("Callback abandoned", url=url, attempts=self.max_retries)
        return False

    async def _post(self, url: str, body: str) -> int:
        session = await self._get_session()
        async with session.post(
            url,
            data=body,
            headers={"Content-Type": "application/json", "User-Agent": self.user_agent},
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            return response.status

    @staticmethod
    def _serialize(payload: Union[CallbackPayload, Dict[str, Any]]) -> str:
        if isinstance(payload, CallbackPayload):
            return payload.model_dump_json(by_alias=True, exclude_none=True)
        return json.dumps(payload, default=str)
