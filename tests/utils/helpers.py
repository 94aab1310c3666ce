"""
Test Helpers
============

Helper functions for common testing operations.
"""

import asyncio
import io
import time
from typing import Callable

from PIL import Image


async def wait_for_condition(
    condition: Callable[[], bool],
    timeout: float = 5.0,
    interval: float = 0.01,
    error_message: str = "Condition not met within timeout",
) -> None:
    """Wait for a condition to become true."""
    start_time = time.monotonic()

    while time.monotonic() - start_time < timeout:
        if condition():
            return
        await asyncio.sleep(interval)

    raise TimeoutError(error_message)


def wait_until(
    condition: Callable[[], bool],
    timeout: float = 5.0,
    interval: float = 0.02,
    error_message: str = "Condition not met within timeout",
) -> None:
    """Blocking variant of ``wait_for_condition`` for synchronous tests."""
    start_time = time.monotonic()

    while time.monotonic() - start_time < timeout:
        if condition():
            return
        time.sleep(interval)

    raise TimeoutError(error_message)


def make_png(width: int = 64, height: int = 48, color: str = "#336699") -> bytes:
    """Encode a solid-color PNG."""
    output = io.BytesIO()
    Image.new("RGB", (width, height), color).save(output, format="PNG")
    return output.getvalue()
