"""
Periodic Tasks
==============

Run a synchronous sweep function on a fixed interval inside the event loop.
"""

import asyncio
from typing import Any, Callable, Optional

from screenshot_api.config.logging import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Background asyncio task calling ``func`` every ``interval`` seconds."""

    def __init__(self, name: str, interval: float, func: Callable[[], Any]):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self._task: Optional[asyncio.Task] = None
        self.logger = logger.bind(component="periodic_task", task=name)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop. Idempotent."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        self.logger.debug("Periodic task started", interval=self.interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to exit."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.debug("Periodic task stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.func()
            except Exception as e:
                self.logger.error("Periodic task failed", error=str(e), exc_info=True)
