"""
Janitor
=======

Periodic removal of finished jobs older than the retention window.
"""

from datetime import datetime, timedelta
from typing import Optional

from screenshot_api.config.logging import get_logger
from screenshot_api.core.queue.job_store import JobStore
from screenshot_api.utils.periodic import PeriodicTask

logger = get_logger(__name__)


class Janitor:
    """Sweeps completed and failed jobs out of a job store."""

    def __init__(self, store: JobStore, retention: float = 3600, interval: float = 600):
        """
        Args:
            store: Job store to sweep
            retention: Seconds a finished job is kept after ``completed_at``
            interval: Seconds between sweeps
        """
        self.store = store
        self.retention = timedelta(seconds=retention)
        self.logger = logger.bind(component="janitor")
        self._periodic = PeriodicTask("job-janitor", interval, self.run_once)

    def run_once(self, now: Optional[datetime] = None) -> int:
        """Delete expired finished jobs. Returns the number removed."""
        removed = 0
        for job_id in self.store.expired(self.retention, now):
            if self.store.delete(job_id):
                removed += 1

        if removed:
            self.logger.info("Cleaned up old jobs", removed=removed, remaining=len(self.store))
        return removed

    def start(self) -> None:
        self._periodic.start()

    async def stop(self) -> None:
        await self._periodic.stop()
