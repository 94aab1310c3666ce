"""
Job Queue
=========

In-memory job queue with bounded concurrency, exponential retry and
periodic removal of finished jobs.
"""

from screenshot_api.core.queue.events import JobCompleted, JobEvent, JobFailed
from screenshot_api.core.queue.janitor import Janitor
from screenshot_api.core.queue.job_queue import JobQueue, QueueClosedError
from screenshot_api.core.queue.job_store import JobStore
from screenshot_api.core.queue.retry import RetryPolicy, exponential_backoff

__all__ = [
    "Janitor",
    "JobCompleted",
    "JobEvent",
    "JobFailed",
    "JobQueue",
    "JobStore",
    "QueueClosedError",
    "RetryPolicy",
    "exponential_backoff",
]
