"""
Job Events
==========

Tagged terminal outcomes published by the job queue to its subscribers.
"""

from dataclasses import dataclass
from typing import Any, Union

from screenshot_api.models.schemas import Job


@dataclass(frozen=True)
class JobCompleted:
    """A job finished successfully. ``job`` is a snapshot."""
    job: Job
    result: Any

    @property
    def job_id(self) -> str:
        return self.job.id


@dataclass(frozen=True)
class JobFailed:
    """A job exhausted its attempts. ``error`` is the last attempt's exception."""
    job: Job
    error: BaseException

    @property
    def job_id(self) -> str:
        return self.job.id


JobEvent = Union[JobCompleted, JobFailed]
