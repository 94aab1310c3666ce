"""
Job Store
=========

In-memory table of job records keyed by job id.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional

from screenshot_api.models.schemas import Job, JobStatus, utcnow


class JobStore:
    """
    Plain keyed table of jobs.

    Only the job queue writes to the store; last writer wins per key.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs.values()))

    def put(self, job: Job) -> None:
        self._jobs[job.id] = job

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    def count(self, status: JobStatus) -> int:
        return sum(1 for job in self._jobs.values() if job.status == status)

    def expired(self, max_age: timedelta, now: Optional[datetime] = None) -> List[str]:
        """Ids of terminal jobs whose completion is older than ``max_age``."""
        now = now or utcnow()
        return [
            job.id
            for job in self._jobs.values()
            if job.is_terminal and job.completed_at is not None and now - job.completed_at > max_age
        ]

    def clear(self) -> None:
        self._jobs.clear()
