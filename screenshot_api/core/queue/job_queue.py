"""
Job Queue
=========

In-memory job queue with a bounded pool of concurrent attempts.

Jobs are admitted in FIFO order. A failed attempt is re-enqueued at the tail
of the pending list after a backoff delay, until the job's attempt cap is
reached. Worker slots are never held during a backoff wait.

All queue state is mutated on the event loop thread only.
"""

import asyncio
import inspect
import uuid
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Union

from screenshot_api.config.logging import get_logger
from screenshot_api.core.queue.events import JobCompleted, JobEvent, JobFailed
from screenshot_api.core.queue.job_store import JobStore
from screenshot_api.core.queue.retry import RetryDelayFn, RetryPolicy
from screenshot_api.models.schemas import Job, JobStatus, QueueStats, utcnow

logger = get_logger(__name__)

Processor = Callable[[Job], Awaitable[Any]]
Listener = Callable[[JobEvent], Union[None, Awaitable[None]]]


class QueueClosedError(Exception):
    """Raised when submitting to a queue that is shutting down."""

    pass


class JobQueue:
    """
    Scheduler owning the lifecycle of every job it admits.

    Usage::

        queue = JobQueue("screenshot-jobs")
        queue.set_processor(5, process_job)
        job = await queue.submit({"url": "https://example.com"})
        finished = await queue.wait_for(job.id)
    """

    def __init__(
        self,
        name: str = "jobs",
        store: Optional[JobStore] = None,
        max_attempts: int = 3,
        retry_policy: Optional[RetryDelayFn] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.name = name
        self.store = store if store is not None else JobStore()
        self.max_attempts = max_attempts
        self.retry_policy: RetryDelayFn = retry_policy or RetryPolicy()
        self.concurrency = 5

        self._processor: Optional[Processor] = None
        self._pending: Deque[str] = deque()
        self._active: Set[str] = set()
        self._retry_handles: Dict[str, asyncio.TimerHandle] = {}
        self._attempt_tasks: Set[asyncio.Task] = set()
        self._listener_tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []
        self._waiters: Dict[str, List[asyncio.Future]] = {}
        self._paused = False
        self._closed = False

        self.logger = logger.bind(component="job_queue", queue=name)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def submit(
        self, input: Any, job_id: Optional[str] = None, max_attempts: Optional[int] = None
    ) -> Job:
        """
        Add a job to the tail of the pending list.

        Returns without waiting for execution; slot filling is scheduled on
        the next loop iteration.

        Args:
            input: Processor-specific payload
            job_id: Caller-assigned id, generated when omitted
            max_attempts: Per-job attempt cap overriding the queue default

        Returns:
            Snapshot of the new pending job

        Raises:
            QueueClosedError: If the queue is shutting down
            ValueError: If ``job_id`` is already in use
        """
        if self._closed:
            raise QueueClosedError(f"Queue {self.name} is closed")

        job_id = job_id or str(uuid.uuid4())
        if job_id in self.store:
            raise ValueError(f"Job {job_id} already exists")

        job = Job(id=job_id, input=input, max_attempts=max_attempts or self.max_attempts)
        self.store.put(job)
        self._pending.append(job_id)

        self.logger.info("Job added to queue", job_id=job_id, waiting=len(self._pending))

        asyncio.get_running_loop().call_soon(self._fill_slots)
        return job.model_copy(deep=True)

    def set_processor(self, concurrency: int, processor: Processor) -> None:
        """
        Install the processing function and start filling slots.

        Raises:
            QueueClosedError: If the queue is shutting down
        """
        if self._closed:
            raise QueueClosedError(f"Queue {self.name} is closed")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.concurrency = concurrency
        self._processor = processor
        self._paused = False

        self.logger.info("Queue processor set", concurrency=concurrency)
        self._fill_slots()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Optional[Job]:
        """Snapshot of a job, or None if unknown."""
        job = self.store.get(job_id)
        return job.model_copy(deep=True) if job is not None else None

    def stats(self) -> QueueStats:
        waiting = len(self._pending)
        active = len(self._active)
        return QueueStats(
            waiting=waiting,
            active=active,
            completed=self.store.count(JobStatus.COMPLETED),
            failed=self.store.count(JobStatus.FAILED),
            delayed=len(self._retry_handles),
            total=waiting + active,
        )

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def closed(self) -> bool:
        return self._closed

    def update_progress(self, job_id: str, percent: int) -> bool:
        """
        Record progress of an active job.

        Best-effort: unknown or inactive jobs are ignored and progress never
        goes backwards within an attempt.
        """
        job = self.store.get(job_id)
        if job is None or job.status != JobStatus.ACTIVE:
            return False
        job.progress = max(job.progress, min(100, max(0, int(percent))))
        return True

    async def wait_for(self, job_id: str, timeout: Optional[float] = None) -> Job:
        """
        Wait until a job reaches a terminal state.

        Raises:
            KeyError: If the job is unknown
            asyncio.TimeoutError: If ``timeout`` elapses first
        """
        job = self.store.get(job_id)
        if job is None:
            raise KeyError(job_id)
        if job.is_terminal:
            return job.model_copy(deep=True)

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(job_id, []).append(future)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            waiters = self._waiters.get(job_id)
            if waiters and future in waiters:
                waiters.remove(future)
                if not waiters:
                    del self._waiters[job_id]

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for terminal job events.

        Listeners may be plain functions or coroutine functions. Every
        current subscriber receives each event once.

        Returns:
            Function removing the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def pause(self) -> None:
        """Stop pulling new jobs into slots. Active attempts finish normally."""
        self._paused = True
        self.logger.info("Queue paused")

    def resume(self, processor: Optional[Processor] = None) -> None:
        """Resume pulling jobs, optionally replacing the processor."""
        if self._closed:
            raise QueueClosedError(f"Queue {self.name} is closed")
        if processor is not None:
            self._processor = processor
        self._paused = False
        self.logger.info("Queue resumed")
        self._fill_slots()

    def close(self) -> None:
        """Pause the queue and release all subscribers."""
        self._paused = True
        self._processor = None
        self._listeners.clear()
        self.logger.info("Queue closed")

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop admitting jobs, cancel pending retries and drain active attempts.

        Attempts still running after ``timeout`` seconds are cancelled and
        their jobs left pending.
        """
        self._closed = True
        self._paused = True
        self._cancel_retries()

        if self._attempt_tasks:
            self.logger.info("Waiting for active jobs", active=len(self._attempt_tasks))
            _, still_running = await asyncio.wait(set(self._attempt_tasks), timeout=timeout)
            for task in still_running:
                task.cancel()
            if still_running:
                await asyncio.gather(*still_running, return_exceptions=True)
        self._cancel_retries()

        if self._listener_tasks:
            _, still_running = await asyncio.wait(set(self._listener_tasks), timeout=timeout)
            for task in still_running:
                task.cancel()

        self.close()

        for waiters in self._waiters.values():
            for future in waiters:
                if not future.done():
                    future.cancel()
        self._waiters.clear()

        self.logger.info("Queue shut down", **self.stats().model_dump())

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _fill_slots(self) -> None:
        if self._processor is None or self._paused:
            return

        while self._pending and len(self._active) < self.concurrency:
            job_id = self._pending.popleft()
            job = self.store.get(job_id)
            if job is None or job.status != JobStatus.PENDING:
                continue
            self._start_attempt(job, self._processor)

    def _start_attempt(self, job: Job, processor: Processor) -> None:
        job.status = JobStatus.ACTIVE
        job.started_at = utcnow()
        job.attempts += 1
        job.progress = 0
        self._active.add(job.id)

        self.logger.info(
            "Processing job", job_id=job.id, attempt=job.attempts, max_attempts=job.max_attempts
        )

        task = asyncio.get_running_loop().create_task(
            self._run_attempt(job, processor), name=f"{self.name}:{job.id}:{job.attempts}"
        )
        self._attempt_tasks.add(task)
        task.add_done_callback(self._attempt_tasks.discard)

    async def _run_attempt(self, job: Job, processor: Processor) -> None:
        try:
            result = await processor(job.model_copy(deep=True))
        except asyncio.CancelledError:
            # Interrupted attempts go back to pending without emitting an outcome
            job.status = JobStatus.PENDING
            job.progress = 0
            self._record_error(job, QueueClosedError("Attempt interrupted by queue shutdown"))
            raise
        except Exception as e:
            self._attempt_failed(job, e)
        else:
            self._attempt_succeeded(job, result)
        finally:
            self._active.discard(job.id)
            self._fill_slots()

    def _attempt_succeeded(self, job: Job, result: Any) -> None:
        job.status = JobStatus.COMPLETED
        job.progress = 100
        job.result = result
        job.last_error = None
        job.error_code = None
        job.completed_at = utcnow()

        self.logger.info("Job completed", job_id=job.id, attempts=job.attempts)

        snapshot = job.model_copy(deep=True)
        self._resolve_waiters(snapshot)
        self._emit(JobCompleted(job=snapshot, result=result))

    def _attempt_failed(self, job: Job, error: Exception) -> None:
        if job.attempts >= job.max_attempts:
            self._mark_failed(job, error)
            return

        job.status = JobStatus.PENDING
        job.progress = 0
        self._record_error(job, error)

        if self._closed:
            # No retries are scheduled once shutdown has begun
            self.logger.warning(
                "Job failed during shutdown, left pending",
                job_id=job.id,
                attempt=job.attempts,
                error=job.last_error,
            )
            return

        delay = max(0.0, float(self.retry_policy(job.attempts)))

        self.logger.warning(
            "Job failed, retrying",
            job_id=job.id,
            attempt=job.attempts,
            max_attempts=job.max_attempts,
            retry_in=delay,
            error=job.last_error,
        )

        self._retry_handles[job.id] = asyncio.get_running_loop().call_later(
            delay, self._requeue, job.id
        )

    def _mark_failed(self, job: Job, error: BaseException) -> None:
        job.status = JobStatus.FAILED
        self._record_error(job, error)
        job.completed_at = utcnow()

        self.logger.error(
            "Job failed", job_id=job.id, attempts=job.attempts, error=job.last_error
        )

        snapshot = job.model_copy(deep=True)
        self._resolve_waiters(snapshot)
        self._emit(JobFailed(job=snapshot, error=error))

    @staticmethod
    def _record_error(job: Job, error: BaseException) -> None:
        job.last_error = str(error) or error.__class__.__name__
        code = getattr(error, "code", None)
        job.error_code = code if isinstance(code, str) else None

    def _cancel_retries(self) -> None:
        for handle in self._retry_handles.values():
            handle.cancel()
        self._retry_handles.clear()

    def _requeue(self, job_id: str) -> None:
        self._retry_handles.pop(job_id, None)
        job = self.store.get(job_id)
        if job is None or job.status != JobStatus.PENDING:
            return
        self._pending.append(job_id)
        self.logger.debug("Job re-enqueued", job_id=job_id, waiting=len(self._pending))
        self._fill_slots()

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _resolve_waiters(self, snapshot: Job) -> None:
        for future in self._waiters.pop(snapshot.id, []):
            if not future.done():
                future.set_result(snapshot)

    def _emit(self, event: JobEvent) -> None:
        for listener in list(self._listeners):
            try:
                outcome = listener(event)
            except Exception as e:
                self.logger.error(
                    "Job listener failed", job_id=event.job_id, error=str(e), exc_info=True
                )
                continue

            if inspect.isawaitable(outcome):
                task = asyncio.ensure_future(outcome)
                self._listener_tasks.add(task)
                task.add_done_callback(self._listener_done)

    def _listener_done(self, task: asyncio.Task) -> None:
        self._listener_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.error("Job listener failed", error=str(task.exception()))
