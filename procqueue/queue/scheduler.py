"""
Priority job scheduler.

Holds pending jobs, orders them by priority, admits up to a fixed number
of concurrently executing jobs and drives each one to a terminal state.
A single dispatch task performs admission; it is woken after every
submission and every job completion. Lifecycle events are queued in
transition order and delivered to the sink by a separate publisher task,
so a slow sink never holds up admission or execution.
"""

import asyncio
import itertools
import logging
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any

from procqueue.config import get_settings
from procqueue.constants import SPAN_EXECUTE_JOB
from procqueue.observability.logging import bind_context
from procqueue.observability.tracing import get_tracer
from procqueue.queue.dispatcher import OperationDispatcher
from procqueue.queue.notifications import NotificationSink, NullSink
from procqueue.types.events import JobEvent
from procqueue.types.job import Job, JobSpec, JobStatusSnapshot, QueueSnapshot

logger = logging.getLogger(__name__)


class SchedulerClosedError(RuntimeError):
    """Raised when submitting to a scheduler that has been shut down."""


class JobTimeoutError(TimeoutError):
    """Raised when a job exceeds its deadline."""

    def __init__(self, job_id: str, timeout_seconds: float):
        super().__init__(f"Job timed out after {timeout_seconds:g}s")
        self.job_id = job_id
        self.timeout_seconds = timeout_seconds


class Scheduler:
    """
    Bounded-concurrency, priority-ordered job queue.

    Features:
    - Priority ordering (high > normal > low), FIFO within a priority
    - At most ``max_concurrent`` jobs processing at any time
    - Lifecycle events published to a single notification sink
    - Optional per-job deadline

    All mutation of the pending list and the active set happens under one
    lock. Events are queued under that lock and published outside it.
    """

    def __init__(
        self,
        dispatcher: OperationDispatcher,
        sink: NotificationSink | None = None,
        max_concurrent: int | None = None,
        job_timeout_seconds: float | None = None,
        finished_retention: int | None = None,
    ):
        """
        Initialize the scheduler.

        Args:
            dispatcher: Resolves and runs the routine for each job.
            sink: Receives lifecycle events. Defaults to discarding them.
            max_concurrent: Concurrency ceiling, fixed for the scheduler's lifetime.
            job_timeout_seconds: Default deadline for jobs that set none.
            finished_retention: How many finished jobs stay available to get_status().
        """
        settings = get_settings()

        if max_concurrent is None:
            max_concurrent = settings.queue_max_concurrent
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be a positive integer, got {max_concurrent}")

        self._dispatcher = dispatcher
        self._sink: NotificationSink = sink or NullSink()
        self._max_concurrent = max_concurrent
        self._job_timeout_seconds = (
            job_timeout_seconds
            if job_timeout_seconds is not None
            else settings.queue_job_timeout_seconds
        )
        self._finished_retention = (
            finished_retention
            if finished_retention is not None
            else settings.queue_finished_retention
        )

        self._pending: list[Job] = []
        self._active: dict[str, Job] = {}
        self._finished: OrderedDict[str, Job] = OrderedDict()
        self._tasks: dict[str, asyncio.Task] = {}
        self._events: asyncio.Queue[JobEvent] = asyncio.Queue()
        self._publisher_task: asyncio.Task | None = None
        self._sequence = itertools.count()

        self._lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self._idle = asyncio.Event()
        self._idle.set()
        self._dispatching = False

        self._running = False
        self._closed = False
        self._loop_task: asyncio.Task | None = None

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the dispatch task."""
        if self._closed:
            raise SchedulerClosedError("Scheduler has been shut down")
        if self._loop_task is not None and not self._loop_task.done():
            return

        self._running = True
        self._loop_task = asyncio.create_task(
            self._dispatch_loop(), name="procqueue-dispatch"
        )
        # Work submitted before start() is picked up on the first pass
        self._wakeup.set()
        logger.info(
            "Scheduler started",
            extra={"max_concurrent": self._max_concurrent},
        )

    async def shutdown(self, wait: bool = True) -> None:
        """
        Stop the dispatch task.

        Args:
            wait: Let executing jobs finish. Otherwise they are cancelled
                and marked failed. Pending jobs are left queued. Events
                already emitted are delivered before this returns.
        """
        self._closed = True
        self._running = False
        self._wakeup.set()

        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None

        tasks = list(self._tasks.values())
        if tasks:
            if wait:
                logger.info(f"Waiting for {len(tasks)} jobs to complete")
            else:
                for task in tasks:
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        await self._events.join()
        if self._publisher_task is not None:
            self._publisher_task.cancel()
            await asyncio.gather(self._publisher_task, return_exceptions=True)
            self._publisher_task = None

        # Nothing left will run; release anyone waiting for the queue to drain
        self._idle.set()

        logger.info(
            "Scheduler stopped",
            extra={"queued": len(self._pending)},
        )

    async def submit(self, spec: JobSpec | Mapping[str, Any]) -> str:
        """
        Add a job to the queue.

        Returns as soon as the job is queued; execution happens on the
        dispatch task.

        Args:
            spec: A JobSpec, or a mapping validated into one.

        Returns:
            The new job's identifier.

        Raises:
            pydantic.ValidationError: If the specification is malformed.
            SchedulerClosedError: If the scheduler has been shut down.
        """
        if not isinstance(spec, JobSpec):
            spec = JobSpec.model_validate(spec)

        if self._closed:
            raise SchedulerClosedError("Scheduler has been shut down")
        if not self._running:
            await self.start()

        async with self._lock:
            job = Job.from_spec(spec, next(self._sequence))
            self._emit(JobEvent.job_added(job))
            self._pending.append(job)
            self._idle.clear()

        logger.info(
            "Job added to queue",
            extra={
                "job_id": job.id,
                "category": job.category.value,
                "operation": job.operation,
                "priority": job.priority.value,
            },
        )

        self._wakeup.set()
        return job.id

    def get_status(self, job_id: str) -> JobStatusSnapshot | None:
        """
        Get a point-in-time copy of a job's state.

        Returns:
            The snapshot, or None if the job is not tracked.
        """
        job = (
            self._active.get(job_id)
            or self._finished.get(job_id)
            or self._find_pending(job_id)
        )
        return job.snapshot() if job is not None else None

    def get_queue_snapshot(self) -> QueueSnapshot:
        """Get aggregate queue counts."""
        queued = len(self._pending)
        processing = len(self._active)
        return QueueSnapshot(
            queued=queued,
            processing=processing,
            total=queued + processing,
            max_concurrent=self._max_concurrent,
        )

    async def remove_job(self, job_id: str) -> Job | None:
        """
        Remove a job that has not started executing.

        Returns:
            The removed job, or None if it is not pending.
        """
        async with self._lock:
            job = self._find_pending(job_id)
            if job is None:
                return None
            self._pending.remove(job)
            self._emit(JobEvent.job_removed(job))
            self._update_idle()

        logger.info(
            "Job removed from queue",
            extra={"job_id": job.id, "category": job.category.value},
        )
        return job

    async def clear_queue(self) -> int:
        """
        Discard every pending job. Executing jobs are not affected.

        Returns:
            Number of jobs discarded.
        """
        async with self._lock:
            cleared_count = len(self._pending)
            self._pending.clear()
            self._emit(JobEvent.queue_cleared(cleared_count))
            self._update_idle()

        logger.info("Queue cleared", extra={"cleared_count": cleared_count})
        return cleared_count

    async def wait_idle(self) -> None:
        """
        Wait until nothing is queued or processing and every emitted event
        has reached the sink.

        After shutdown this returns even if jobs were left queued.
        """
        await self._idle.wait()
        await self.drain_events()

    async def drain_events(self) -> None:
        """Wait until every event emitted so far has been published."""
        await self._events.join()

    async def _dispatch_loop(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()

            if not self._running:
                break

            try:
                await self._dispatch()
            except Exception as e:
                logger.exception(f"Error in dispatch loop: {e}")

    async def _dispatch(self) -> None:
        """Admit pending jobs while there is headroom under the ceiling."""
        async with self._lock:
            if (
                self._dispatching
                or len(self._active) >= self._max_concurrent
                or not self._pending
            ):
                return

            self._dispatching = True
            try:
                # Stable sort on a total key: priority tier, then submission order
                self._pending.sort(key=lambda job: job.dispatch_key)

                headroom = self._max_concurrent - len(self._active)
                admitted = self._pending[:headroom]
                del self._pending[:headroom]

                for job in admitted:
                    job.mark_processing()
                    self._active[job.id] = job
                    self._emit(JobEvent.job_started(job))
            finally:
                self._dispatching = False

        for job in admitted:
            logger.info(
                "Starting job processing",
                extra={"job_id": job.id, "category": job.category.value},
            )
            self._tasks[job.id] = asyncio.create_task(
                self._run_job(job), name=f"procqueue-{job.id}"
            )

    async def _run_job(self, job: Job) -> None:
        """
        Execute a single job and record its outcome.

        Every error is confined to the job: it ends up failed and the
        dispatch task carries on.
        """
        # Each job task runs in its own copy of the context
        bind_context(job_id=job.id, category=job.category.value, operation=job.operation)

        timeout = job.timeout_seconds or self._job_timeout_seconds
        result: dict[str, Any] | None = None
        error: str | None = None

        try:
            with get_tracer().start_as_current_span(SPAN_EXECUTE_JOB) as span:
                span.set_attribute("job_id", job.id)
                span.set_attribute("category", job.category.value)
                span.set_attribute("operation", job.operation)

                result = await self._execute(job, timeout)

        except asyncio.CancelledError:
            await self._finish(job, None, "Job cancelled")
            raise
        except Exception as e:
            error = str(e) or type(e).__name__

        await self._finish(job, result, error)

    async def _execute(self, job: Job, timeout: float | None) -> dict[str, Any]:
        if timeout is None:
            return await self._dispatcher.execute(job)

        try:
            return await asyncio.wait_for(self._dispatcher.execute(job), timeout)
        except TimeoutError:
            raise JobTimeoutError(job.id, timeout) from None

    async def _finish(
        self,
        job: Job,
        result: dict[str, Any] | None,
        error: str | None,
    ) -> None:
        async with self._lock:
            self._active.pop(job.id, None)
            if error is None:
                job.mark_completed(result)
            else:
                job.mark_failed(error)
            self._retain(job)
            self._emit(
                JobEvent.job_completed(job) if error is None else JobEvent.job_failed(job)
            )
            self._update_idle()

        self._tasks.pop(job.id, None)
        self._wakeup.set()

        if error is None:
            logger.info(
                "Job completed successfully",
                extra={"job_id": job.id, "duration": f"{job.duration_seconds:.2f}s"},
            )
        else:
            logger.error(
                "Job failed",
                extra={"job_id": job.id, "category": job.category.value, "error": error},
            )

    def _emit(self, event: JobEvent) -> None:
        self._events.put_nowait(event)
        if self._publisher_task is None or self._publisher_task.done():
            self._publisher_task = asyncio.create_task(
                self._publish_loop(), name="procqueue-publisher"
            )

    async def _publish_loop(self) -> None:
        while True:
            event = await self._events.get()
            try:
                await self._publish(event)
            finally:
                self._events.task_done()

    async def _publish(self, event: JobEvent) -> None:
        try:
            await self._sink.publish(event)
        except Exception:
            logger.exception(
                "Failed to publish lifecycle event",
                extra={"event_type": event.event_type, "job_id": event.job_id},
            )

    def _find_pending(self, job_id: str) -> Job | None:
        for job in self._pending:
            if job.id == job_id:
                return job
        return None

    def _retain(self, job: Job) -> None:
        if self._finished_retention <= 0:
            return
        self._finished[job.id] = job
        while len(self._finished) > self._finished_retention:
            self._finished.popitem(last=False)

    def _update_idle(self) -> None:
        if not self._pending and not self._active:
            self._idle.set()
