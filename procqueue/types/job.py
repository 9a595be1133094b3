"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from procqueue.constants import (
    DEFAULT_PRIORITY,
    PRIORITY_WEIGHTS,
    JobCategory,
    JobPriority,
    JobStatus,
)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def new_job_id() -> str:
    """Generate an opaque job identifier."""
    return f"job_{uuid4().hex}"


class InvalidTransitionError(RuntimeError):
    """Raised when a job is moved to a state its current state does not allow."""

    def __init__(self, job_id: str, current: JobStatus, target: JobStatus):
        super().__init__(
            f"Job {job_id} cannot move from {current.value} to {target.value}"
        )
        self.job_id = job_id
        self.current = current
        self.target = target


class JobSpec(BaseModel):
    """
    Job specification supplied by a producer.

    Validated before a Job is created, so malformed submissions never
    reach the queue.
    """

    category: JobCategory
    target_path: str = Field(..., min_length=1)
    operation: str = Field(..., min_length=1)
    options: dict[str, Any] = Field(default_factory=dict)
    priority: JobPriority = DEFAULT_PRIORITY
    timeout_seconds: float | None = Field(default=None, gt=0)


@dataclass
class Job:
    """
    A unit of processing work owned by the scheduler.

    Identity and description are fixed at submission; the lifecycle
    fields only move forward through the state machine
    queued -> processing -> completed | failed.
    """

    id: str
    sequence: int
    category: JobCategory
    target_path: str
    operation: str
    options: dict[str, Any]
    priority: JobPriority
    timeout_seconds: float | None = None
    created_at: datetime = field(default_factory=utcnow)
    status: JobStatus = JobStatus.QUEUED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def from_spec(cls, spec: JobSpec, sequence: int) -> "Job":
        """Create a queued job from a validated specification."""
        return cls(
            id=new_job_id(),
            sequence=sequence,
            category=spec.category,
            target_path=spec.target_path,
            operation=spec.operation,
            options=dict(spec.options),
            priority=spec.priority,
            timeout_seconds=spec.timeout_seconds,
        )

    @property
    def dispatch_key(self) -> tuple[int, int]:
        """Total ordering key: higher priority first, then submission order."""
        return (-PRIORITY_WEIGHTS[self.priority], self.sequence)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def finished_at(self) -> datetime | None:
        return self.completed_at or self.failed_at

    @property
    def duration_seconds(self) -> float | None:
        """Execution time, available once the job has finished."""
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def mark_processing(self) -> None:
        if self.status != JobStatus.QUEUED:
            raise InvalidTransitionError(self.id, self.status, JobStatus.PROCESSING)
        self.status = JobStatus.PROCESSING
        self.started_at = utcnow()

    def mark_completed(self, result: dict[str, Any] | None) -> None:
        if self.status != JobStatus.PROCESSING:
            raise InvalidTransitionError(self.id, self.status, JobStatus.COMPLETED)
        self.status = JobStatus.COMPLETED
        self.completed_at = utcnow()
        self.result = result
        self.error = None

    def mark_failed(self, error: str) -> None:
        if self.status != JobStatus.PROCESSING:
            raise InvalidTransitionError(self.id, self.status, JobStatus.FAILED)
        self.status = JobStatus.FAILED
        self.failed_at = utcnow()
        self.error = error
        self.result = None

    def snapshot(self) -> "JobStatusSnapshot":
        """Point-in-time copy of the job's state."""
        return JobStatusSnapshot(
            id=self.id,
            status=self.status,
            category=self.category,
            operation=self.operation,
            priority=self.priority,
            target_path=self.target_path,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            failed_at=self.failed_at,
            result=dict(self.result) if self.result is not None else None,
            error=self.error,
        )


class JobStatusSnapshot(BaseModel):
    """Status of a single job as reported to callers."""

    id: str
    status: JobStatus
    category: JobCategory
    operation: str
    priority: JobPriority
    target_path: str
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    result: dict[str, Any] | None = None
    error: str | None = None


class QueueSnapshot(BaseModel):
    """Aggregate queue counts at the time of the call."""

    queued: int
    processing: int
    total: int
    max_concurrent: int
