"""
Event type definitions for lifecycle notifications and WebSocket messaging.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from procqueue.constants import (
    EVENT_JOB_ADDED,
    EVENT_JOB_COMPLETED,
    EVENT_JOB_FAILED,
    EVENT_JOB_REMOVED,
    EVENT_JOB_STARTED,
    EVENT_QUEUE_CLEARED,
    JobCategory,
    JobPriority,
    JobStatus,
)
from procqueue.types.job import Job, utcnow


class JobEvent(BaseModel):
    """
    Event emitted after a scheduler state transition.
    Consumed by notification sinks (history, metrics, WebSocket).
    """

    event_type: str
    timestamp: datetime
    job_id: str | None = None
    category: JobCategory | None = None
    operation: str | None = None
    priority: JobPriority | None = None
    status: JobStatus | None = None
    data: dict[str, Any] | None = None

    @classmethod
    def _for_job(cls, event_type: str, job: Job, data: dict[str, Any] | None = None) -> "JobEvent":
        return cls(
            event_type=event_type,
            timestamp=utcnow(),
            job_id=job.id,
            category=job.category,
            operation=job.operation,
            priority=job.priority,
            status=job.status,
            data=data,
        )

    @classmethod
    def job_added(cls, job: Job) -> "JobEvent":
        """Create a job added event."""
        return cls._for_job(
            EVENT_JOB_ADDED,
            job,
            {"target_path": job.target_path, "options": job.options},
        )

    @classmethod
    def job_started(cls, job: Job) -> "JobEvent":
        """Create a job started event."""
        return cls._for_job(EVENT_JOB_STARTED, job, {"started_at": job.started_at})

    @classmethod
    def job_completed(cls, job: Job) -> "JobEvent":
        """Create a job completed event."""
        return cls._for_job(
            EVENT_JOB_COMPLETED,
            job,
            {"result": job.result, "duration_seconds": job.duration_seconds},
        )

    @classmethod
    def job_failed(cls, job: Job) -> "JobEvent":
        """Create a job failed event."""
        return cls._for_job(
            EVENT_JOB_FAILED,
            job,
            {"error": job.error, "duration_seconds": job.duration_seconds},
        )

    @classmethod
    def job_removed(cls, job: Job) -> "JobEvent":
        """Create a job removed event."""
        return cls._for_job(EVENT_JOB_REMOVED, job)

    @classmethod
    def queue_cleared(cls, cleared_count: int) -> "JobEvent":
        """Create a queue cleared event."""
        return cls(
            event_type=EVENT_QUEUE_CLEARED,
            timestamp=utcnow(),
            data={"cleared_count": cleared_count},
        )


class WebSocketMessage(BaseModel):
    """
    Message format for WebSocket communication.
    """

    type: str
    payload: dict[str, Any]
    timestamp: datetime

    @classmethod
    def from_event(cls, event: JobEvent) -> "WebSocketMessage":
        """Create a WebSocket message from a job event."""
        return cls(
            type=event.event_type,
            payload={
                "job_id": event.job_id,
                "category": event.category,
                "operation": event.operation,
                "status": event.status,
                "data": event.data,
            },
            timestamp=event.timestamp,
        )
