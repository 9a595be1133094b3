"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states.

    State transitions:
    - QUEUED -> PROCESSING (dispatched)
    - PROCESSING -> COMPLETED (routine returned)
    - PROCESSING -> FAILED (routine raised, unsupported operation or timeout)
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions can happen from this state."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class JobPriority(StrEnum):
    """Job priority levels for queue ordering."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class JobCategory(StrEnum):
    """Kinds of artifacts a job can process."""

    IMAGE = "image"
    DOCUMENT = "document"
    MEDIA = "media"


# Priority weights for ordering (higher = dispatched first)
PRIORITY_WEIGHTS: dict[JobPriority, int] = {
    JobPriority.LOW: 1,
    JobPriority.NORMAL: 2,
    JobPriority.HIGH: 3,
}

# Default values
DEFAULT_PRIORITY = JobPriority.NORMAL
DEFAULT_MAX_CONCURRENT = 2
DEFAULT_FINISHED_RETENTION = 1000
DEFAULT_HISTORY_SIZE = 500

# API constants
API_QUEUE_PREFIX = "/api/queue"

# Metrics names
METRIC_QUEUE_DEPTH = "procqueue_queue_depth"
METRIC_ACTIVE_JOBS = "procqueue_active_jobs"
METRIC_JOBS_SUBMITTED = "procqueue_jobs_submitted_total"
METRIC_JOBS_FINISHED = "procqueue_jobs_finished_total"
METRIC_JOBS_REMOVED = "procqueue_jobs_removed_total"
METRIC_JOB_DURATION = "procqueue_job_duration_seconds"
METRIC_API_REQUESTS = "procqueue_api_requests_total"
METRIC_API_LATENCY = "procqueue_api_request_latency_seconds"

# Trace span names
SPAN_EXECUTE_JOB = "execute_job"

# Lifecycle event types
EVENT_JOB_ADDED = "job.added"
EVENT_JOB_STARTED = "job.started"
EVENT_JOB_COMPLETED = "job.completed"
EVENT_JOB_FAILED = "job.failed"
EVENT_JOB_REMOVED = "job.removed"
EVENT_QUEUE_CLEARED = "queue.cleared"
