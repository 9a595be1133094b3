"""
Type definitions for the processing queue.
Contains job, event and API models, grouped by module.
"""

from procqueue.types.events import (
    JobEvent,
    WebSocketMessage,
)
from procqueue.types.job import (
    InvalidTransitionError,
    Job,
    JobSpec,
    JobStatusSnapshot,
    QueueSnapshot,
)

__all__ = [
    # Job types
    "Job",
    "JobSpec",
    "JobStatusSnapshot",
    "QueueSnapshot",
    "InvalidTransitionError",
    # Event types
    "JobEvent",
    "WebSocketMessage",
]
