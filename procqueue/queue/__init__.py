"""
Queue core.
Scheduler, operation dispatcher, lifecycle sinks and status reporting.
"""

from procqueue.queue.dispatcher import (
    OperationDispatcher,
    ProcessingRoutine,
    UnsupportedOperationError,
)
from procqueue.queue.notifications import (
    CompositeSink,
    JobHistory,
    MetricsSink,
    NotificationSink,
    NullSink,
)
from procqueue.queue.reporter import StatusReporter
from procqueue.queue.scheduler import JobTimeoutError, Scheduler, SchedulerClosedError

__all__ = [
    "Scheduler",
    "SchedulerClosedError",
    "JobTimeoutError",
    "OperationDispatcher",
    "ProcessingRoutine",
    "UnsupportedOperationError",
    "NotificationSink",
    "NullSink",
    "CompositeSink",
    "JobHistory",
    "MetricsSink",
    "StatusReporter",
]
