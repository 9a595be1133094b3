"""
Lifecycle notification sinks.

The scheduler publishes a JobEvent to exactly one sink after each state
transition. Anything that needs job history, metrics or live updates
attaches here instead of inside the scheduler.
"""

import logging
from collections import Counter, deque
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel

from procqueue.constants import (
    DEFAULT_HISTORY_SIZE,
    EVENT_JOB_ADDED,
    EVENT_JOB_COMPLETED,
    EVENT_JOB_FAILED,
    EVENT_JOB_REMOVED,
    EVENT_QUEUE_CLEARED,
    JobCategory,
    JobPriority,
)
from procqueue.observability.metrics import MetricsCollector
from procqueue.types.events import JobEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Consumer of scheduler lifecycle events."""

    async def publish(self, event: JobEvent) -> None: ...


class NullSink:
    """Sink that discards every event."""

    async def publish(self, event: JobEvent) -> None:
        return None


class CompositeSink:
    """
    Fan an event out to several sinks.

    A failing sink is logged and skipped; the remaining sinks still
    receive the event.
    """

    def __init__(self, sinks: Iterable[NotificationSink] = ()):
        self._sinks: list[NotificationSink] = list(sinks)

    def add(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    async def publish(self, event: JobEvent) -> None:
        for sink in self._sinks:
            try:
                await sink.publish(event)
            except Exception:
                logger.exception(
                    "Notification sink failed",
                    extra={"sink": type(sink).__name__, "event_type": event.event_type},
                )


class HistoryEntry(BaseModel):
    """A finished or removed job as remembered by JobHistory."""

    job_id: str
    event_type: str
    category: JobCategory | None
    operation: str | None
    priority: JobPriority | None
    status: str
    timestamp: datetime
    error: str | None = None
    result: dict[str, Any] | None = None
    duration_seconds: float | None = None


class JobHistory:
    """
    Bounded in-memory record of jobs that left the queue.

    Keeps the most recent completed, failed and removed jobs plus running
    totals per outcome, including jobs discarded by queue clears.
    """

    _OUTCOMES = {
        EVENT_JOB_COMPLETED: "completed",
        EVENT_JOB_FAILED: "failed",
        EVENT_JOB_REMOVED: "removed",
    }

    def __init__(self, max_entries: int = DEFAULT_HISTORY_SIZE):
        self._entries: deque[HistoryEntry] = deque(maxlen=max_entries)
        self._totals: Counter[str] = Counter()

    async def publish(self, event: JobEvent) -> None:
        if event.event_type == EVENT_JOB_ADDED:
            self._totals["submitted"] += 1
            return

        if event.event_type == EVENT_QUEUE_CLEARED:
            self._totals["cleared"] += (event.data or {}).get("cleared_count", 0)
            return

        outcome = self._OUTCOMES.get(event.event_type)
        if outcome is None or event.job_id is None:
            return

        data = event.data or {}
        self._entries.append(
            HistoryEntry(
                job_id=event.job_id,
                event_type=event.event_type,
                category=event.category,
                operation=event.operation,
                priority=event.priority,
                status=outcome,
                timestamp=event.timestamp,
                error=data.get("error"),
                result=data.get("result"),
                duration_seconds=data.get("duration_seconds"),
            )
        )
        self._totals[outcome] += 1

    def recent(self, limit: int = 50, status: str | None = None) -> list[HistoryEntry]:
        """Most recent entries first, optionally filtered by outcome."""
        entries = [
            entry for entry in reversed(self._entries)
            if status is None or entry.status == status
        ]
        return entries[:limit]

    def get(self, job_id: str) -> HistoryEntry | None:
        for entry in reversed(self._entries):
            if entry.job_id == job_id:
                return entry
        return None

    def totals(self) -> dict[str, int]:
        return {
            key: self._totals[key]
            for key in ("submitted", "completed", "failed", "removed", "cleared")
        }

    def __len__(self) -> int:
        return len(self._entries)


class MetricsSink:
    """Record lifecycle events as Prometheus metrics."""

    def __init__(self, metrics: MetricsCollector):
        self._metrics = metrics

    async def publish(self, event: JobEvent) -> None:
        category = event.category.value if event.category else "unknown"

        if event.event_type == EVENT_JOB_ADDED:
            priority = event.priority.value if event.priority else "unknown"
            self._metrics.record_job_submitted(category=category, priority=priority)

        elif event.event_type in (EVENT_JOB_COMPLETED, EVENT_JOB_FAILED):
            status = "completed" if event.event_type == EVENT_JOB_COMPLETED else "failed"
            duration = (event.data or {}).get("duration_seconds") or 0.0
            self._metrics.record_job_finished(
                category=category,
                status=status,
                duration_seconds=duration,
            )

        elif event.event_type == EVENT_JOB_REMOVED:
            self._metrics.record_jobs_removed(reason="removed")

        elif event.event_type == EVENT_QUEUE_CLEARED:
            count = (event.data or {}).get("cleared_count", 0)
            if count:
                self._metrics.record_jobs_removed(reason="cleared", count=count)
