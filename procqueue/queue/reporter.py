"""
Queue status reporting.

Live counts come from the scheduler. Historical outcome counts exist only
when a JobHistory sink is attached; the scheduler itself keeps no history.
"""

from typing import Any

from procqueue.queue.notifications import HistoryEntry, JobHistory
from procqueue.queue.scheduler import Scheduler
from procqueue.types.job import JobStatusSnapshot, QueueSnapshot


class StatusReporter:
    """Derive status summaries for the HTTP layer."""

    def __init__(self, scheduler: Scheduler, history: JobHistory | None = None):
        self._scheduler = scheduler
        self._history = history

    @property
    def has_history(self) -> bool:
        return self._history is not None

    def queue_status(self) -> QueueSnapshot:
        return self._scheduler.get_queue_snapshot()

    def job_status(self, job_id: str) -> JobStatusSnapshot | None:
        return self._scheduler.get_status(job_id)

    def recent_jobs(self, limit: int = 50, status: str | None = None) -> list[HistoryEntry]:
        if self._history is None:
            return []
        return self._history.recent(limit=limit, status=status)

    def summary(self) -> dict[str, Any]:
        """
        Combine live queue counts with recorded outcomes.

        Returns:
            Dictionary with a ``queue`` snapshot and, when history is
            attached, a ``history`` block of running totals.
        """
        snapshot = self.queue_status()
        summary: dict[str, Any] = {
            "queue": snapshot.model_dump(),
            "utilization": snapshot.processing / snapshot.max_concurrent,
        }
        if self._history is not None:
            summary["history"] = self._history.totals()
        return summary
