"""
Unit tests for the status reporter.
"""

import asyncio

import pytest

from helpers import GatedRoutine, job_spec, wait_until
from procqueue.queue import CompositeSink, JobHistory, OperationDispatcher, Scheduler, StatusReporter


class TestStatusReporter:
    """Tests for StatusReporter."""

    @pytest.mark.asyncio
    async def test_summary_without_history(self, scheduler: Scheduler, gated: GatedRoutine):
        reporter = StatusReporter(scheduler)
        for name in ("a", "b", "c"):
            await scheduler.submit(job_spec(name))
        await wait_until(lambda: len(gated.started) == 2)

        summary = reporter.summary()

        assert summary["queue"] == {
            "queued": 1,
            "processing": 2,
            "total": 3,
            "max_concurrent": 2,
        }
        assert summary["utilization"] == 1.0
        assert "history" not in summary
        assert reporter.has_history is False
        assert reporter.recent_jobs() == []

    @pytest.mark.asyncio
    async def test_summary_with_history(self, dispatcher: OperationDispatcher):
        history = JobHistory()
        scheduler = Scheduler(dispatcher=dispatcher, sink=CompositeSink([history]), max_concurrent=2)
        reporter = StatusReporter(scheduler, history=history)
        try:
            ok = await scheduler.submit(job_spec("ok", auto=True))
            await scheduler.submit(job_spec("bad", auto=True, fail="nope"))
            await asyncio.wait_for(scheduler.wait_idle(), timeout=2)
        finally:
            await scheduler.shutdown()

        summary = reporter.summary()

        assert summary["queue"]["total"] == 0
        assert summary["utilization"] == 0.0
        assert summary["history"]["submitted"] == 2
        assert summary["history"]["completed"] == 1
        assert summary["history"]["failed"] == 1
        assert reporter.job_status(ok).status == "completed"
        assert {entry.status for entry in reporter.recent_jobs()} == {"completed", "failed"}
