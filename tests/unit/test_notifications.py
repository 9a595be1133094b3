"""
Unit tests for notification sinks.
"""

import pytest
from prometheus_client import CollectorRegistry

from procqueue.constants import JobCategory, JobPriority
from procqueue.observability.metrics import MetricsCollector
from procqueue.queue import CompositeSink, JobHistory, MetricsSink
from procqueue.types.events import JobEvent
from procqueue.types.job import Job, JobSpec


def make_job(category: str = "image", priority: str = "normal") -> Job:
    spec = JobSpec(
        category=category,
        target_path="/tmp/file",
        operation="resize",
        priority=priority,
    )
    return Job.from_spec(spec, 0)


def completed_job() -> Job:
    job = make_job()
    job.mark_processing()
    job.mark_completed({"ok": True})
    return job


def failed_job(error: str = "boom") -> Job:
    job = make_job()
    job.mark_processing()
    job.mark_failed(error)
    return job


class TestCompositeSink:
    """Tests for CompositeSink."""

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_block_others(self):
        class BrokenSink:
            async def publish(self, event):
                raise RuntimeError("down")

        history = JobHistory()
        sink = CompositeSink([BrokenSink(), history])

        await sink.publish(JobEvent.job_added(make_job()))

        assert history.totals()["submitted"] == 1


class TestJobHistory:
    """Tests for JobHistory."""

    @pytest.mark.asyncio
    async def test_records_outcomes(self):
        history = JobHistory()
        done = completed_job()
        bad = failed_job("unreadable")
        removed = make_job()

        for job in (done, bad, removed):
            await history.publish(JobEvent.job_added(job))
        await history.publish(JobEvent.job_completed(done))
        await history.publish(JobEvent.job_failed(bad))
        await history.publish(JobEvent.job_removed(removed))
        await history.publish(JobEvent.queue_cleared(4))

        assert history.totals() == {
            "submitted": 3,
            "completed": 1,
            "failed": 1,
            "removed": 1,
            "cleared": 4,
        }
        assert [entry.status for entry in history.recent()] == ["removed", "failed", "completed"]
        assert history.get(bad.id).error == "unreadable"
        assert history.get(done.id).result == {"ok": True}

    @pytest.mark.asyncio
    async def test_started_events_are_not_recorded(self):
        history = JobHistory()
        job = make_job()
        job.mark_processing()

        await history.publish(JobEvent.job_started(job))

        assert len(history) == 0

    @pytest.mark.asyncio
    async def test_recent_filters_and_limits(self):
        history = JobHistory()
        for _ in range(3):
            await history.publish(JobEvent.job_completed(completed_job()))
        await history.publish(JobEvent.job_failed(failed_job()))

        assert len(history.recent(limit=2)) == 2
        assert [entry.status for entry in history.recent(status="failed")] == ["failed"]

    @pytest.mark.asyncio
    async def test_is_bounded(self):
        history = JobHistory(max_entries=2)
        jobs = [completed_job() for _ in range(3)]

        for job in jobs:
            await history.publish(JobEvent.job_completed(job))

        assert len(history) == 2
        assert history.get(jobs[0].id) is None
        assert history.totals()["completed"] == 3


class TestMetricsSink:
    """Tests for MetricsSink."""

    @pytest.fixture
    def registry(self) -> CollectorRegistry:
        return CollectorRegistry()

    @pytest.fixture
    def sink(self, registry: CollectorRegistry) -> MetricsSink:
        return MetricsSink(MetricsCollector(registry=registry))

    @pytest.mark.asyncio
    async def test_counts_submissions(self, sink: MetricsSink, registry: CollectorRegistry):
        await sink.publish(JobEvent.job_added(make_job("media", "high")))

        value = registry.get_sample_value(
            "procqueue_jobs_submitted_total",
            {"category": JobCategory.MEDIA.value, "priority": JobPriority.HIGH.value},
        )
        assert value == 1.0

    @pytest.mark.asyncio
    async def test_counts_outcomes(self, sink: MetricsSink, registry: CollectorRegistry):
        await sink.publish(JobEvent.job_completed(completed_job()))
        await sink.publish(JobEvent.job_failed(failed_job()))
        await sink.publish(JobEvent.job_failed(failed_job()))

        def finished(status: str) -> float | None:
            return registry.get_sample_value(
                "procqueue_jobs_finished_total",
                {"category": "image", "status": status},
            )

        assert finished("completed") == 1.0
        assert finished("failed") == 2.0

    @pytest.mark.asyncio
    async def test_counts_removals(self, sink: MetricsSink, registry: CollectorRegistry):
        await sink.publish(JobEvent.job_removed(make_job()))
        await sink.publish(JobEvent.queue_cleared(5))
        await sink.publish(JobEvent.queue_cleared(0))

        assert registry.get_sample_value(
            "procqueue_jobs_removed_total", {"reason": "removed"}
        ) == 1.0
        assert registry.get_sample_value(
            "procqueue_jobs_removed_total", {"reason": "cleared"}
        ) == 5.0
