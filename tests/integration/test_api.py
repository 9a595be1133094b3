"""
Integration tests for the API endpoints.
"""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from PIL import Image

from helpers import GatedRoutine, wait_until
from procqueue.api.main import create_app
from procqueue.config import Settings
from procqueue.constants import JobCategory, JobStatus
from procqueue.queue import Scheduler


def scheduler_of(app: FastAPI) -> Scheduler:
    return app.state.runtime.scheduler


@pytest.fixture
def held(app: FastAPI) -> GatedRoutine:
    """Register a blocking image operation on the app's dispatcher."""
    routine = GatedRoutine()
    app.state.runtime.dispatcher.register(JobCategory.IMAGE, "hold", routine)
    return routine


def hold_job(name: str, priority: str = "normal") -> dict:
    return {
        "category": "image",
        "target_path": f"./uploads/{name}.png",
        "operation": "hold",
        "options": {"name": name},
        "priority": priority,
    }


class TestQueueAPI:
    """Integration tests for queue endpoints."""

    @pytest.mark.asyncio
    async def test_submit_and_process_image(
        self,
        app: FastAPI,
        client: AsyncClient,
        tmp_path: Path,
    ):
        """Test a resize job runs to completion."""
        image_path = tmp_path / "photo.png"
        Image.new("RGB", (80, 40), "blue").save(image_path)

        response = await client.post(
            "/api/queue/jobs",
            json={
                "category": "image",
                "target_path": str(image_path),
                "operation": "resize",
                "options": {"width": 40},
                "priority": "high",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["job_id"].startswith("job_")
        assert data["status"] == JobStatus.QUEUED
        assert data["priority"] == "high"

        await asyncio.wait_for(scheduler_of(app).wait_idle(), timeout=5)

        response = await client.get(f"/api/queue/jobs/{data['job_id']}")

        assert response.status_code == 200
        job = response.json()
        assert job["status"] == JobStatus.COMPLETED
        assert job["result"]["dimensions"] == {"width": 40, "height": 20}
        assert job["error"] is None

    @pytest.mark.asyncio
    async def test_unsupported_operation_fails_job(self, app: FastAPI, client: AsyncClient):
        """Test an unknown operation is accepted, then fails."""
        response = await client.post(
            "/api/queue/jobs",
            json={"category": "document", "target_path": "./a.pdf", "operation": "resize"},
        )
        assert response.status_code == 201
        job_id = response.json()["job_id"]

        await asyncio.wait_for(scheduler_of(app).wait_idle(), timeout=5)

        job = (await client.get(f"/api/queue/jobs/{job_id}")).json()
        assert job["status"] == JobStatus.FAILED
        assert job["error"] == "Unsupported document operation: resize"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"target_path": "./a.png", "operation": "resize"},
            {"category": "archive", "target_path": "./a.zip", "operation": "extract"},
            {"category": "image", "target_path": "./a.png", "operation": "resize", "priority": "urgent"},
            {"category": "image", "target_path": "", "operation": "resize"},
        ],
    )
    async def test_submit_validation_error(self, client: AsyncClient, body: dict):
        """Test malformed jobs are rejected."""
        response = await client.post("/api/queue/jobs", json=body)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_get_job_not_found(self, client: AsyncClient):
        """Test getting a non-existent job."""
        response = await client.get("/api/queue/jobs/job_missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_queue_status_counts(
        self,
        client: AsyncClient,
        held: GatedRoutine,
    ):
        """Test status reflects the concurrency ceiling."""
        for name in ("a", "b", "c"):
            await client.post("/api/queue/jobs", json=hold_job(name))
        await wait_until(lambda: len(held.started) == 2)

        response = await client.get("/api/queue/status")

        assert response.status_code == 200
        assert response.json() == {
            "queued": 1,
            "processing": 2,
            "total": 3,
            "max_concurrent": 2,
        }
        held.release("a", "b", "c")

    @pytest.mark.asyncio
    async def test_remove_queued_job(self, client: AsyncClient, held: GatedRoutine):
        """Test a queued job can be removed but a processing one cannot."""
        first = (await client.post("/api/queue/jobs", json=hold_job("a"))).json()
        await client.post("/api/queue/jobs", json=hold_job("b"))
        queued = (await client.post("/api/queue/jobs", json=hold_job("c"))).json()
        await wait_until(lambda: len(held.started) == 2)

        response = await client.delete(f"/api/queue/jobs/{queued['job_id']}")
        assert response.status_code == 200
        assert response.json()["job_id"] == queued["job_id"]
        assert response.json()["category"] == "image"

        response = await client.delete(f"/api/queue/jobs/{queued['job_id']}")
        assert response.status_code == 404

        response = await client.delete(f"/api/queue/jobs/{first['job_id']}")
        assert response.status_code == 404

        assert (await client.get(f"/api/queue/jobs/{queued['job_id']}")).status_code == 404
        held.release("a", "b")

    @pytest.mark.asyncio
    async def test_clear_queue(self, app: FastAPI, client: AsyncClient, held: GatedRoutine):
        """Test clearing discards queued jobs only."""
        for name in ("a", "b", "c", "d"):
            await client.post("/api/queue/jobs", json=hold_job(name))
        await wait_until(lambda: len(held.started) == 2)

        response = await client.delete("/api/queue/jobs")

        assert response.status_code == 200
        assert response.json()["cleared_count"] == 2

        status = (await client.get("/api/queue/status")).json()
        assert status["queued"] == 0
        assert status["processing"] == 2

        held.release("a", "b")
        await asyncio.wait_for(scheduler_of(app).wait_idle(), timeout=5)

        summary = (await client.get("/api/queue/summary")).json()
        assert summary["history"]["completed"] == 2
        assert summary["history"]["cleared"] == 2

    @pytest.mark.asyncio
    async def test_list_recent_jobs(self, app: FastAPI, client: AsyncClient, held: GatedRoutine):
        """Test listing recently finished jobs with a status filter."""
        ok = (await client.post("/api/queue/jobs", json=hold_job("ok"))).json()
        bad_job = hold_job("bad")
        bad_job["options"]["fail"] = "broken"
        bad = (await client.post("/api/queue/jobs", json=bad_job)).json()
        held.release("ok", "bad")
        await asyncio.wait_for(scheduler_of(app).wait_idle(), timeout=5)

        response = await client.get("/api/queue/jobs")
        assert response.status_code == 200
        data = response.json()
        assert data["history_enabled"] is True
        assert data["queue"]["total"] == 0
        assert {entry["job_id"] for entry in data["recent"]} == {ok["job_id"], bad["job_id"]}

        response = await client.get("/api/queue/jobs", params={"status": "failed"})
        recent = response.json()["recent"]
        assert [entry["job_id"] for entry in recent] == [bad["job_id"]]
        assert recent[0]["error"] == "broken"

        response = await client.get("/api/queue/jobs", params={"status": "queued"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_operations(self, client: AsyncClient):
        """Test the operation table is exposed."""
        response = await client.get("/api/queue/operations")

        assert response.status_code == 200
        operations = response.json()["operations"]
        assert "resize" in operations["image"]
        assert "extract" in operations["document"]
        assert operations["media"] == ["extract"]

    @pytest.mark.asyncio
    async def test_submit_after_shutdown(self, app: FastAPI, client: AsyncClient):
        """Test submissions are refused once the queue is shut down."""
        await scheduler_of(app).shutdown()

        response = await client.post(
            "/api/queue/jobs",
            json={"category": "media", "target_path": "./clip.mp4", "operation": "extract"},
        )

        assert response.status_code == 503


class TestRateLimiting:
    """Integration tests for the rate limit middleware."""

    @pytest_asyncio.fixture
    async def limited_client(self, test_settings: Settings):
        app = create_app(test_settings.model_copy(update={"rate_limit_requests_per_minute": 2}))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    @pytest.mark.asyncio
    async def test_excess_requests_are_rejected(self, limited_client: AsyncClient):
        for _ in range(2):
            assert (await limited_client.get("/api/queue/status")).status_code == 200

        response = await limited_client.get("/api/queue/status")

        assert response.status_code == 429
        assert "Retry-After" in response.headers
        assert response.json()["error"].startswith("Too many requests")

    @pytest.mark.asyncio
    async def test_health_is_exempt(self, limited_client: AsyncClient):
        for _ in range(5):
            assert (await limited_client.get("/health")).status_code == 200


class TestHealthEndpoints:
    """Integration tests for health endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        """Test health check endpoint."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["scheduler"] in ["running", "idle"]

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        """Test the liveness endpoint."""
        response = await client.get("/live")

        assert response.status_code == 200
        assert response.json()["alive"] is True

    @pytest.mark.asyncio
    async def test_readiness(self, client: AsyncClient):
        """Test the readiness endpoint."""
        response = await client.get("/ready")

        assert response.status_code == 200
        assert "ready" in response.json()

    @pytest.mark.asyncio
    async def test_metrics(self, client: AsyncClient):
        """Test metrics endpoint."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers.get("content-type", "")
        assert "procqueue_queue_depth" in response.text
