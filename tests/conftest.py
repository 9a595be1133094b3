"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from helpers import EventRecorder, GatedRoutine
from procqueue.api.main import create_app
from procqueue.config import Settings
from procqueue.constants import JobCategory
from procqueue.queue import OperationDispatcher, Scheduler


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def gated() -> GatedRoutine:
    return GatedRoutine()


@pytest.fixture
def dispatcher(gated: GatedRoutine) -> OperationDispatcher:
    """Dispatcher with only the gated routine registered for images."""
    dispatcher = OperationDispatcher()
    dispatcher.register(JobCategory.IMAGE, "gated", gated)
    return dispatcher


@pytest_asyncio.fixture
async def scheduler(
    dispatcher: OperationDispatcher,
    recorder: EventRecorder,
) -> AsyncGenerator[Scheduler]:
    """A scheduler with a ceiling of 2 and no default deadline."""
    scheduler = Scheduler(
        dispatcher=dispatcher,
        sink=recorder,
        max_concurrent=2,
        job_timeout_seconds=None,
        finished_retention=100,
    )
    yield scheduler
    await scheduler.shutdown(wait=False)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        queue_max_concurrent=2,
        rate_limit_requests_per_minute=1000,
        log_level="DEBUG",
        log_format="console",
    )


@pytest_asyncio.fixture
async def app(test_settings: Settings) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app for testing; the scheduler starts on first submit."""
    app = create_app(test_settings)
    yield app
    await app.state.runtime.scheduler.shutdown(wait=False)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
