"""
Health check routes.
"""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from procqueue import __version__
from procqueue.api.deps import get_reporter, get_scheduler
from procqueue.observability.metrics import get_metrics
from procqueue.queue import Scheduler, StatusReporter
from procqueue.types.api import HealthResponse

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health of the API and the queue scheduler.",
)
async def health_check(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)],
) -> HealthResponse:
    """
    Perform a health check.

    The scheduler starts lazily, so an idle scheduler that has not
    started yet still counts as healthy.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        scheduler="running" if scheduler.is_running else "idle",
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check if the service is ready to receive traffic.",
)
async def readiness_check(
    scheduler: Annotated[Scheduler, Depends(get_scheduler)],
) -> dict:
    return {"ready": scheduler.is_running}


@router.get(
    "/live",
    summary="Liveness check",
    description="Check if the service is alive.",
)
async def liveness_check() -> dict:
    return {"alive": True}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Expose Prometheus metrics.",
)
async def metrics(
    reporter: Annotated[StatusReporter, Depends(get_reporter)],
) -> Response:
    """
    Expose Prometheus metrics.

    Queue gauges are refreshed from the scheduler on every scrape.
    """
    metrics_collector = get_metrics()
    snapshot = reporter.queue_status()
    metrics_collector.update_queue_state(
        queued=snapshot.queued,
        processing=snapshot.processing,
    )
    return Response(
        content=metrics_collector.get_metrics(),
        media_type=metrics_collector.get_content_type(),
    )
