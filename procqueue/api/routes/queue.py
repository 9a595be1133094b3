"""
Processing queue routes.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from procqueue.api.deps import QueueRuntime, get_reporter, get_runtime, get_scheduler
from procqueue.constants import API_QUEUE_PREFIX
from procqueue.queue import Scheduler, SchedulerClosedError, StatusReporter
from procqueue.types.api import (
    ClearQueueResponse,
    CreateJobRequest,
    CreateJobResponse,
    ErrorResponse,
    JobListResponse,
    OperationsResponse,
    RemoveJobResponse,
)
from procqueue.types.job import JobStatusSnapshot, QueueSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(prefix=API_QUEUE_PREFIX, tags=["Queue"])

SchedulerDep = Annotated[Scheduler, Depends(get_scheduler)]
ReporterDep = Annotated[StatusReporter, Depends(get_reporter)]

NOT_FOUND_RESPONSE = {status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}}


@router.get(
    "/status",
    response_model=QueueSnapshot,
    summary="Get queue status",
)
async def queue_status(reporter: ReporterDep) -> QueueSnapshot:
    """Return queued and processing counts and the concurrency ceiling."""
    return reporter.queue_status()


@router.get(
    "/summary",
    summary="Get queue summary",
    description="Live queue counts plus running totals of job outcomes.",
)
async def queue_summary(reporter: ReporterDep) -> dict:
    return reporter.summary()


@router.get(
    "/operations",
    response_model=OperationsResponse,
    summary="List supported operations",
)
async def list_operations(
    runtime: Annotated[QueueRuntime, Depends(get_runtime)],
) -> OperationsResponse:
    return OperationsResponse(operations=runtime.dispatcher.supported_operations())


@router.post(
    "/jobs",
    response_model=CreateJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a job",
    description="Add a processing job to the queue. Execution happens asynchronously.",
)
async def create_job(
    request: CreateJobRequest,
    scheduler: SchedulerDep,
) -> CreateJobResponse:
    """
    Submit a new job.

    Args:
        request: Job specification.
        scheduler: The queue scheduler.

    Returns:
        CreateJobResponse with the assigned job id.

    Raises:
        HTTPException: If the scheduler is shutting down.
    """
    try:
        job_id = await scheduler.submit(request)
    except SchedulerClosedError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Queue is shutting down",
        ) from None

    return CreateJobResponse(
        job_id=job_id,
        category=request.category,
        operation=request.operation,
        priority=request.priority,
    )


@router.get(
    "/jobs",
    response_model=JobListResponse,
    summary="List jobs",
    description="Queue counts with the most recently finished or removed jobs.",
)
async def list_jobs(
    reporter: ReporterDep,
    limit: int = Query(default=50, ge=1, le=500),
    status: str | None = Query(default=None, pattern="^(completed|failed|removed)$"),
) -> JobListResponse:
    return JobListResponse(
        queue=reporter.queue_status(),
        recent=reporter.recent_jobs(limit=limit, status=status),
        history_enabled=reporter.has_history,
    )


@router.get(
    "/jobs/{job_id}",
    response_model=JobStatusSnapshot,
    responses=NOT_FOUND_RESPONSE,
    summary="Get job status",
)
async def get_job(job_id: str, reporter: ReporterDep) -> JobStatusSnapshot:
    """
    Get the status of a job.

    Raises:
        HTTPException: If the job is not tracked.
    """
    snapshot = reporter.job_status(job_id)

    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return snapshot


@router.delete(
    "/jobs/{job_id}",
    response_model=RemoveJobResponse,
    responses=NOT_FOUND_RESPONSE,
    summary="Remove a queued job",
    description="Remove a job that has not started. Processing or finished jobs are not found.",
)
async def remove_job(job_id: str, scheduler: SchedulerDep) -> RemoveJobResponse:
    removed = await scheduler.remove_job(job_id)

    if removed is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Job not found",
        )

    return RemoveJobResponse(job_id=removed.id, category=removed.category)


@router.delete(
    "/jobs",
    response_model=ClearQueueResponse,
    summary="Clear the queue",
    description="Discard every queued job. Jobs already processing are unaffected.",
)
async def clear_queue(scheduler: SchedulerDep) -> ClearQueueResponse:
    cleared_count = await scheduler.clear_queue()
    return ClearQueueResponse(cleared_count=cleared_count)
