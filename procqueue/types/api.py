"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from procqueue.constants import JobCategory, JobPriority, JobStatus
from procqueue.queue.notifications import HistoryEntry
from procqueue.types.job import JobSpec, QueueSnapshot


class CreateJobRequest(JobSpec):
    """Request body for submitting a processing job."""

    model_config = {
        "json_schema_extra": {
            "example": {
                "category": "image",
                "target_path": "./uploads/photo.png",
                "operation": "resize",
                "options": {"width": 800, "quality": 85},
                "priority": "high",
            }
        }
    }


class CreateJobResponse(BaseModel):
    """Response body after submitting a job."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED
    category: JobCategory
    operation: str
    priority: JobPriority
    message: str = "Job added to queue successfully"


class RemoveJobResponse(BaseModel):
    """Response body after removing a queued job."""

    job_id: str
    category: JobCategory
    message: str = "Job removed from queue"


class ClearQueueResponse(BaseModel):
    """Response body after clearing the queue."""

    cleared_count: int
    message: str = "Queue cleared successfully"


class JobListResponse(BaseModel):
    """Live queue counts with recently finished jobs."""

    queue: QueueSnapshot
    recent: list[HistoryEntry]
    history_enabled: bool


class OperationsResponse(BaseModel):
    """Operations accepted per category."""

    operations: dict[str, list[str]]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    scheduler: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Any | None = None

