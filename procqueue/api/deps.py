"""
Queue runtime wiring and FastAPI dependencies.
"""

from dataclasses import dataclass

from fastapi import Request

from procqueue.api.websocket import WebSocketManager
from procqueue.config import Settings
from procqueue.observability.metrics import MetricsCollector
from procqueue.processing import create_default_dispatcher
from procqueue.queue import (
    CompositeSink,
    JobHistory,
    MetricsSink,
    OperationDispatcher,
    Scheduler,
    StatusReporter,
)


@dataclass
class QueueRuntime:
    """Everything the HTTP layer needs to talk to the queue."""

    scheduler: Scheduler
    reporter: StatusReporter
    dispatcher: OperationDispatcher
    history: JobHistory
    ws_manager: WebSocketManager


def build_runtime(settings: Settings, metrics: MetricsCollector) -> QueueRuntime:
    """
    Assemble the scheduler with its dispatcher and notification sinks.

    Args:
        settings: Application settings.
        metrics: Collector fed by the metrics sink.

    Returns:
        QueueRuntime ready to serve requests.
    """
    dispatcher = create_default_dispatcher()
    history = JobHistory(max_entries=settings.queue_history_size)
    ws_manager = WebSocketManager()

    sink = CompositeSink([history, MetricsSink(metrics), ws_manager])

    scheduler = Scheduler(
        dispatcher=dispatcher,
        sink=sink,
        max_concurrent=settings.queue_max_concurrent,
        job_timeout_seconds=settings.queue_job_timeout_seconds,
        finished_retention=settings.queue_finished_retention,
    )

    return QueueRuntime(
        scheduler=scheduler,
        reporter=StatusReporter(scheduler, history),
        dispatcher=dispatcher,
        history=history,
        ws_manager=ws_manager,
    )


def get_runtime(request: Request) -> QueueRuntime:
    return request.app.state.runtime


def get_scheduler(request: Request) -> Scheduler:
    return get_runtime(request).scheduler


def get_reporter(request: Request) -> StatusReporter:
    return get_runtime(request).reporter
