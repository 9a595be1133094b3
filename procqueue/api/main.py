"""
FastAPI application entry point.
"""

import logging
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from procqueue import __version__
from procqueue.api.deps import build_runtime
from procqueue.api.rate_limit import RateLimiter, create_rate_limit_middleware
from procqueue.api.routes import health_router, queue_router
from procqueue.api.websocket import websocket_handler
from procqueue.config import Settings, get_settings
from procqueue.observability.logging import setup_logging
from procqueue.observability.metrics import get_metrics, setup_metrics
from procqueue.observability.tracing import instrument_fastapi, setup_tracing

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Starts the scheduler's dispatch task on startup and lets in-flight
    jobs finish on shutdown.
    """
    settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)
    setup_tracing(settings)

    scheduler = app.state.runtime.scheduler
    await scheduler.start()
    logger.info("Application started")

    yield

    await scheduler.shutdown(wait=True)
    logger.info("Application shutdown")


async def record_request_metrics(request: Request, call_next):
    """Time each request and record it under its route template."""
    start = time.perf_counter()
    response = await call_next(request)

    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    get_metrics().record_api_request(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
        duration_seconds=time.perf_counter() - start,
    )
    return response


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Overrides the environment-derived settings.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()
    metrics = setup_metrics()

    app = FastAPI(
        title="Processing Queue API",
        description="Priority job queue for image, document and media processing",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.runtime = build_runtime(settings, metrics)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(
        BaseHTTPMiddleware,
        dispatch=create_rate_limit_middleware(
            RateLimiter(requests_per_minute=settings.rate_limit_requests_per_minute)
        ),
    )

    app.add_middleware(BaseHTTPMiddleware, dispatch=record_request_metrics)

    app.include_router(health_router)
    app.include_router(queue_router)

    @app.websocket("/ws/jobs")
    async def jobs_websocket(websocket: WebSocket):
        """
        WebSocket endpoint for real-time job updates.

        Every lifecycle event is pushed to the client unless it
        subscribes to specific job ids.
        """
        await websocket_handler(websocket, app.state.runtime.ws_manager)

    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        create_app(settings),
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
