"""
OpenTelemetry tracing for job execution and the HTTP layer.

Spans are always recorded so log lines carry trace ids. They leave the
process only when an exporter is switched on in settings.
"""

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Tracer

from procqueue import __version__
from procqueue.config import Settings, get_settings

_tracer: Tracer | None = None


def build_tracer_provider(settings: Settings) -> TracerProvider:
    """Create a provider with the exporters enabled in settings."""
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "service.version": __version__,
            }
        )
    )

    if settings.otel_enabled:
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
            )
        )
    if settings.otel_console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    return provider


def setup_tracing(settings: Settings | None = None) -> Tracer:
    """Install the global tracer provider and return the queue's tracer."""
    global _tracer

    settings = settings or get_settings()
    trace.set_tracer_provider(build_tracer_provider(settings))
    _tracer = trace.get_tracer("procqueue", __version__)
    return _tracer


def get_tracer() -> Tracer:
    """Return the queue's tracer, installing the provider on first use."""
    if _tracer is None:
        return setup_tracing()
    return _tracer


def instrument_fastapi(app: Any) -> None:
    FastAPIInstrumentor.instrument_app(app)
