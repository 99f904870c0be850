"""OpenTelemetry tracing configuration.

Each command runs in one ``command.execute`` span tagged with the database,
the statement and, once known, the operation and error kind.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode


MAX_STATEMENT_LENGTH = 256

_tracer: trace.Tracer | None = None


def setup_tracing(
    service_name: str = "mini_rdbms",
    otlp_endpoint: str | None = None,
    console_export: bool = False,
) -> trace.Tracer:
    """
    Set up OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing
        otlp_endpoint: OTLP collector endpoint (e.g., "http://localhost:4317")
        console_export: Whether to also export to console (for debugging)

    Returns:
        Configured tracer instance
    """
    global _tracer

    from mini_rdbms import __version__

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.version": __version__,
        }
    )

    provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    if console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(service_name)

    return _tracer


def get_tracer() -> trace.Tracer:
    """Get the global tracer instance."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer("mini_rdbms")
    return _tracer


@contextmanager
def command_span(
    database: str,
    statement: str,
    tracer: trace.Tracer | None = None,
) -> Generator[trace.Span, None, None]:
    """
    Open the span that covers one command.

    Args:
        database: Database the command runs against
        statement: Command text, cut to MAX_STATEMENT_LENGTH characters
        tracer: Tracer to use (default: the global tracer)

    Yields:
        The created span
    """
    tracer = tracer or get_tracer()
    attributes = {
        "db.system": "mini_rdbms",
        "db.name": database,
        "db.statement": statement[:MAX_STATEMENT_LENGTH],
    }
    with tracer.start_as_current_span("command.execute", attributes=attributes) as span:
        yield span


def record_command_outcome(
    span: trace.Span, command_type: str, error_kind: str | None
) -> None:
    """Tag a command span with the operation and mark failures as errors."""
    span.set_attribute("db.operation", command_type)
    if error_kind is None:
        span.set_status(Status(StatusCode.OK))
        return
    span.set_attribute("mini_rdbms.error_kind", error_kind)
    span.set_status(Status(StatusCode.ERROR, error_kind))
