"""Infrastructure layer - cross-cutting concerns."""

from mini_rdbms.infrastructure.config import Config, get_config
from mini_rdbms.infrastructure.logging import database_context, get_logger, setup_logging
from mini_rdbms.infrastructure.metrics import setup_metrics, get_metrics, MetricsRegistry
from mini_rdbms.infrastructure.tracing import (
    command_span,
    get_tracer,
    record_command_outcome,
    setup_tracing,
)

__all__ = [
    "Config",
    "get_config",
    "setup_logging",
    "get_logger",
    "database_context",
    "setup_metrics",
    "get_metrics",
    "MetricsRegistry",
    "setup_tracing",
    "get_tracer",
    "command_span",
    "record_command_outcome",
]
