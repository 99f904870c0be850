"""Prometheus metrics for the relational engine."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
    REGISTRY,
    CollectorRegistry,
)


class MetricsRegistry:
    """Registry of all engine metrics."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize metrics registry."""
        self._registry = registry or REGISTRY

        # Command metrics
        self.commands_total = Counter(
            "rdbms_commands_total",
            "Total number of commands executed",
            ["command_type", "status"],  # status: success, error
            registry=self._registry,
        )

        self.command_latency_seconds = Histogram(
            "rdbms_command_latency_seconds",
            "Command latency in seconds",
            ["command_type"],  # create_table, insert, select, ...
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=self._registry,
        )

        # Storage metrics
        self.index_lookups_total = Counter(
            "rdbms_index_lookups_total",
            "Total primary-key index point lookups",
            ["table"],
            registry=self._registry,
        )

        self.full_scans_total = Counter(
            "rdbms_full_scans_total",
            "Total full table scans",
            ["table"],
            registry=self._registry,
        )

        self.records_written_total = Counter(
            "rdbms_records_written_total",
            "Total records appended to table files",
            ["table"],
            registry=self._registry,
        )

        self.tables_open = Gauge(
            "rdbms_tables_open",
            "Number of open table row stores",
            registry=self._registry,
        )

        # Server info
        self.info = Info(
            "mini_rdbms",
            "Relational engine information",
            registry=self._registry,
        )


# Global metrics registry
_metrics: MetricsRegistry | None = None


def setup_metrics(port: int = 8001, registry: CollectorRegistry | None = None) -> MetricsRegistry:
    """
    Set up Prometheus metrics server.

    Args:
        port: Port for the metrics HTTP server
        registry: Optional custom registry

    Returns:
        The metrics registry
    """
    global _metrics
    _metrics = MetricsRegistry(registry)

    from mini_rdbms import __version__
    _metrics.info.info({
        "version": __version__,
    })

    start_http_server(port, registry=registry or REGISTRY)

    return _metrics


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsRegistry()
    return _metrics
