"""
Instrumentation for the snapshot store.

- MetricsReporter: before/after/error hooks per operation
- TraceReporter: wraps each operation, e.g. in a tracing span

Both default to no-op implementations, so the store always calls them
and never checks whether instrumentation is configured.
"""

from __future__ import annotations

from typing import Callable, Dict

from ..config import SnapshotPluginConfig
from ..errors import ConfigurationError
from .hooks import instrumented
from .metrics import LoggingMetricsReporter, MetricsReporter, TimingMetricsReporter
from .otel import OtelMetricsReporter, OtelTraceReporter
from .trace import TraceReporter

METRICS_REPORTERS: Dict[str, Callable[[], MetricsReporter]] = {
    "none": MetricsReporter,
    "logging": LoggingMetricsReporter,
    "opentelemetry": OtelMetricsReporter,
}

TRACE_REPORTERS: Dict[str, Callable[[], TraceReporter]] = {
    "none": TraceReporter,
    "opentelemetry": OtelTraceReporter,
}


def create_metrics_reporter(config: SnapshotPluginConfig) -> MetricsReporter:
    """Factory function to create the configured metrics reporter.

    Raises:
        ConfigurationError: If the identifier is not registered
    """
    factory = METRICS_REPORTERS.get(config.metrics_reporter)
    if factory is None:
        raise ConfigurationError(
            f"Unknown metrics reporter '{config.metrics_reporter}'. "
            f"Must be one of: {', '.join(sorted(METRICS_REPORTERS))}",
            setting="metrics_reporter",
        )
    return factory()


def create_trace_reporter(config: SnapshotPluginConfig) -> TraceReporter:
    """Factory function to create the configured trace reporter.

    Raises:
        ConfigurationError: If the identifier is not registered
    """
    factory = TRACE_REPORTERS.get(config.trace_reporter)
    if factory is None:
        raise ConfigurationError(
            f"Unknown trace reporter '{config.trace_reporter}'. "
            f"Must be one of: {', '.join(sorted(TRACE_REPORTERS))}",
            setting="trace_reporter",
        )
    return factory()


__all__ = [
    "MetricsReporter",
    "TimingMetricsReporter",
    "LoggingMetricsReporter",
    "OtelMetricsReporter",
    "TraceReporter",
    "OtelTraceReporter",
    "METRICS_REPORTERS",
    "TRACE_REPORTERS",
    "create_metrics_reporter",
    "create_trace_reporter",
    "instrumented",
]
