"""OpenTelemetry adapters for the metrics and trace hooks."""

from __future__ import annotations

from typing import Optional

from opentelemetry import metrics, trace
from opentelemetry.trace import SpanKind

from ..model import Context
from .metrics import TimingMetricsReporter
from .trace import Operation, T, TraceReporter


class OtelMetricsReporter(TimingMetricsReporter):
    """Counts operations and records their duration through an OTel meter."""

    def __init__(self, meter_name: str = "snapstore.s3_snapshot") -> None:
        meter = metrics.get_meter(meter_name)
        self._operations = meter.create_counter(
            "snapshot_store.operations",
            description="Completed snapshot store operations",
        )
        self._duration = meter.create_histogram(
            "snapshot_store.duration",
            description="Snapshot store operation duration",
            unit="ms",
        )

    def record(
        self,
        operation: str,
        outcome: str,
        duration_ms: float,
        context: Context,
        error: Optional[Exception] = None,
    ) -> None:
        attributes = {"operation": operation, "outcome": outcome}
        if error is not None:
            attributes["error.type"] = type(error).__name__
        self._operations.add(1, attributes=attributes)
        self._duration.record(duration_ms, attributes=attributes)


class OtelTraceReporter(TraceReporter):
    """Opens one span per operation; failures are recorded on the span."""

    def __init__(self, tracer_name: str = "snapstore.s3_snapshot") -> None:
        self._tracer = trace.get_tracer(tracer_name)

    async def trace(self, name: str, context: Context, operation: Operation[T]) -> T:
        attributes = {
            "snapshot.persistence_id": context.persistence_id.as_string(),
            "snapshot.context_id": str(context.id),
        }
        with self._tracer.start_as_current_span(name, kind=SpanKind.CLIENT, attributes=attributes):
            return await operation()
