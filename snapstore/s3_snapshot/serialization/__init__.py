"""
Snapshot payload serializers.

- JsonSnapshotSerializer: JSON-compatible values in an identity envelope
- ByteArraySnapshotSerializer: caller-encoded bytes

Both support optional gzip compression and report to the configured
metrics/trace reporters.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from ..config import SnapshotPluginConfig
from ..errors import ConfigurationError
from ..instrumentation import MetricsReporter, TraceReporter
from .base import InstrumentedSnapshotSerializer, SnapshotSerializer
from .byte_array import ByteArraySnapshotSerializer
from .json_serializer import JsonSnapshotSerializer

SERIALIZERS: Dict[str, Callable[..., InstrumentedSnapshotSerializer]] = {
    "json": JsonSnapshotSerializer,
    "bytes": ByteArraySnapshotSerializer,
}


def create_serializer(
    config: SnapshotPluginConfig,
    metrics_reporter: Optional[MetricsReporter] = None,
    trace_reporter: Optional[TraceReporter] = None,
) -> SnapshotSerializer:
    """Factory function to create the configured serializer.

    Raises:
        ConfigurationError: If the identifier is not registered
    """
    factory = SERIALIZERS.get(config.serializer)
    if factory is None:
        raise ConfigurationError(
            f"Unknown serializer '{config.serializer}'. "
            f"Must be one of: {', '.join(sorted(SERIALIZERS))}",
            setting="serializer",
        )
    return factory(
        compression=config.compression,
        metrics_reporter=metrics_reporter,
        trace_reporter=trace_reporter,
    )


__all__ = [
    "SnapshotSerializer",
    "InstrumentedSnapshotSerializer",
    "JsonSnapshotSerializer",
    "ByteArraySnapshotSerializer",
    "SERIALIZERS",
    "create_serializer",
]
