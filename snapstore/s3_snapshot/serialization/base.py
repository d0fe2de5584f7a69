"""
Serializer protocol and the instrumented base implementation.

Invariants:
    - serialize() fails only with SnapshotSerializationError
    - deserialize() fails only with SnapshotDeserializationError
    - The metadata returned by deserialize() is taken from the row (i.e.
      from the object key), never from the payload alone
    - Hooks run with the calling store operation's context when one is given

How to change safely:
    - Payload format changes must keep decode() able to read old payloads
"""

from __future__ import annotations

import gzip
import logging
import zlib
from typing import Any, Optional, Protocol, Tuple, runtime_checkable

from ..errors import SnapshotDeserializationError, SnapshotSerializationError
from ..instrumentation import MetricsReporter, TraceReporter, instrumented
from ..model import Context, PersistenceId, SnapshotMetadata, SnapshotRow

logger = logging.getLogger(__name__)


@runtime_checkable
class SnapshotSerializer(Protocol):
    """Protocol for snapshot payload codecs."""

    async def serialize(
        self,
        metadata: SnapshotMetadata,
        snapshot: Any,
        context: Optional[Context] = None,
    ) -> bytes:
        """Encode a snapshot value.

        ``context`` is the calling store operation's context, passed on
        to the instrumentation hooks.

        Raises:
            SnapshotSerializationError: If the value cannot be encoded
        """
        ...

    async def deserialize(
        self,
        row: SnapshotRow,
        context: Optional[Context] = None,
    ) -> Tuple[SnapshotMetadata, Any]:
        """Decode a fetched snapshot.

        Raises:
            SnapshotDeserializationError: If the payload cannot be decoded
        """
        ...


class InstrumentedSnapshotSerializer:
    """Base serializer: compression, error mapping and instrumentation.

    Subclasses implement encode() and decode() for the payload itself.

    Attributes:
        compression: "none" or "gzip"
        metrics_reporter: Receives *_serialize_snapshot / *_deserialize_snapshot hooks
        trace_reporter: Wraps each serializer call
    """

    def __init__(
        self,
        compression: str = "none",
        metrics_reporter: Optional[MetricsReporter] = None,
        trace_reporter: Optional[TraceReporter] = None,
    ) -> None:
        if compression not in ("none", "gzip"):
            raise ValueError(f"Unsupported compression: {compression}")
        self.compression = compression
        self.metrics_reporter = metrics_reporter or MetricsReporter()
        self.trace_reporter = trace_reporter or TraceReporter()

    def encode(self, metadata: SnapshotMetadata, snapshot: Any) -> bytes:
        raise NotImplementedError

    def decode(self, row: SnapshotRow, payload: bytes) -> Any:
        raise NotImplementedError

    async def serialize(
        self,
        metadata: SnapshotMetadata,
        snapshot: Any,
        context: Optional[Context] = None,
    ) -> bytes:
        context = context or Context.new(PersistenceId(metadata.persistence_id))

        async def operation(_: Context) -> bytes:
            try:
                payload = self.encode(metadata, snapshot)
            except SnapshotSerializationError:
                raise
            except Exception as e:
                raise SnapshotSerializationError(
                    f"Failed to serialize snapshot {metadata}: {e}"
                ) from e
            if self.compression == "gzip":
                payload = gzip.compress(payload)
            return payload

        return await instrumented(
            context,
            self.metrics_reporter.before_snapshot_store_serialize_snapshot,
            self.metrics_reporter.after_snapshot_store_serialize_snapshot,
            self.metrics_reporter.error_snapshot_store_serialize_snapshot,
            self.trace_reporter.trace_snapshot_store_serialize_snapshot,
            operation,
        )

    async def deserialize(
        self,
        row: SnapshotRow,
        context: Optional[Context] = None,
    ) -> Tuple[SnapshotMetadata, Any]:
        context = context or Context.new(row.persistence_id)
        metadata = SnapshotMetadata(
            persistence_id=row.persistence_id.as_string(),
            sequence_number=row.sequence_number.value,
            timestamp=row.created,
        )

        async def operation(_: Context) -> Tuple[SnapshotMetadata, Any]:
            payload = row.snapshot
            try:
                if self.compression == "gzip":
                    payload = gzip.decompress(payload)
                snapshot = self.decode(row, payload)
            except SnapshotDeserializationError:
                raise
            except (OSError, EOFError, zlib.error, ValueError, TypeError, KeyError) as e:
                raise SnapshotDeserializationError(
                    f"Failed to deserialize snapshot {metadata}: {e}"
                ) from e
            return metadata, snapshot

        return await instrumented(
            context,
            self.metrics_reporter.before_snapshot_store_deserialize_snapshot,
            self.metrics_reporter.after_snapshot_store_deserialize_snapshot,
            self.metrics_reporter.error_snapshot_store_deserialize_snapshot,
            self.trace_reporter.trace_snapshot_store_deserialize_snapshot,
            operation,
        )
