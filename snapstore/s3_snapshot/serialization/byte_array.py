"""Raw bytes snapshot serializer: the snapshot value is the payload."""

from __future__ import annotations

from typing import Any

from ..errors import SnapshotSerializationError
from ..model import SnapshotMetadata, SnapshotRow
from .base import InstrumentedSnapshotSerializer


class ByteArraySnapshotSerializer(InstrumentedSnapshotSerializer):
    """For callers that encode their own state; accepts bytes-like values only."""

    def encode(self, metadata: SnapshotMetadata, snapshot: Any) -> bytes:
        if not isinstance(snapshot, (bytes, bytearray, memoryview)):
            raise SnapshotSerializationError(
                f"ByteArraySnapshotSerializer needs bytes, got {type(snapshot).__name__}"
            )
        return bytes(snapshot)

    def decode(self, row: SnapshotRow, payload: bytes) -> Any:
        return payload
