"""
JSON snapshot serializer.

Payload format (UTF-8 JSON object):
    {"persistence_id": ..., "sequence_number": ..., "timestamp": ..., "snapshot": <value>}

The identity fields let deserialize() detect an object whose payload does
not belong to the key it was stored under.
"""

from __future__ import annotations

import json
from typing import Any

from ..errors import SnapshotDeserializationError, SnapshotSerializationError
from ..model import SnapshotMetadata, SnapshotRow
from .base import InstrumentedSnapshotSerializer


class JsonSnapshotSerializer(InstrumentedSnapshotSerializer):
    """Stores JSON-compatible snapshot values."""

    def encode(self, metadata: SnapshotMetadata, snapshot: Any) -> bytes:
        envelope = {
            "persistence_id": metadata.persistence_id,
            "sequence_number": metadata.sequence_number,
            "timestamp": metadata.timestamp,
            "snapshot": snapshot,
        }
        try:
            return json.dumps(envelope, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SnapshotSerializationError(
                f"Snapshot for {metadata} is not JSON serializable: {e}"
            ) from e

    def decode(self, row: SnapshotRow, payload: bytes) -> Any:
        envelope = json.loads(payload.decode("utf-8"))
        if not isinstance(envelope, dict):
            raise SnapshotDeserializationError("Snapshot payload is not a JSON object")
        if (
            envelope["persistence_id"] != row.persistence_id.as_string()
            or envelope["sequence_number"] != row.sequence_number.value
        ):
            raise SnapshotDeserializationError(
                f"Snapshot payload belongs to {envelope['persistence_id']}"
                f"@{envelope['sequence_number']}, not "
                f"{row.persistence_id}@{row.sequence_number.value}"
            )
        return envelope["snapshot"]
