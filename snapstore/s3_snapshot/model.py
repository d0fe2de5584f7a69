"""
Value types for the snapshot store.

All types here are immutable and created per request. None of them holds
a reference to a store, a client, or any other long-lived resource.

Invariants:
    - PersistenceId is a non-empty string
    - SequenceNumber and snapshot timestamps are non-negative integers
    - A Context is never mutated; enrichment produces a new Context

How to change safely:
    - Adding fields with defaults is safe
    - Changing SnapshotMetadata fields changes the object key format
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping

# Bounds of a signed 64-bit integer. Criteria use these as "unbounded".
MAX_VALUE = 2**63 - 1
MIN_VALUE = -(2**63)


@dataclass(frozen=True)
class PersistenceId:
    """Stable identity of an event-sourced entity."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value:
            raise ValueError("PersistenceId must be a non-empty string")

    def as_string(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class SequenceNumber:
    """Position of a snapshot in an entity's history. Ordering defines recency."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"SequenceNumber must be non-negative, got {self.value}")

    def __int__(self) -> int:
        return self.value


@dataclass(frozen=True)
class SnapshotMetadata:
    """Descriptor of a stored snapshot.

    Attributes:
        persistence_id: Entity identity
        sequence_number: Sequence number the snapshot was taken at
        timestamp: Creation time in epoch milliseconds. ``0`` is reserved
            as the "any timestamp" sentinel for ``delete_async``.
    """

    persistence_id: str
    sequence_number: int
    timestamp: int = 0

    def __post_init__(self) -> None:
        PersistenceId(self.persistence_id)
        SequenceNumber(self.sequence_number)
        if self.timestamp < 0:
            raise ValueError(f"Snapshot timestamp must be non-negative, got {self.timestamp}")

    @property
    def recency(self) -> tuple[int, int]:
        """Sort key: newer snapshots compare greater."""
        return (self.sequence_number, self.timestamp)

    def __str__(self) -> str:
        return f"{self.persistence_id}@{self.sequence_number}/{self.timestamp}"


@dataclass(frozen=True)
class SnapshotRow:
    """Raw fetched snapshot before deserialization."""

    persistence_id: PersistenceId
    sequence_number: SequenceNumber
    created: int
    snapshot: bytes

    @classmethod
    def from_metadata(cls, metadata: SnapshotMetadata, snapshot: bytes) -> SnapshotRow:
        return cls(
            persistence_id=PersistenceId(metadata.persistence_id),
            sequence_number=SequenceNumber(metadata.sequence_number),
            created=metadata.timestamp,
            snapshot=snapshot,
        )


@dataclass(frozen=True)
class SnapshotSelectionCriteria:
    """Inclusive selection window on sequence number and timestamp.

    The store does not check that min <= max; an inverted window simply
    matches nothing.
    """

    max_sequence_number: int = MAX_VALUE
    max_timestamp: int = MAX_VALUE
    min_sequence_number: int = 0
    min_timestamp: int = 0

    @classmethod
    def latest(cls) -> SnapshotSelectionCriteria:
        """Matches every snapshot."""
        return cls()

    @classmethod
    def none(cls) -> SnapshotSelectionCriteria:
        """Matches no snapshot."""
        return cls(max_sequence_number=0, max_timestamp=0, min_sequence_number=1, min_timestamp=1)

    @classmethod
    def at_sequence_number(cls, sequence_number: int) -> SnapshotSelectionCriteria:
        """Every snapshot at exactly this sequence number, whatever its timestamp."""
        return cls(
            max_sequence_number=sequence_number,
            max_timestamp=MAX_VALUE,
            min_sequence_number=sequence_number,
            min_timestamp=MIN_VALUE,
        )

    def matches(self, metadata: SnapshotMetadata) -> bool:
        return (
            self.min_sequence_number <= metadata.sequence_number <= self.max_sequence_number
            and self.min_timestamp <= metadata.timestamp <= self.max_timestamp
        )


@dataclass(frozen=True)
class SelectedSnapshot:
    """A loaded snapshot together with its metadata."""

    metadata: SnapshotMetadata
    snapshot: Any


@dataclass(frozen=True)
class Context:
    """Correlation token threaded through instrumentation hooks.

    Attributes:
        id: Correlation id, unique per external call
        persistence_id: Entity the call is about
        data: Read-only values attached by ``before*`` hooks
    """

    id: uuid.UUID
    persistence_id: PersistenceId
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def new(cls, persistence_id: PersistenceId) -> Context:
        return cls(id=uuid.uuid4(), persistence_id=persistence_id)

    def with_data(self, **values: Any) -> Context:
        """Return a copy of this context with additional data."""
        merged = dict(self.data)
        merged.update(values)
        return replace(self, data=MappingProxyType(merged))

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)
