"""
S3 Snapshot Store - point-in-time snapshot persistence for event-sourced entities.

This package stores serialized entity snapshots as individual objects in an
object storage service (S3 or compatible) and retrieves the most recent
usable snapshot for a selection window.

Architecture:
    ┌──────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │    Caller    │────▶│  S3SnapshotStore │────▶│ MetricsReporter/ │
    │ (aggregate)  │     │     (engine)     │     │  TraceReporter   │
    └──────────────┘     └────────┬─────────┘     └──────────────────┘
                                  │
              ┌───────────────────┼────────────────────┐
              ▼                   ▼                    ▼
       ┌─────────────┐   ┌────────────────┐   ┌────────────────┐
       │ KeyConverter│   │ Bucket/Prefix  │   │   Serializer   │
       │             │   │   Resolvers    │   │                │
       └─────────────┘   └────────────────┘   └────────────────┘
                                  │
                                  ▼
                        ┌──────────────────┐
                        │   ObjectStore    │
                        │ (S3 / in-memory) │
                        └──────────────────┘

Invariants:
    - One object per snapshot; the object listing is the only index
    - Keys are derived deterministically from (persistence_id, sequence_number, timestamp)
    - The engine holds no state between calls
    - Load never fails because of a corrupt or unreadable snapshot; it falls
      back to older candidates and finally reports "no snapshot"

How to change safely:
    - Key format changes must keep convert_from able to read old keys
    - Instrumentation hooks must stay observational
    - New strategies are added to the registries, not loaded by name at runtime
"""

from ._version import __version__
from .errors import (
    ConfigurationError,
    MalformedKeyError,
    SnapshotDeserializationError,
    SnapshotSerializationError,
    SnapshotStoreError,
    StoreOperationError,
)
from .model import (
    Context,
    PersistenceId,
    SelectedSnapshot,
    SequenceNumber,
    SnapshotMetadata,
    SnapshotRow,
    SnapshotSelectionCriteria,
)
from .snapshot import S3SnapshotStore, create_snapshot_store

__all__ = [
    "__version__",
    # Model
    "Context",
    "PersistenceId",
    "SelectedSnapshot",
    "SequenceNumber",
    "SnapshotMetadata",
    "SnapshotRow",
    "SnapshotSelectionCriteria",
    # Errors
    "ConfigurationError",
    "MalformedKeyError",
    "SnapshotDeserializationError",
    "SnapshotSerializationError",
    "SnapshotStoreError",
    "StoreOperationError",
    # Engine
    "S3SnapshotStore",
    "create_snapshot_store",
]
