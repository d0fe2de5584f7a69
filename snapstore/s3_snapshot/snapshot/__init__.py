"""
Snapshot store engine for the S3 snapshot store.

This module handles saving, selecting, loading and deleting snapshots:
- One object per snapshot, keyed by persistence id, sequence number and timestamp
- Load falls back to older snapshots when the newest cannot be read
- Delete by criteria fans out one delete per matching snapshot

Invariants:
    - The object listing is the only source of truth for existing snapshots
    - Unreadable snapshots degrade load to "no snapshot", never to an error
"""

from .factory import create_snapshot_store
from .store import S3SnapshotStore

__all__ = ["S3SnapshotStore", "create_snapshot_store"]
