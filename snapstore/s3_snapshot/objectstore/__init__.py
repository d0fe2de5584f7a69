"""
Object storage abstraction for the snapshot store.

This module provides a pluggable object store interface supporting:
- S3 and S3-compatible services (production)
- In-memory (for testing)

The object listing under a bucket/prefix is the only record of which
snapshots exist; there is no manifest or index object.
"""

from .base import (
    GetObjectResponse,
    ListObjectsResponse,
    ObjectResponse,
    ObjectStore,
    ObjectStoreConnectionError,
)
from .memory import InMemoryObjectStore
from .s3 import S3ObjectStore

__all__ = [
    # Protocol and types
    "ObjectStore",
    "ObjectResponse",
    "GetObjectResponse",
    "ListObjectsResponse",
    "ObjectStoreConnectionError",
    # Implementations
    "S3ObjectStore",
    "InMemoryObjectStore",
]
