"""
Base protocol and types for the object store abstraction.

The snapshot engine talks to object storage only through the ObjectStore
protocol defined here. Every call reports a status instead of raising for
service-level failures, so the engine can attach the status code to its
own errors.

Invariants:
    - A response is successful iff its status code is 2xx
    - list_objects returns every key under the prefix (all pages)
    - Transport failures (connection refused, timeouts) still raise

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, runtime_checkable

from ..errors import SnapshotStoreError


class ObjectStoreConnectionError(SnapshotStoreError):
    """The object store client is not available."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="OBJECT_STORE_CONNECTION_ERROR")


@dataclass(frozen=True)
class ObjectResponse:
    """Outcome of an object store call.

    Attributes:
        status_code: HTTP-style status code
    """

    status_code: int

    @property
    def successful(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass(frozen=True)
class GetObjectResponse(ObjectResponse):
    """Outcome of a get; ``body`` is empty unless successful."""

    body: bytes = b""


@dataclass(frozen=True)
class ListObjectsResponse(ObjectResponse):
    """Outcome of a list; ``keys`` is empty unless successful."""

    keys: List[str] = field(default_factory=list)


@runtime_checkable
class ObjectStore(Protocol):
    """Protocol for object storage backends.

    Example:
        >>> store = InMemoryObjectStore()
        >>> await store.put_object("bucket", "a/1-100.snapshot", b"...", 3)
        >>> (await store.list_objects("bucket", "a/", "/")).keys
        ['a/1-100.snapshot']
    """

    @abstractmethod
    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_length: int,
    ) -> ObjectResponse:
        """Write an object, replacing any existing object at the key."""
        ...

    @abstractmethod
    async def get_object(self, bucket: str, key: str) -> GetObjectResponse:
        """Read an object's bytes."""
        ...

    @abstractmethod
    async def delete_object(self, bucket: str, key: str) -> ObjectResponse:
        """Delete an object. Deleting a missing key is a success."""
        ...

    @abstractmethod
    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: str = "/",
    ) -> ListObjectsResponse:
        """List object keys under ``prefix``.

        With a delimiter, keys that contain the delimiter after the prefix
        are rolled up and not returned.
        """
        ...
