"""
In-memory object store implementation for testing.

This module provides a simple in-memory object store for:
- Unit tests
- Integration tests
- Local development without S3/MinIO

Invariants:
    - All data is lost on process exit
    - Buckets are created implicitly on first write
    - Listing follows S3 prefix/delimiter semantics

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with ObjectStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .base import GetObjectResponse, ListObjectsResponse, ObjectResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectStoreCall:
    """A recorded call (testing helper)."""

    operation: str
    bucket: str
    key: Optional[str]


class InMemoryObjectStore:
    """In-memory implementation of ObjectStore for testing.

    Attributes:
        operation_delay: Seconds each call sleeps before completing, so
            tests can observe concurrency

    Example:
        >>> store = InMemoryObjectStore()
        >>> store.inject_status("put", 500)
        >>> (await store.put_object("b", "k", b"x", 1)).status_code
        500
    """

    def __init__(self, operation_delay: float = 0.0) -> None:
        self.operation_delay = operation_delay
        self._buckets: Dict[str, Dict[str, bytes]] = defaultdict(dict)
        self._statuses: Dict[Tuple[str, Optional[str]], int] = {}
        self._errors: Dict[Tuple[str, Optional[str]], Exception] = {}
        self.calls: List[ObjectStoreCall] = []
        self._in_flight: Dict[str, int] = defaultdict(int)
        self.max_in_flight: Dict[str, int] = defaultdict(int)

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_length: int,
    ) -> ObjectResponse:
        async with self._call("put", bucket, key) as status:
            if status is not None:
                return ObjectResponse(status_code=status)
            if content_length != len(body):
                return ObjectResponse(status_code=400)
            self._buckets[bucket][key] = bytes(body)
            return ObjectResponse(status_code=200)

    async def get_object(self, bucket: str, key: str) -> GetObjectResponse:
        async with self._call("get", bucket, key) as status:
            if status is not None:
                return GetObjectResponse(status_code=status)
            body = self._buckets.get(bucket, {}).get(key)
            if body is None:
                return GetObjectResponse(status_code=404)
            return GetObjectResponse(status_code=200, body=body)

    async def delete_object(self, bucket: str, key: str) -> ObjectResponse:
        async with self._call("delete", bucket, key) as status:
            if status is not None:
                return ObjectResponse(status_code=status)
            self._buckets.get(bucket, {}).pop(key, None)
            return ObjectResponse(status_code=204)

    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: str = "/",
    ) -> ListObjectsResponse:
        async with self._call("list", bucket, prefix) as status:
            if status is not None:
                return ListObjectsResponse(status_code=status)
            prefix = prefix or ""
            keys = []
            for key in sorted(self._buckets.get(bucket, {})):
                if not key.startswith(prefix):
                    continue
                if delimiter and delimiter in key[len(prefix):]:
                    continue
                keys.append(key)
            return ListObjectsResponse(status_code=200, keys=keys)

    # Testing helpers

    def put_raw(self, bucket: str, key: str, body: bytes) -> None:
        """Store an object directly, bypassing failure injection (testing helper)."""
        self._buckets[bucket][key] = body

    def get_raw(self, bucket: str, key: str) -> Optional[bytes]:
        """Read an object directly (testing helper)."""
        return self._buckets.get(bucket, {}).get(key)

    def keys(self, bucket: str) -> List[str]:
        """All keys in a bucket, sorted (testing helper)."""
        return sorted(self._buckets.get(bucket, {}))

    def inject_status(self, operation: str, status_code: int, key: Optional[str] = None) -> None:
        """Make ``operation`` report ``status_code`` (testing helper).

        With ``key`` only calls for that key (or, for "list", that prefix)
        are affected. Stays in effect until clear_failures().
        """
        self._statuses[(operation, key)] = status_code

    def inject_error(self, operation: str, error: Exception, key: Optional[str] = None) -> None:
        """Make ``operation`` raise ``error``, like a transport failure (testing helper)."""
        self._errors[(operation, key)] = error

    def clear_failures(self) -> None:
        """Remove all injected statuses and errors (testing helper)."""
        self._statuses.clear()
        self._errors.clear()

    def calls_for(self, operation: str) -> List[ObjectStoreCall]:
        """Recorded calls of one operation (testing helper)."""
        return [call for call in self.calls if call.operation == operation]

    def _call(self, operation: str, bucket: str, key: Optional[str]) -> "_CallScope":
        self.calls.append(ObjectStoreCall(operation, bucket, key))
        return _CallScope(self, operation, key)


class _CallScope:
    """Tracks concurrency and applies injected failures for one call."""

    def __init__(self, store: InMemoryObjectStore, operation: str, key: Optional[str]) -> None:
        self.store = store
        self.operation = operation
        self.key = key

    async def __aenter__(self) -> Optional[int]:
        store = self.store
        store._in_flight[self.operation] += 1
        store.max_in_flight[self.operation] = max(
            store.max_in_flight[self.operation], store._in_flight[self.operation]
        )
        if store.operation_delay:
            await asyncio.sleep(store.operation_delay)

        error = store._errors.get((self.operation, self.key)) or store._errors.get(
            (self.operation, None)
        )
        if error is not None:
            store._in_flight[self.operation] -= 1
            logger.debug(f"Injected {self.operation} error for {self.key}: {error!r}")
            raise error

        status = store._statuses.get((self.operation, self.key))
        if status is None:
            status = store._statuses.get((self.operation, None))
        return status

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.store._in_flight[self.operation] -= 1
