"""
Tracing hooks for snapshot store operations.

A TraceReporter wraps the whole asynchronous operation, not just its
completion, so a span covers every object store round trip the operation
makes. The base class just runs the operation.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from ..model import Context

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


class TraceReporter:
    """No-op trace reporter and base class for real ones.

    Subclasses usually override only trace(); the per-operation methods
    exist so a reporter can treat one operation specially.
    """

    async def trace(self, name: str, context: Context, operation: Operation[T]) -> T:
        return await operation()

    async def trace_snapshot_store_load(self, context: Context, operation: Operation[T]) -> T:
        return await self.trace("snapshot_store.load", context, operation)

    async def trace_snapshot_store_save(self, context: Context, operation: Operation[T]) -> T:
        return await self.trace("snapshot_store.save", context, operation)

    async def trace_snapshot_store_delete(self, context: Context, operation: Operation[T]) -> T:
        return await self.trace("snapshot_store.delete", context, operation)

    async def trace_snapshot_store_delete_with_criteria(
        self, context: Context, operation: Operation[T]
    ) -> T:
        return await self.trace("snapshot_store.delete_with_criteria", context, operation)

    async def trace_snapshot_store_serialize_snapshot(
        self, context: Context, operation: Operation[T]
    ) -> T:
        return await self.trace("snapshot_store.serialize_snapshot", context, operation)

    async def trace_snapshot_store_deserialize_snapshot(
        self, context: Context, operation: Operation[T]
    ) -> T:
        return await self.trace("snapshot_store.deserialize_snapshot", context, operation)
