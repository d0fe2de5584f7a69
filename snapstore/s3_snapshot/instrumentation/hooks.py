"""Runs an operation between its before/after/error hooks and inside its trace wrapper."""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from ..model import Context

T = TypeVar("T")


async def instrumented(
    context: Context,
    before: Callable[[Context], Context],
    after: Callable[[Context], None],
    error: Callable[[Context, Exception], None],
    trace: Callable[[Context, Callable[[], Awaitable[T]]], Awaitable[T]],
    operation: Callable[[Context], Awaitable[T]],
) -> T:
    """Run ``operation`` with instrumentation.

    ``before`` completes, and its context is used, before the operation
    starts. ``after`` or ``error`` runs once the traced operation has
    ended. The operation's result or exception is passed through unchanged.
    """
    new_context = before(context)
    try:
        result = await trace(new_context, lambda: operation(new_context))
    except Exception as e:
        error(new_context, e)
        raise
    after(new_context)
    return result
