"""
Metrics hooks for snapshot store operations.

Every public store operation (and every serializer call) has three hooks:
    before_<op>(context) -> Context   may return an enriched copy
    after_<op>(context)                called on success
    error_<op>(context, error)         called on failure

The base class implements every hook as a no-op, so it doubles as the
"no metrics" reporter. Subclasses override only what they need.

Invariants:
    - Hooks are observational; they never change a result or an error
    - after_* / error_* receive the context returned by before_*
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Optional

from ..model import Context, SnapshotMetadata

logger = logging.getLogger(__name__)


class MetricsReporter:
    """No-op metrics reporter and base class for real ones."""

    def before_snapshot_store_load(self, context: Context) -> Context:
        return context

    def after_snapshot_store_load(self, context: Context) -> None:
        pass

    def error_snapshot_store_load(self, context: Context, error: Exception) -> None:
        pass

    def error_snapshot_store_load_attempt(
        self,
        context: Context,
        metadata: SnapshotMetadata,
        error: Exception,
    ) -> None:
        """A single candidate failed during load and was skipped.

        The load itself may still succeed with an older candidate, or
        return no snapshot.
        """

    def before_snapshot_store_save(self, context: Context) -> Context:
        return context

    def after_snapshot_store_save(self, context: Context) -> None:
        pass

    def error_snapshot_store_save(self, context: Context, error: Exception) -> None:
        pass

    def before_snapshot_store_delete(self, context: Context) -> Context:
        return context

    def after_snapshot_store_delete(self, context: Context) -> None:
        pass

    def error_snapshot_store_delete(self, context: Context, error: Exception) -> None:
        pass

    def before_snapshot_store_delete_with_criteria(self, context: Context) -> Context:
        return context

    def after_snapshot_store_delete_with_criteria(self, context: Context) -> None:
        pass

    def error_snapshot_store_delete_with_criteria(self, context: Context, error: Exception) -> None:
        pass

    def before_snapshot_store_serialize_snapshot(self, context: Context) -> Context:
        return context

    def after_snapshot_store_serialize_snapshot(self, context: Context) -> None:
        pass

    def error_snapshot_store_serialize_snapshot(self, context: Context, error: Exception) -> None:
        pass

    def before_snapshot_store_deserialize_snapshot(self, context: Context) -> Context:
        return context

    def after_snapshot_store_deserialize_snapshot(self, context: Context) -> None:
        pass

    def error_snapshot_store_deserialize_snapshot(self, context: Context, error: Exception) -> None:
        pass


class TimingMetricsReporter(MetricsReporter):
    """Base for reporters that time each operation.

    ``before_*`` stamps the start time into the context; subclasses
    implement record() to receive (operation, outcome, duration).
    """

    START_KEY = "metrics.started_at"

    def record(
        self,
        operation: str,
        outcome: str,
        duration_ms: float,
        context: Context,
        error: Optional[Exception] = None,
    ) -> None:
        raise NotImplementedError

    def _start(self, context: Context) -> Context:
        return context.with_data(**{self.START_KEY: time.perf_counter()})

    def _finish(self, operation: str, context: Context, error: Optional[Exception] = None) -> None:
        started_at = context.get(self.START_KEY)
        duration_ms = (time.perf_counter() - started_at) * 1000 if started_at is not None else 0.0
        outcome = "success" if error is None else "error"
        self.record(operation, outcome, duration_ms, context, error)

    def before_snapshot_store_load(self, context: Context) -> Context:
        return self._start(context)

    def after_snapshot_store_load(self, context: Context) -> None:
        self._finish("load", context)

    def error_snapshot_store_load(self, context: Context, error: Exception) -> None:
        self._finish("load", context, error)

    def error_snapshot_store_load_attempt(
        self,
        context: Context,
        metadata: SnapshotMetadata,
        error: Exception,
    ) -> None:
        self._finish("load_attempt", context, error)

    def before_snapshot_store_save(self, context: Context) -> Context:
        return self._start(context)

    def after_snapshot_store_save(self, context: Context) -> None:
        self._finish("save", context)

    def error_snapshot_store_save(self, context: Context, error: Exception) -> None:
        self._finish("save", context, error)

    def before_snapshot_store_delete(self, context: Context) -> Context:
        return self._start(context)

    def after_snapshot_store_delete(self, context: Context) -> None:
        self._finish("delete", context)

    def error_snapshot_store_delete(self, context: Context, error: Exception) -> None:
        self._finish("delete", context, error)

    def before_snapshot_store_delete_with_criteria(self, context: Context) -> Context:
        return self._start(context)

    def after_snapshot_store_delete_with_criteria(self, context: Context) -> None:
        self._finish("delete_with_criteria", context)

    def error_snapshot_store_delete_with_criteria(self, context: Context, error: Exception) -> None:
        self._finish("delete_with_criteria", context, error)

    def before_snapshot_store_serialize_snapshot(self, context: Context) -> Context:
        return self._start(context)

    def after_snapshot_store_serialize_snapshot(self, context: Context) -> None:
        self._finish("serialize_snapshot", context)

    def error_snapshot_store_serialize_snapshot(self, context: Context, error: Exception) -> None:
        self._finish("serialize_snapshot", context, error)

    def before_snapshot_store_deserialize_snapshot(self, context: Context) -> Context:
        return self._start(context)

    def after_snapshot_store_deserialize_snapshot(self, context: Context) -> None:
        self._finish("deserialize_snapshot", context)

    def error_snapshot_store_deserialize_snapshot(self, context: Context, error: Exception) -> None:
        self._finish("deserialize_snapshot", context, error)


class LoggingMetricsReporter(TimingMetricsReporter):
    """Logs one line per operation and keeps in-process counters.

    Attributes:
        counts: Number of completed operations keyed by (operation, outcome)
    """

    def __init__(self) -> None:
        self.counts: Counter[tuple[str, str]] = Counter()

    def record(
        self,
        operation: str,
        outcome: str,
        duration_ms: float,
        context: Context,
        error: Optional[Exception] = None,
    ) -> None:
        self.counts[(operation, outcome)] += 1
        level = logging.DEBUG if error is None else logging.WARNING
        logger.log(
            level,
            f"Snapshot store {operation} {outcome}",
            extra={
                "operation": operation,
                "outcome": outcome,
                "duration_ms": round(duration_ms, 3),
                "persistence_id": context.persistence_id.as_string(),
                "context_id": str(context.id),
                "error": repr(error) if error is not None else None,
            },
        )
