"""
S3 snapshot store engine.

Stores one object per snapshot and selects snapshots by listing keys:

    save      serialize -> put <bucket>/<key>
    load      list -> decode keys -> filter by criteria -> newest N
              -> get + deserialize, falling back to older candidates
    delete    delete <bucket>/<key>, or every snapshot at a sequence
              number when timestamp == 0
    delete by criteria
              list -> filter -> one concurrent delete per candidate

Invariants:
    - The engine keeps no state between calls; the listing is the only index
    - Load fallback is strictly sequential, newest candidate first
    - A load that runs out of candidates returns None; callers cannot tell
      "nothing stored" from "everything within the attempt budget was
      unreadable". Operators see the failures in the logs and through
      MetricsReporter.error_snapshot_store_load_attempt.
    - Delete by criteria attempts every delete before reporting a failure
    - Instrumentation hooks run around every public operation and never
      change its outcome

How to change safely:
    - Keep fallback iterative; candidate lists can be long
    - Do not retry object store calls here; transport retries belong to
      the client configuration
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from ..errors import MalformedKeyError, StoreOperationError
from ..instrumentation import MetricsReporter, TraceReporter, instrumented
from ..model import (
    Context,
    PersistenceId,
    SelectedSnapshot,
    SnapshotMetadata,
    SnapshotRow,
    SnapshotSelectionCriteria,
)
from ..objectstore import ObjectStore
from ..resolver import (
    DefaultSnapshotMetadataKeyConverter,
    PathPrefixResolver,
    PersistenceIdBucketNameResolver,
    PersistenceIdPathPrefixResolver,
    SnapshotBucketNameResolver,
    SnapshotMetadataKeyConverter,
)
from ..serialization import JsonSnapshotSerializer, SnapshotSerializer

logger = logging.getLogger(__name__)

LIST_DELIMITER = "/"


class S3SnapshotStore:
    """Snapshot store over an object store.

    All strategies are passed in as constructed objects; see
    create_snapshot_store() for wiring from configuration.

    Attributes:
        object_store: Object store client
        serializer: Snapshot payload codec
        key_converter: Metadata <-> key mapping
        bucket_name_resolver: Fallback bucket strategy
        path_prefix_resolver: Fallback prefix strategy
        extension_name: Key suffix tag
        max_load_attempts: Newest candidates load may try
        bucket_name: Static bucket name (wins over the resolver)
        path_prefix: Static key prefix (wins over the resolver)
        metrics_reporter: Operation hooks (no-op by default)
        trace_reporter: Operation wrapper (no-op by default)

    Example:
        >>> store = S3SnapshotStore(InMemoryObjectStore(), bucket_name="snapshots")
        >>> await store.save_async(SnapshotMetadata("order-1", 5, 1700000000000), {"total": 3})
        >>> selected = await store.load_async("order-1", SnapshotSelectionCriteria.latest())
        >>> selected.snapshot
        {'total': 3}
    """

    def __init__(
        self,
        object_store: ObjectStore,
        serializer: Optional[SnapshotSerializer] = None,
        key_converter: Optional[SnapshotMetadataKeyConverter] = None,
        bucket_name_resolver: Optional[SnapshotBucketNameResolver] = None,
        path_prefix_resolver: Optional[PathPrefixResolver] = None,
        extension_name: str = "snapshot",
        max_load_attempts: int = 3,
        bucket_name: Optional[str] = None,
        path_prefix: Optional[str] = None,
        metrics_reporter: Optional[MetricsReporter] = None,
        trace_reporter: Optional[TraceReporter] = None,
    ) -> None:
        if max_load_attempts < 1:
            raise ValueError(f"max_load_attempts must be positive, got {max_load_attempts}")
        self.object_store = object_store
        self.metrics_reporter = metrics_reporter or MetricsReporter()
        self.trace_reporter = trace_reporter or TraceReporter()
        self.serializer = serializer or JsonSnapshotSerializer(
            metrics_reporter=self.metrics_reporter,
            trace_reporter=self.trace_reporter,
        )
        self.key_converter = key_converter or DefaultSnapshotMetadataKeyConverter()
        self.bucket_name_resolver = bucket_name_resolver or PersistenceIdBucketNameResolver()
        self.path_prefix_resolver = path_prefix_resolver or PersistenceIdPathPrefixResolver()
        self.extension_name = extension_name
        self.max_load_attempts = max_load_attempts
        self.bucket_name = bucket_name.lstrip("/") if bucket_name is not None else None
        self.path_prefix = path_prefix

    # Resolution

    def resolve_bucket_name(self, persistence_id: PersistenceId) -> str:
        if self.bucket_name is not None:
            return self.bucket_name
        return self.bucket_name_resolver.resolve(persistence_id)

    def resolve_path_prefix(self, persistence_id: PersistenceId) -> Optional[str]:
        if self.path_prefix is not None:
            return self.path_prefix
        return self.path_prefix_resolver.resolve(persistence_id)

    def convert_to_key(self, metadata: SnapshotMetadata) -> str:
        return self.key_converter.convert_to(metadata, self.extension_name)

    # Public operations

    async def load_async(
        self,
        persistence_id: str,
        criteria: SnapshotSelectionCriteria,
    ) -> Optional[SelectedSnapshot]:
        """Load the newest readable snapshot matching ``criteria``.

        Only the newest ``max_load_attempts`` matching snapshots are
        tried. A snapshot that cannot be fetched or deserialized is logged
        and skipped in favour of the next older one.

        Returns:
            The selected snapshot, or None if no candidate could be loaded

        Raises:
            StoreOperationError: If listing the bucket fails
        """
        pid = PersistenceId(persistence_id)

        async def operation(context: Context) -> Optional[SelectedSnapshot]:
            metadatas = await self._snapshot_metadatas(pid, criteria)
            candidates = sorted(metadatas, key=lambda m: m.recency)[-self.max_load_attempts:]
            logger.debug(
                f"Selected {len(candidates)} of {len(metadatas)} snapshots for {pid}",
                extra={
                    "persistence_id": pid.as_string(),
                    "max_load_attempts": self.max_load_attempts,
                    "candidates": [str(m) for m in candidates],
                },
            )
            return await self._load(candidates, context)

        return await instrumented(
            Context.new(pid),
            self.metrics_reporter.before_snapshot_store_load,
            self.metrics_reporter.after_snapshot_store_load,
            self.metrics_reporter.error_snapshot_store_load,
            self.trace_reporter.trace_snapshot_store_load,
            operation,
        )

    async def save_async(self, metadata: SnapshotMetadata, snapshot: Any) -> None:
        """Serialize and store a snapshot.

        Raises:
            SnapshotSerializationError: If the snapshot cannot be serialized
            StoreOperationError: If the object store rejects the write
        """
        pid = PersistenceId(metadata.persistence_id)

        async def operation(context: Context) -> None:
            serialized = await self.serializer.serialize(metadata, snapshot, context)
            bucket = self.resolve_bucket_name(pid)
            key = self.convert_to_key(metadata)
            response = await self.object_store.put_object(
                bucket, key, serialized, content_length=len(serialized)
            )
            if not response.successful:
                raise StoreOperationError("put", response.status_code, bucket=bucket, key=key)
            logger.debug(
                "Saved snapshot",
                extra={"bucket": bucket, "key": key, "size_bytes": len(serialized)},
            )

        await instrumented(
            Context.new(pid),
            self.metrics_reporter.before_snapshot_store_save,
            self.metrics_reporter.after_snapshot_store_save,
            self.metrics_reporter.error_snapshot_store_save,
            self.trace_reporter.trace_snapshot_store_save,
            operation,
        )

    async def delete_async(self, metadata: SnapshotMetadata) -> None:
        """Delete one snapshot.

        A timestamp of 0 means "every snapshot at this sequence number" and
        is handled as delete_by_criteria_async for that sequence number.

        Raises:
            StoreOperationError: If the object store rejects the delete
        """
        if metadata.timestamp == 0:
            await self.delete_by_criteria_async(
                metadata.persistence_id,
                SnapshotSelectionCriteria.at_sequence_number(metadata.sequence_number),
            )
            return
        await self._delete_one(metadata)

    async def delete_by_criteria_async(
        self,
        persistence_id: str,
        criteria: SnapshotSelectionCriteria,
    ) -> None:
        """Delete every snapshot matching ``criteria``.

        Deletes run concurrently. The call returns once all of them have
        finished and raises the first failure, if any. Nothing is rolled
        back.

        Raises:
            StoreOperationError: If listing fails or any delete fails
        """
        pid = PersistenceId(persistence_id)

        async def operation(context: Context) -> None:
            metadatas = await self._snapshot_metadatas(pid, criteria)
            results = await asyncio.gather(
                *(self._delete_one(metadata) for metadata in metadatas),
                return_exceptions=True,
            )
            failures = [result for result in results if isinstance(result, BaseException)]
            if failures:
                logger.error(
                    f"Failed to delete {len(failures)} of {len(metadatas)} snapshots "
                    f"for {persistence_id}",
                    extra={"persistence_id": persistence_id},
                )
                raise failures[0]

        await instrumented(
            Context.new(pid),
            self.metrics_reporter.before_snapshot_store_delete_with_criteria,
            self.metrics_reporter.after_snapshot_store_delete_with_criteria,
            self.metrics_reporter.error_snapshot_store_delete_with_criteria,
            self.trace_reporter.trace_snapshot_store_delete_with_criteria,
            operation,
        )

    async def list_async(
        self,
        persistence_id: str,
        criteria: Optional[SnapshotSelectionCriteria] = None,
    ) -> List[SnapshotMetadata]:
        """Metadata of all stored snapshots matching ``criteria``, oldest first."""
        pid = PersistenceId(persistence_id)
        metadatas = await self._snapshot_metadatas(pid, criteria or SnapshotSelectionCriteria.latest())
        return sorted(metadatas, key=lambda m: m.recency)

    # Internals

    async def _delete_one(self, metadata: SnapshotMetadata) -> None:
        pid = PersistenceId(metadata.persistence_id)

        async def operation(context: Context) -> None:
            bucket = self.resolve_bucket_name(pid)
            key = self.convert_to_key(metadata)
            response = await self.object_store.delete_object(bucket, key)
            if not response.successful:
                raise StoreOperationError("delete", response.status_code, bucket=bucket, key=key)

        await instrumented(
            Context.new(pid),
            self.metrics_reporter.before_snapshot_store_delete,
            self.metrics_reporter.after_snapshot_store_delete,
            self.metrics_reporter.error_snapshot_store_delete,
            self.trace_reporter.trace_snapshot_store_delete,
            operation,
        )

    async def _load(
        self,
        candidates: List[SnapshotMetadata],
        context: Context,
    ) -> Optional[SelectedSnapshot]:
        """Try candidates newest first; ``candidates`` is sorted oldest first."""
        for metadata in reversed(candidates):
            try:
                return await self._fetch(metadata, context)
            except Exception as e:
                logger.error(
                    f"Error loading snapshot [{metadata}], trying an older one",
                    exc_info=True,
                    extra={
                        "persistence_id": metadata.persistence_id,
                        "sequence_number": metadata.sequence_number,
                        "timestamp": metadata.timestamp,
                    },
                )
                self.metrics_reporter.error_snapshot_store_load_attempt(context, metadata, e)
        return None

    async def _fetch(self, metadata: SnapshotMetadata, context: Context) -> SelectedSnapshot:
        bucket = self.resolve_bucket_name(PersistenceId(metadata.persistence_id))
        key = self.convert_to_key(metadata)
        response = await self.object_store.get_object(bucket, key)
        if not response.successful:
            raise StoreOperationError("get", response.status_code, bucket=bucket, key=key)
        loaded_metadata, snapshot = await self.serializer.deserialize(
            SnapshotRow.from_metadata(metadata, response.body), context
        )
        return SelectedSnapshot(metadata=loaded_metadata, snapshot=snapshot)

    async def _snapshot_metadatas(
        self,
        persistence_id: PersistenceId,
        criteria: SnapshotSelectionCriteria,
    ) -> List[SnapshotMetadata]:
        """List the entity's snapshots that match ``criteria``, in listing order."""
        bucket = self.resolve_bucket_name(persistence_id)
        prefix = self.resolve_path_prefix(persistence_id)
        # Unprefixed listings are recursive; default keys contain the delimiter
        delimiter = LIST_DELIMITER if prefix else ""
        response = await self.object_store.list_objects(bucket, prefix, delimiter)
        if not response.successful:
            raise StoreOperationError("list", response.status_code, bucket=bucket, key=prefix)

        metadatas = []
        for key in response.keys:
            try:
                metadata = self.key_converter.convert_from(key, self.extension_name)
            except MalformedKeyError:
                logger.debug(f"Ignoring non-snapshot object {key}", extra={"bucket": bucket})
                continue
            if metadata.persistence_id != persistence_id.as_string():
                continue
            if criteria.matches(metadata):
                metadatas.append(metadata)
        return metadatas
