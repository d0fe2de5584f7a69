"""
Unit tests for the S3SnapshotStore engine.

Tests cover:
- Save, including status and serialization failures
- Candidate selection and load fallback
- Single, sentinel and criteria deletes
- Key filtering during listing
"""

import logging

import pytest

from snapstore.s3_snapshot.errors import (
    MalformedKeyError,
    SnapshotSerializationError,
    StoreOperationError,
)
from snapstore.s3_snapshot.model import (
    MAX_VALUE,
    SnapshotMetadata,
    SnapshotSelectionCriteria,
)
from snapstore.s3_snapshot.objectstore import InMemoryObjectStore
from snapstore.s3_snapshot.resolver import NoPathPrefixResolver
from snapstore.s3_snapshot.serialization import ByteArraySnapshotSerializer
from snapstore.s3_snapshot.snapshot import S3SnapshotStore

BUCKET = "snapshots"
PID = "order-1"


def key_for(seq, ts, pid=PID):
    return f"{pid}/{seq}-{ts}.snapshot"


class FlatKeyConverter:
    """Keys without a path separator: ``<pid>~<seq>~<ts>.<ext>``."""

    def convert_to(self, metadata, extension):
        return f"{metadata.persistence_id}~{metadata.sequence_number}~{metadata.timestamp}.{extension}"

    def convert_from(self, key, extension):
        suffix = f".{extension}"
        if not key.endswith(suffix) or key.count("~") != 2:
            raise MalformedKeyError(key, extension)
        pid, seq, ts = key[: -len(suffix)].split("~")
        return SnapshotMetadata(pid, int(seq), int(ts))


class TestSave:
    """Tests for save_async."""

    @pytest.fixture
    def object_store(self):
        return InMemoryObjectStore()

    @pytest.fixture
    def store(self, object_store):
        return S3SnapshotStore(object_store, bucket_name=BUCKET)

    @pytest.mark.asyncio
    async def test_save_writes_one_object_at_derived_key(self, store, object_store):
        """Snapshot is stored under <pid>/<seq>-<ts>.<ext>."""
        await store.save_async(SnapshotMetadata(PID, 5, 200), {"total": 3})

        assert object_store.keys(BUCKET) == [key_for(5, 200)]

    @pytest.mark.asyncio
    async def test_save_sets_content_length(self, store, object_store):
        """Put carries the serialized length; the in-memory store rejects mismatches."""
        await store.save_async(SnapshotMetadata(PID, 1, 100), "x" * 100)

        body = object_store.get_raw(BUCKET, key_for(1, 100))
        assert body is not None
        assert len(object_store.calls_for("put")) == 1

    @pytest.mark.asyncio
    async def test_save_failure_carries_status_code(self, store, object_store):
        """A store answering 500 fails the save with that status."""
        object_store.inject_status("put", 500)

        with pytest.raises(StoreOperationError) as exc_info:
            await store.save_async(SnapshotMetadata(PID, 1, 100), {"a": 1})

        assert exc_info.value.status_code == 500
        assert exc_info.value.operation == "put"
        assert exc_info.value.key == key_for(1, 100)

    @pytest.mark.asyncio
    async def test_serialization_failure_is_propagated(self, store, object_store):
        """Unserializable snapshots fail the save and nothing is written."""
        with pytest.raises(SnapshotSerializationError):
            await store.save_async(SnapshotMetadata(PID, 1, 100), object())

        assert object_store.keys(BUCKET) == []

    @pytest.mark.asyncio
    async def test_static_bucket_name_wins_over_resolver(self, object_store):
        """Static bucket names are used as-is, minus a leading slash."""
        store = S3SnapshotStore(object_store, bucket_name="/static")
        await store.save_async(SnapshotMetadata(PID, 1, 100), 1)

        assert object_store.keys("static") == [key_for(1, 100)]

    @pytest.mark.asyncio
    async def test_bucket_resolver_used_without_static_name(self, object_store):
        """Without a static bucket name, the resolver picks the bucket."""
        store = S3SnapshotStore(object_store)
        await store.save_async(SnapshotMetadata(PID, 1, 100), 1)

        assert object_store.keys(PID) == [key_for(1, 100)]


class TestLoad:
    """Tests for load_async candidate selection and fallback."""

    @pytest.fixture
    def object_store(self):
        return InMemoryObjectStore()

    @pytest.fixture
    def store(self, object_store):
        return S3SnapshotStore(object_store, bucket_name=BUCKET, max_load_attempts=2)

    async def _save_three(self, store):
        await store.save_async(SnapshotMetadata(PID, 3, 100), {"seq": 3})
        await store.save_async(SnapshotMetadata(PID, 5, 200), {"seq": 5})
        await store.save_async(SnapshotMetadata(PID, 7, 300), {"seq": 7})

    @pytest.mark.asyncio
    async def test_load_returns_newest(self, store):
        """The newest matching snapshot is returned."""
        await self._save_three(store)

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected is not None
        assert selected.metadata == SnapshotMetadata(PID, 7, 300)
        assert selected.snapshot == {"seq": 7}

    @pytest.mark.asyncio
    async def test_fallback_to_older_candidate(self, store, object_store):
        """If the newest fetch fails, the next older one is returned."""
        await self._save_three(store)
        object_store.inject_status("get", 500, key=key_for(7, 300))

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected is not None
        assert selected.metadata.sequence_number == 5
        assert selected.snapshot == {"seq": 5}
        fetched = [call.key for call in object_store.calls_for("get")]
        assert fetched == [key_for(7, 300), key_for(5, 200)]

    @pytest.mark.asyncio
    async def test_fallback_on_corrupt_payload(self, store, object_store):
        """A payload that does not deserialize counts as a failed attempt."""
        await self._save_three(store)
        object_store.put_raw(BUCKET, key_for(7, 300), b"\x00not json")

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected.metadata.sequence_number == 5

    @pytest.mark.asyncio
    async def test_fallback_on_transport_error(self, store, object_store):
        """Exceptions from the object store also trigger fallback."""
        await self._save_three(store)
        object_store.inject_error("get", ConnectionResetError("reset"), key=key_for(7, 300))

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected.metadata.sequence_number == 5

    @pytest.mark.asyncio
    async def test_exhausted_budget_returns_none(self, store, object_store):
        """Older snapshots beyond max_load_attempts are never tried."""
        await self._save_three(store)
        object_store.inject_status("get", 500)

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected is None
        fetched = [call.key for call in object_store.calls_for("get")]
        assert fetched == [key_for(7, 300), key_for(5, 200)]

    @pytest.mark.asyncio
    async def test_no_candidates_returns_none(self, store, object_store):
        """Nothing stored means no snapshot and no fetches."""
        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected is None
        assert object_store.calls_for("get") == []

    @pytest.mark.asyncio
    async def test_criteria_bounds_are_inclusive(self, store):
        """Snapshots exactly on every bound are selected."""
        await self._save_three(store)
        criteria = SnapshotSelectionCriteria(
            max_sequence_number=5,
            max_timestamp=200,
            min_sequence_number=5,
            min_timestamp=200,
        )

        selected = await store.load_async(PID, criteria)

        assert selected.metadata == SnapshotMetadata(PID, 5, 200)

    @pytest.mark.asyncio
    async def test_criteria_excludes_newer(self, store):
        """max_sequence_number caps the selection."""
        await self._save_three(store)

        selected = await store.load_async(PID, SnapshotSelectionCriteria(max_sequence_number=6))

        assert selected.metadata.sequence_number == 5

    @pytest.mark.asyncio
    async def test_criteria_on_timestamp_axis(self, store):
        """max_timestamp caps the selection independently of sequence numbers."""
        await self._save_three(store)

        selected = await store.load_async(PID, SnapshotSelectionCriteria(max_timestamp=150))

        assert selected.metadata.sequence_number == 3

    @pytest.mark.asyncio
    async def test_same_sequence_number_prefers_newer_timestamp(self, store):
        """Ties on sequence number are broken by timestamp."""
        await store.save_async(SnapshotMetadata(PID, 5, 200), "old")
        await store.save_async(SnapshotMetadata(PID, 5, 250), "new")

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected.snapshot == "new"

    @pytest.mark.asyncio
    async def test_malformed_keys_are_ignored(self, store, object_store):
        """Objects that are not snapshot keys do not break the listing."""
        await self._save_three(store)
        object_store.put_raw(BUCKET, f"{PID}/README.txt", b"hello")
        object_store.put_raw(BUCKET, f"{PID}/9-x.snapshot", b"bad")

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected.metadata.sequence_number == 7

    @pytest.mark.asyncio
    async def test_list_failure_is_an_error(self, store, object_store):
        """A failed listing fails the load instead of returning None."""
        object_store.inject_status("list", 403)

        with pytest.raises(StoreOperationError) as exc_info:
            await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert exc_info.value.operation == "list"
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_bytes_serializer(self, object_store):
        """Raw bytes snapshots round-trip through the byte array serializer."""
        store = S3SnapshotStore(
            object_store, serializer=ByteArraySnapshotSerializer(), bucket_name=BUCKET
        )
        await store.save_async(SnapshotMetadata(PID, 1, 100), b"\x01\x02")

        selected = await store.load_async(PID, SnapshotSelectionCriteria.latest())

        assert selected.snapshot == b"\x01\x02"


class TestDelete:
    """Tests for delete_async and delete_by_criteria_async."""

    @pytest.fixture
    def object_store(self):
        return InMemoryObjectStore()

    @pytest.fixture
    def store(self, object_store):
        return S3SnapshotStore(object_store, bucket_name=BUCKET)

    async def _save(self, store, *points):
        for seq, ts in points:
            await store.save_async(SnapshotMetadata(PID, seq, ts), {"seq": seq})

    @pytest.mark.asyncio
    async def test_delete_exact_snapshot(self, store, object_store):
        """A non-zero timestamp deletes exactly that object."""
        await self._save(store, (5, 200), (5, 250))

        await store.delete_async(SnapshotMetadata(PID, 5, 200))

        assert object_store.keys(BUCKET) == [key_for(5, 250)]

    @pytest.mark.asyncio
    async def test_delete_failure_carries_status_code(self, store, object_store):
        """Non-success deletes fail with the status."""
        await self._save(store, (5, 200))
        object_store.inject_status("delete", 503)

        with pytest.raises(StoreOperationError) as exc_info:
            await store.delete_async(SnapshotMetadata(PID, 5, 200))

        assert exc_info.value.operation == "delete"
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_zero_timestamp_deletes_all_at_sequence_number(self, store, object_store):
        """timestamp == 0 removes every snapshot at that sequence number."""
        await self._save(store, (4, 150), (5, 200), (5, 250), (6, 300))

        await store.delete_async(SnapshotMetadata(PID, 5, 0))

        assert object_store.keys(BUCKET) == [key_for(4, 150), key_for(6, 300)]

    @pytest.mark.asyncio
    async def test_zero_timestamp_matches_criteria_delete(self):
        """The sentinel delete and the equivalent criteria delete remove the same objects."""
        points = [(4, 150), (5, 200), (5, 250), (6, 300)]

        sentinel_objects = InMemoryObjectStore()
        sentinel_store = S3SnapshotStore(sentinel_objects, bucket_name=BUCKET)
        await self._save(sentinel_store, *points)
        await sentinel_store.delete_async(SnapshotMetadata(PID, 5, 0))

        criteria_objects = InMemoryObjectStore()
        criteria_store = S3SnapshotStore(criteria_objects, bucket_name=BUCKET)
        await self._save(criteria_store, *points)
        await criteria_store.delete_by_criteria_async(
            PID, SnapshotSelectionCriteria.at_sequence_number(5)
        )

        assert sentinel_objects.keys(BUCKET) == criteria_objects.keys(BUCKET)
        assert sorted(c.key for c in sentinel_objects.calls_for("delete")) == sorted(
            c.key for c in criteria_objects.calls_for("delete")
        )

    @pytest.mark.asyncio
    async def test_criteria_delete_one_call_per_candidate(self, store, object_store):
        """Exactly one delete is issued per matching snapshot."""
        await self._save(store, (1, 100), (2, 200), (3, 300), (4, 400))

        await store.delete_by_criteria_async(PID, SnapshotSelectionCriteria(max_sequence_number=3))

        deleted = sorted(call.key for call in object_store.calls_for("delete"))
        assert deleted == [key_for(1, 100), key_for(2, 200), key_for(3, 300)]
        assert object_store.keys(BUCKET) == [key_for(4, 400)]

    @pytest.mark.asyncio
    async def test_criteria_delete_runs_concurrently(self, store, object_store):
        """Deletes overlap and all have finished when the call returns."""
        await self._save(store, (1, 100), (2, 200), (3, 300), (4, 400), (5, 500))
        object_store.operation_delay = 0.01

        await store.delete_by_criteria_async(PID, SnapshotSelectionCriteria.latest())

        assert object_store.max_in_flight["delete"] == 5
        assert object_store.keys(BUCKET) == []

    @pytest.mark.asyncio
    async def test_criteria_delete_attempts_all_before_failing(self, store, object_store):
        """One failing delete does not stop the others; the failure is reported after."""
        await self._save(store, (1, 100), (2, 200), (3, 300))
        object_store.inject_status("delete", 500, key=key_for(2, 200))

        with pytest.raises(StoreOperationError) as exc_info:
            await store.delete_by_criteria_async(PID, SnapshotSelectionCriteria.latest())

        assert exc_info.value.status_code == 500
        assert len(object_store.calls_for("delete")) == 3
        assert object_store.keys(BUCKET) == [key_for(2, 200)]

    @pytest.mark.asyncio
    async def test_criteria_delete_with_no_match(self, store, object_store):
        """An empty selection deletes nothing and succeeds."""
        await self._save(store, (1, 100))

        await store.delete_by_criteria_async(PID, SnapshotSelectionCriteria.none())

        assert object_store.calls_for("delete") == []
        assert object_store.keys(BUCKET) == [key_for(1, 100)]

    @pytest.mark.asyncio
    async def test_criteria_delete_unbounded_timestamps(self, store, object_store):
        """MIN/MAX timestamp bounds select everything on the timestamp axis."""
        await self._save(store, (1, 1), (1, MAX_VALUE - 1))

        await store.delete_async(SnapshotMetadata(PID, 1, 0))

        assert object_store.keys(BUCKET) == []


class TestSharedBucket:
    """Listing in a bucket shared by several entities."""

    @pytest.fixture
    def object_store(self):
        return InMemoryObjectStore()

    @pytest.fixture
    def store(self, object_store):
        return S3SnapshotStore(
            object_store,
            key_converter=FlatKeyConverter(),
            path_prefix_resolver=NoPathPrefixResolver(),
            bucket_name=BUCKET,
        )

    @pytest.mark.asyncio
    async def test_load_ignores_other_entities(self, store):
        """Another entity's newer snapshot is never selected."""
        await store.save_async(SnapshotMetadata("a", 1, 100), "a1")
        await store.save_async(SnapshotMetadata("b", 9, 900), "b9")

        selected = await store.load_async("a", SnapshotSelectionCriteria.latest())

        assert selected.snapshot == "a1"

    @pytest.mark.asyncio
    async def test_criteria_delete_leaves_other_entities(self, store, object_store):
        """Criteria deletes only touch the requested entity."""
        await store.save_async(SnapshotMetadata("a", 1, 100), "a1")
        await store.save_async(SnapshotMetadata("b", 1, 100), "b1")

        await store.delete_by_criteria_async("a", SnapshotSelectionCriteria.latest())

        assert object_store.keys(BUCKET) == ["b~1~100.snapshot"]

    @pytest.mark.asyncio
    async def test_list_async_sorted_oldest_first(self, store):
        """list_async returns matching metadata in recency order."""
        await store.save_async(SnapshotMetadata("a", 2, 200), "x")
        await store.save_async(SnapshotMetadata("a", 1, 100), "x")
        await store.save_async(SnapshotMetadata("b", 3, 300), "x")

        metadatas = await store.list_async("a")

        assert [m.sequence_number for m in metadatas] == [1, 2]


class TestUnprefixedBucket:
    """Default keys in a bucket listed without a path prefix."""

    @pytest.fixture
    def object_store(self):
        return InMemoryObjectStore()

    @pytest.fixture
    def store(self, object_store):
        return S3SnapshotStore(
            object_store, path_prefix_resolver=NoPathPrefixResolver(), bucket_name=BUCKET
        )

    @pytest.mark.asyncio
    async def test_load_finds_default_keys(self, store):
        """Keys containing '/' are found when no prefix narrows the listing."""
        await store.save_async(SnapshotMetadata("order-1", 5, 100), {"x": 1})
        await store.save_async(SnapshotMetadata("order-2", 9, 900), {"x": 2})

        selected = await store.load_async("order-1", SnapshotSelectionCriteria.latest())

        assert selected is not None
        assert selected.metadata == SnapshotMetadata("order-1", 5, 100)
        assert selected.snapshot == {"x": 1}

    @pytest.mark.asyncio
    async def test_criteria_delete_finds_default_keys(self, store, object_store):
        """Criteria deletes reach every matching object of the entity only."""
        await store.save_async(SnapshotMetadata("order-1", 1, 100), "a")
        await store.save_async(SnapshotMetadata("order-1", 2, 200), "b")
        await store.save_async(SnapshotMetadata("order-2", 1, 100), "c")

        await store.delete_by_criteria_async("order-1", SnapshotSelectionCriteria.latest())

        assert object_store.keys(BUCKET) == ["order-2/1-100.snapshot"]


class TestLoadLogging:
    """Candidate selection is logged."""

    @pytest.mark.asyncio
    async def test_selection_logged_at_debug(self, caplog):
        store = S3SnapshotStore(InMemoryObjectStore(), bucket_name=BUCKET, max_load_attempts=2)
        for seq, ts in [(3, 100), (5, 200), (7, 300)]:
            await store.save_async(SnapshotMetadata(PID, seq, ts), seq)

        with caplog.at_level(logging.DEBUG, logger="snapstore.s3_snapshot.snapshot.store"):
            await store.load_async(PID, SnapshotSelectionCriteria.latest())

        records = [r for r in caplog.records if r.getMessage().startswith("Selected")]
        assert len(records) == 1
        assert records[0].max_load_attempts == 2
        assert records[0].candidates == ["order-1@5/200", "order-1@7/300"]


def test_max_load_attempts_must_be_positive():
    """A zero attempt budget is rejected at construction."""
    with pytest.raises(ValueError):
        S3SnapshotStore(InMemoryObjectStore(), max_load_attempts=0)
