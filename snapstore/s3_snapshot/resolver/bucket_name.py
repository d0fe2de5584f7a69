"""
Bucket name resolution for persistence ids.

Resolvers are pure functions of the persistence id. A static bucket name
in configuration takes precedence over any resolver; resolvers are the
fallback strategy.

Invariants:
    - resolve() is deterministic and performs no I/O
    - The same persistence id always maps to the same bucket
"""

from __future__ import annotations

import hashlib
from typing import Callable, Dict, Protocol, runtime_checkable

from ..config import SnapshotPluginConfig
from ..errors import ConfigurationError
from ..model import PersistenceId


@runtime_checkable
class SnapshotBucketNameResolver(Protocol):
    """Protocol for bucket name strategies."""

    def resolve(self, persistence_id: PersistenceId) -> str:
        ...


class PersistenceIdBucketNameResolver:
    """One bucket per persistence id, named after it."""

    def resolve(self, persistence_id: PersistenceId) -> str:
        return persistence_id.as_string()


class ShardedBucketNameResolver:
    """Spreads persistence ids over ``<base_name>-<n>`` buckets.

    Uses a stable hash so the mapping survives restarts and is identical
    across processes.
    """

    def __init__(self, base_name: str, shards: int) -> None:
        if shards < 1:
            raise ValueError(f"shards must be positive, got {shards}")
        self.base_name = base_name
        self.shards = shards

    def resolve(self, persistence_id: PersistenceId) -> str:
        return f"{self.base_name}-{self.shard_for(persistence_id)}"

    def shard_for(self, persistence_id: PersistenceId) -> int:
        hash_bytes = hashlib.md5(persistence_id.as_string().encode("utf-8")).digest()
        hash_int = int.from_bytes(hash_bytes[:4], "big")
        return hash_int % self.shards


def _sharded(config: SnapshotPluginConfig) -> SnapshotBucketNameResolver:
    return ShardedBucketNameResolver(config.bucket_shard_base_name, config.bucket_shards)


BUCKET_NAME_RESOLVERS: Dict[str, Callable[[SnapshotPluginConfig], SnapshotBucketNameResolver]] = {
    "persistence-id": lambda config: PersistenceIdBucketNameResolver(),
    "sharded": _sharded,
}


def create_bucket_name_resolver(config: SnapshotPluginConfig) -> SnapshotBucketNameResolver:
    """Factory function to create the configured bucket name resolver.

    Raises:
        ConfigurationError: If the identifier is not registered
    """
    factory = BUCKET_NAME_RESOLVERS.get(config.bucket_name_resolver)
    if factory is None:
        raise ConfigurationError(
            f"Unknown bucket name resolver '{config.bucket_name_resolver}'. "
            f"Must be one of: {', '.join(sorted(BUCKET_NAME_RESOLVERS))}",
            setting="bucket_name_resolver",
        )
    return factory(config)
