"""
Naming strategies for snapshot objects.

- Key converters map snapshot metadata to object keys and back
- Bucket name resolvers pick the bucket for a persistence id
- Path prefix resolvers narrow listings to one persistence id

Strategies are chosen by identifier through the registries below, or
passed to S3SnapshotStore as constructed objects.
"""

from .bucket_name import (
    BUCKET_NAME_RESOLVERS,
    PersistenceIdBucketNameResolver,
    ShardedBucketNameResolver,
    SnapshotBucketNameResolver,
    create_bucket_name_resolver,
)
from .key_converter import (
    KEY_CONVERTERS,
    DefaultSnapshotMetadataKeyConverter,
    SnapshotMetadataKeyConverter,
    create_key_converter,
)
from .path_prefix import (
    PATH_PREFIX_RESOLVERS,
    NoPathPrefixResolver,
    PathPrefixResolver,
    PersistenceIdPathPrefixResolver,
    create_path_prefix_resolver,
)

__all__ = [
    # Protocols
    "SnapshotMetadataKeyConverter",
    "SnapshotBucketNameResolver",
    "PathPrefixResolver",
    # Implementations
    "DefaultSnapshotMetadataKeyConverter",
    "PersistenceIdBucketNameResolver",
    "ShardedBucketNameResolver",
    "PersistenceIdPathPrefixResolver",
    "NoPathPrefixResolver",
    # Registries and factories
    "KEY_CONVERTERS",
    "BUCKET_NAME_RESOLVERS",
    "PATH_PREFIX_RESOLVERS",
    "create_key_converter",
    "create_bucket_name_resolver",
    "create_path_prefix_resolver",
]
