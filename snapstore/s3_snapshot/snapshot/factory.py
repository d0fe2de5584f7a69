"""
Wiring of S3SnapshotStore from configuration.

Strategy identifiers are looked up in the registries of their modules. Any
identifier that is not registered stops the store from being built.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..config import StoreConfig
from ..instrumentation import create_metrics_reporter, create_trace_reporter
from ..objectstore import ObjectStore, S3ObjectStore
from ..resolver import (
    create_bucket_name_resolver,
    create_key_converter,
    create_path_prefix_resolver,
)
from ..serialization import create_serializer
from .store import S3SnapshotStore

logger = logging.getLogger(__name__)


def create_snapshot_store(
    config: StoreConfig,
    object_store: Optional[ObjectStore] = None,
) -> S3SnapshotStore:
    """Build a snapshot store from configuration.

    Args:
        config: Complete store configuration
        object_store: Object store to use; defaults to an S3ObjectStore
            for ``config.s3`` that the caller must connect() before use

    Returns:
        A ready S3SnapshotStore

    Raises:
        ConfigurationError: If the configuration is invalid or names an
            unknown strategy
    """
    config.validate()
    plugin = config.snapshot

    metrics_reporter = create_metrics_reporter(plugin)
    trace_reporter = create_trace_reporter(plugin)

    store = S3SnapshotStore(
        object_store=object_store if object_store is not None else S3ObjectStore(config.s3),
        serializer=create_serializer(plugin, metrics_reporter, trace_reporter),
        key_converter=create_key_converter(plugin),
        bucket_name_resolver=create_bucket_name_resolver(plugin),
        path_prefix_resolver=create_path_prefix_resolver(plugin),
        extension_name=plugin.extension_name,
        max_load_attempts=plugin.max_load_attempts,
        bucket_name=plugin.bucket_name,
        path_prefix=plugin.path_prefix,
        metrics_reporter=metrics_reporter,
        trace_reporter=trace_reporter,
    )
    logger.debug(
        "Snapshot store created",
        extra={
            "object_store": type(store.object_store).__name__,
            "serializer": plugin.serializer,
            "metrics_reporter": plugin.metrics_reporter,
            "trace_reporter": plugin.trace_reporter,
        },
    )
    return store
