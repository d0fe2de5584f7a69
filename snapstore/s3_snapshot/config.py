"""
Configuration management for the S3 snapshot store.

All configuration is done via environment variables. This module provides
typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Static bucket name / path prefix, when set, win over resolver output
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - New strategy identifiers are registered next to their implementation,
      not listed here
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

COMPRESSIONS = ("none", "gzip")
LOG_FORMATS = ("json", "text")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'", setting=name)


@dataclass(frozen=True)
class S3Config:
    """S3 client configuration.

    Attributes:
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO / LocalStack)
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class SnapshotPluginConfig:
    """Snapshot store behaviour and strategy selection.

    Attributes:
        bucket_name: Static bucket name; overrides the bucket name resolver
        path_prefix: Static key prefix; overrides the path prefix resolver
        extension_name: Suffix tag appended to every snapshot key
        max_load_attempts: How many of the newest candidates load may try
        key_converter: Registered key converter identifier
        bucket_name_resolver: Registered bucket name resolver identifier
        bucket_shards: Number of buckets for the "sharded" resolver
        bucket_shard_base_name: Bucket name stem for the "sharded" resolver
        path_prefix_resolver: Registered path prefix resolver identifier
        serializer: Registered serializer identifier ("json" or "bytes")
        compression: Payload compression ("none" or "gzip")
        metrics_reporter: Registered metrics reporter identifier
        trace_reporter: Registered trace reporter identifier
    """

    bucket_name: str | None = None
    path_prefix: str | None = None
    extension_name: str = "snapshot"
    max_load_attempts: int = 3
    key_converter: str = "default"
    bucket_name_resolver: str = "persistence-id"
    bucket_shards: int = 1
    bucket_shard_base_name: str = "snapshots"
    path_prefix_resolver: str = "persistence-id"
    serializer: str = "json"
    compression: str = "none"
    metrics_reporter: str = "none"
    trace_reporter: str = "none"

    @classmethod
    def from_env(cls) -> SnapshotPluginConfig:
        """Load configuration from environment variables."""
        return cls(
            bucket_name=os.getenv("SNAPSHOT_BUCKET_NAME"),
            path_prefix=os.getenv("SNAPSHOT_PATH_PREFIX"),
            extension_name=os.getenv("SNAPSHOT_EXTENSION", "snapshot"),
            max_load_attempts=_env_int("SNAPSHOT_MAX_LOAD_ATTEMPTS", 3),
            key_converter=os.getenv("SNAPSHOT_KEY_CONVERTER", "default"),
            bucket_name_resolver=os.getenv("SNAPSHOT_BUCKET_NAME_RESOLVER", "persistence-id"),
            bucket_shards=_env_int("SNAPSHOT_BUCKET_SHARDS", 1),
            bucket_shard_base_name=os.getenv("SNAPSHOT_SHARD_BUCKET_BASE_NAME", "snapshots"),
            path_prefix_resolver=os.getenv("SNAPSHOT_PATH_PREFIX_RESOLVER", "persistence-id"),
            serializer=os.getenv("SNAPSHOT_SERIALIZER", "json"),
            compression=os.getenv("SNAPSHOT_COMPRESSION", "none").lower(),
            metrics_reporter=os.getenv("SNAPSHOT_METRICS_REPORTER", "none"),
            trace_reporter=os.getenv("SNAPSHOT_TRACE_REPORTER", "none"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
        )


@dataclass
class StoreConfig:
    """Complete snapshot store configuration.

    Attributes:
        s3: S3 client configuration
        snapshot: Snapshot store configuration
        observability: Logging configuration
    """

    s3: S3Config = field(default_factory=S3Config)
    snapshot: SnapshotPluginConfig = field(default_factory=SnapshotPluginConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Load complete configuration from environment variables.

        Returns:
            StoreConfig with all sections populated from environment.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        config = cls(
            s3=S3Config.from_env(),
            snapshot=SnapshotPluginConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        snapshot = self.snapshot
        if snapshot.max_load_attempts < 1:
            raise ConfigurationError(
                f"SNAPSHOT_MAX_LOAD_ATTEMPTS must be positive, got {snapshot.max_load_attempts}",
                setting="max_load_attempts",
            )
        if snapshot.bucket_shards < 1:
            raise ConfigurationError(
                f"SNAPSHOT_BUCKET_SHARDS must be positive, got {snapshot.bucket_shards}",
                setting="bucket_shards",
            )
        if not snapshot.extension_name:
            raise ConfigurationError("SNAPSHOT_EXTENSION must not be empty", setting="extension_name")
        if snapshot.compression not in COMPRESSIONS:
            raise ConfigurationError(
                f"Invalid SNAPSHOT_COMPRESSION '{snapshot.compression}'. "
                f"Must be one of: {', '.join(COMPRESSIONS)}",
                setting="compression",
            )
        if self.observability.log_format not in LOG_FORMATS:
            raise ConfigurationError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}",
                setting="log_format",
            )
        if snapshot.bucket_name is None and snapshot.bucket_name_resolver == "persistence-id":
            logger.warning(
                "No static SNAPSHOT_BUCKET_NAME set; every persistence id maps to its own bucket"
            )

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Snapshot store configuration loaded",
            extra={
                "s3_region": self.s3.region,
                "s3_endpoint": self.s3.endpoint_url or "AWS",
                "bucket_name": self.snapshot.bucket_name,
                "path_prefix": self.snapshot.path_prefix,
                "extension_name": self.snapshot.extension_name,
                "max_load_attempts": self.snapshot.max_load_attempts,
                "bucket_name_resolver": self.snapshot.bucket_name_resolver,
                "path_prefix_resolver": self.snapshot.path_prefix_resolver,
                "serializer": self.snapshot.serializer,
                "compression": self.snapshot.compression,
                "metrics_reporter": self.snapshot.metrics_reporter,
                "trace_reporter": self.snapshot.trace_reporter,
                "log_level": self.observability.log_level,
            },
        )
