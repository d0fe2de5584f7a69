"""
Error types for the snapshot store.

This module defines all exception types raised by the store:
- SnapshotStoreError: Base exception
- ConfigurationError: A strategy or setting cannot be resolved at wiring time
- StoreOperationError: The object store reported a non-success status
- MalformedKeyError: An object key does not decode to snapshot metadata
- SnapshotSerializationError / SnapshotDeserializationError: Codec failures

Invariants:
    - All errors inherit from SnapshotStoreError
    - Errors include context for debugging
    - Secrets never appear in error messages
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SnapshotStoreError(Exception):
    """Base exception for all snapshot store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SNAPSHOT_STORE_ERROR"
        self.details = details or {}


class ConfigurationError(SnapshotStoreError):
    """The store cannot be wired from its configuration.

    Raised when:
    - A strategy identifier is not registered
    - A setting is out of range
    """

    def __init__(self, message: str, setting: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            details={"setting": setting},
        )
        self.setting = setting


class StoreOperationError(SnapshotStoreError):
    """An object store call returned a non-success status.

    Attributes:
        operation: Object store operation ("put", "get", "delete", "list")
        status_code: Status code reported by the object store
    """

    def __init__(
        self,
        operation: str,
        status_code: int,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Failed to {operation} object: statusCode = {status_code}",
            code="STORE_OPERATION_ERROR",
            details={
                "operation": operation,
                "status_code": status_code,
                "bucket": bucket,
                "key": key,
            },
        )
        self.operation = operation
        self.status_code = status_code
        self.bucket = bucket
        self.key = key


class MalformedKeyError(SnapshotStoreError):
    """An object key does not match the snapshot key encoding."""

    def __init__(self, key: str, extension: str) -> None:
        super().__init__(
            f"Object key '{key}' is not a snapshot key for extension '{extension}'",
            code="MALFORMED_KEY",
            details={"key": key, "extension": extension},
        )
        self.key = key
        self.extension = extension


class SnapshotSerializationError(SnapshotStoreError):
    """A snapshot value could not be encoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SERIALIZATION_ERROR")


class SnapshotDeserializationError(SnapshotStoreError):
    """A stored snapshot could not be decoded."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DESERIALIZATION_ERROR")
