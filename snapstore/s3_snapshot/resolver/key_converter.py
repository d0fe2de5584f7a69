"""
Bidirectional mapping between snapshot metadata and object keys.

Key format (default converter):
    <persistence_id>/<sequence_number>-<timestamp>.<extension>

Invariants:
    - convert_from(convert_to(m, ext), ext) == m for every valid metadata
    - convert_from raises MalformedKeyError for any key it did not produce

How to change safely:
    - Register a new converter instead of changing the default format;
      existing buckets are only readable through the converter that wrote them
"""

from __future__ import annotations

import re
from typing import Callable, Dict, Protocol, runtime_checkable

from ..config import SnapshotPluginConfig
from ..errors import ConfigurationError, MalformedKeyError
from ..model import SnapshotMetadata


@runtime_checkable
class SnapshotMetadataKeyConverter(Protocol):
    """Protocol for snapshot key encodings."""

    def convert_to(self, metadata: SnapshotMetadata, extension: str) -> str:
        """Encode metadata as an object key."""
        ...

    def convert_from(self, key: str, extension: str) -> SnapshotMetadata:
        """Decode an object key.

        Raises:
            MalformedKeyError: If the key is not a snapshot key
        """
        ...


class DefaultSnapshotMetadataKeyConverter:
    """``<persistence_id>/<sequence_number>-<timestamp>.<extension>``.

    The persistence id may itself contain ``/``; the last path segment is
    always the ``<seq>-<ts>.<ext>`` part.
    """

    def __init__(self) -> None:
        self._patterns: Dict[str, re.Pattern[str]] = {}

    def convert_to(self, metadata: SnapshotMetadata, extension: str) -> str:
        return f"{metadata.persistence_id}/{metadata.sequence_number}-{metadata.timestamp}.{extension}"

    def convert_from(self, key: str, extension: str) -> SnapshotMetadata:
        match = self._pattern(extension).fullmatch(key)
        if match is None:
            raise MalformedKeyError(key, extension)
        persistence_id, sequence_number, timestamp = match.groups()
        return SnapshotMetadata(
            persistence_id=persistence_id,
            sequence_number=int(sequence_number),
            timestamp=int(timestamp),
        )

    def _pattern(self, extension: str) -> re.Pattern[str]:
        pattern = self._patterns.get(extension)
        if pattern is None:
            pattern = re.compile(r"(.+)/([0-9]+)-([0-9]+)\." + re.escape(extension), re.DOTALL)
            self._patterns[extension] = pattern
        return pattern


KEY_CONVERTERS: Dict[str, Callable[[SnapshotPluginConfig], SnapshotMetadataKeyConverter]] = {
    "default": lambda config: DefaultSnapshotMetadataKeyConverter(),
}


def create_key_converter(config: SnapshotPluginConfig) -> SnapshotMetadataKeyConverter:
    """Factory function to create the configured key converter.

    Raises:
        ConfigurationError: If the identifier is not registered
    """
    factory = KEY_CONVERTERS.get(config.key_converter)
    if factory is None:
        raise ConfigurationError(
            f"Unknown key converter '{config.key_converter}'. "
            f"Must be one of: {', '.join(sorted(KEY_CONVERTERS))}",
            setting="key_converter",
        )
    return factory(config)
