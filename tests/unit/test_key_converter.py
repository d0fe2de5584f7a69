"""
Unit tests for the default snapshot key converter.

Tests cover:
- Key layout
- Decoding of produced keys, including ids containing separators
- Rejection of foreign keys
"""

import pytest

from snapstore.s3_snapshot.config import SnapshotPluginConfig
from snapstore.s3_snapshot.errors import ConfigurationError, MalformedKeyError
from snapstore.s3_snapshot.model import MAX_VALUE, SnapshotMetadata
from snapstore.s3_snapshot.resolver import (
    DefaultSnapshotMetadataKeyConverter,
    SnapshotMetadataKeyConverter,
    create_key_converter,
)


class TestDefaultSnapshotMetadataKeyConverter:
    """Tests for DefaultSnapshotMetadataKeyConverter."""

    @pytest.fixture
    def converter(self):
        return DefaultSnapshotMetadataKeyConverter()

    def test_implements_protocol(self, converter):
        assert isinstance(converter, SnapshotMetadataKeyConverter)

    def test_key_layout(self, converter):
        key = converter.convert_to(SnapshotMetadata("order-1", 5, 1700000000000), "snapshot")

        assert key == "order-1/5-1700000000000.snapshot"

    @pytest.mark.parametrize(
        "metadata",
        [
            SnapshotMetadata("order-1", 0, 0),
            SnapshotMetadata("tenant-a/order-1", 42, 1700000000000),
            SnapshotMetadata("weird-id-12-34", MAX_VALUE, MAX_VALUE),
        ],
    )
    def test_decodes_what_it_encodes(self, converter, metadata):
        key = converter.convert_to(metadata, "snapshot")

        assert converter.convert_from(key, "snapshot") == metadata

    def test_extension_with_regex_characters(self, converter):
        metadata = SnapshotMetadata("order-1", 1, 2)
        key = converter.convert_to(metadata, "snap.v1")

        assert converter.convert_from(key, "snap.v1") == metadata
        with pytest.raises(MalformedKeyError):
            converter.convert_from("order-1/1-2.snapXv1", "snap.v1")

    @pytest.mark.parametrize(
        "key",
        [
            "order-1/README.txt",
            "order-1/5-abc.snapshot",
            "order-1/5-100.other",
            "order-1/5-100.snapshot.bak",
            "5-100.snapshot",
            "/5-100.snapshot",
            "order-1/-5-100.snapshot",
        ],
    )
    def test_rejects_foreign_keys(self, converter, key):
        with pytest.raises(MalformedKeyError) as exc_info:
            converter.convert_from(key, "snapshot")

        assert exc_info.value.key == key
        assert exc_info.value.extension == "snapshot"


class TestCreateKeyConverter:
    """Tests for key converter selection."""

    def test_default(self):
        converter = create_key_converter(SnapshotPluginConfig())

        assert isinstance(converter, DefaultSnapshotMetadataKeyConverter)

    def test_unknown_identifier(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_key_converter(SnapshotPluginConfig(key_converter="com.example.Missing"))

        assert exc_info.value.setting == "key_converter"
