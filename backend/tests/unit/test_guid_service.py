"""
Unit tests for GuidService.

Tests cover:
- UUID generation
- GUID encoding/decoding
- Format validation
- Error handling
"""

import uuid

import pytest

from backend.src.services.guid import (
    GuidService,
    ENTITY_PREFIXES,
    GUID_PATTERN,
)


class TestGuidGeneration:
    """Tests for UUID generation."""

    def test_generate_uuid_returns_uuid(self):
        """Test that generate_uuid returns a UUID object."""
        result = GuidService.generate_uuid()
        assert isinstance(result, uuid.UUID)

    def test_generate_uuid_is_unique(self):
        """Test that generated UUIDs are unique."""
        uuids = [GuidService.generate_uuid() for _ in range(100)]
        assert len(set(uuids)) == 100

    def test_generate_uuid_is_version_7(self):
        """Test that generated UUIDs are version 7 (time-ordered)."""
        result = GuidService.generate_uuid()
        assert result.version == 7

    def test_generate_guid(self):
        """Test that generate_guid produces a valid GUID for the prefix."""
        guid = GuidService.generate_guid("ins")
        assert GuidService.validate_guid(guid, "ins")


class TestGuidEncoding:
    """Tests for GUID encoding."""

    def test_encode_uuid_with_valid_prefix(self):
        """Test encoding with every entity prefix."""
        test_uuid = GuidService.generate_uuid()

        for prefix in ENTITY_PREFIXES.keys():
            result = GuidService.encode_uuid(test_uuid, prefix)
            assert result.startswith(f"{prefix}_")
            assert len(result) == 30  # 3 (prefix) + 1 (_) + 26 (base32)

    def test_encode_uuid_is_lowercase(self):
        """Test that encoded GUIDs are lowercase."""
        result = GuidService.encode_uuid(GuidService.generate_uuid(), "rec")
        assert result == result.lower()

    def test_encode_uuid_invalid_prefix(self):
        """Test that invalid prefix raises ValueError."""
        with pytest.raises(ValueError) as exc_info:
            GuidService.encode_uuid(GuidService.generate_uuid(), "col")

        assert "Invalid prefix" in str(exc_info.value)

    def test_encode_uuid_bytes(self):
        """Test encoding UUID from raw bytes."""
        test_uuid = GuidService.generate_uuid()
        result = GuidService.encode_uuid(test_uuid.bytes, "exc")
        assert result == GuidService.encode_uuid(test_uuid, "exc")

    def test_encode_zero_uuid_is_padded(self):
        """Test that small values are zero-padded to 26 characters."""
        result = GuidService.encode_uuid(uuid.UUID(int=1), "loc")
        assert result == "loc_" + "0" * 25 + "1"


class TestGuidDecoding:
    """Tests for GUID decoding."""

    def test_decode_round_trip(self):
        """Test that decoding an encoded GUID returns the original UUID."""
        test_uuid = GuidService.generate_uuid()
        guid = GuidService.encode_uuid(test_uuid, "rec")

        prefix, decoded = GuidService.decode_guid(guid)

        assert prefix == "rec"
        assert decoded == test_uuid

    def test_decode_is_case_insensitive(self):
        """Test that uppercase GUIDs decode to the same UUID."""
        test_uuid = GuidService.generate_uuid()
        guid = GuidService.encode_uuid(test_uuid, "ins")

        _, decoded = GuidService.decode_guid(guid.upper())

        assert decoded == test_uuid

    def test_decode_empty(self):
        with pytest.raises(ValueError) as exc_info:
            GuidService.decode_guid("")
        assert "empty" in str(exc_info.value)

    @pytest.mark.parametrize("guid", [
        "rec_123",
        "rec-01hgw2bbg0000000000000000a",
        "xyz_01hgw2bbg00000000000000000",
        "rec_01hgw2bbg0000000000000000u",
    ])
    def test_decode_invalid_format(self, guid):
        """Test that malformed GUIDs are rejected."""
        with pytest.raises(ValueError):
            GuidService.decode_guid(guid)

    def test_parse_guid_prefix_mismatch(self):
        """Test that parse_guid checks the entity prefix."""
        guid = GuidService.generate_guid("loc")

        with pytest.raises(ValueError) as exc_info:
            GuidService.parse_guid(guid, "rec")

        assert "prefix mismatch" in str(exc_info.value)


class TestGuidValidation:
    """Tests for validation helpers."""

    def test_validate_guid(self):
        guid = GuidService.generate_guid("rec")

        assert GuidService.validate_guid(guid) is True
        assert GuidService.validate_guid(guid, "rec") is True
        assert GuidService.validate_guid(guid, "ins") is False

    @pytest.mark.parametrize("value", [None, "", "rec_", "not a guid"])
    def test_validate_guid_rejects_garbage(self, value):
        assert GuidService.validate_guid(value) is False

    def test_get_entity_type(self):
        assert GuidService.get_entity_type(GuidService.generate_guid("rec")) == "RecurringTemplate"
        assert GuidService.get_entity_type(GuidService.generate_guid("exc")) == "EventException"
        assert GuidService.get_entity_type("zzz_whatever") is None

    def test_pattern_excludes_ambiguous_letters(self):
        """Crockford Base32 has no I, L, O or U."""
        assert GUID_PATTERN.match("rec_" + "0" * 25 + "i") is None
        assert GUID_PATTERN.match("rec_" + "0" * 25 + "u") is None
