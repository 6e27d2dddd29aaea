"""
GUID service for entity identification.

Provides utilities for encoding, decoding and validating the Global Unique
Identifiers used in URLs and API responses.

GUID Format: {prefix}_{base32_uuid}
- prefix: 3-character entity type identifier (rec, ins, exc, loc)
- base32_uuid: 26-character Crockford Base32 encoded UUIDv7
"""

import re
import uuid

import base32_crockford
from uuid_extensions import uuid7

# Prefix mappings for entity types
#   rec - RecurringTemplate (series definition)
#   ins - EventInstance (one concrete occurrence)
#   exc - EventException (per-date override)
#   loc - Location (venue)
ENTITY_PREFIXES = {
    "rec": "RecurringTemplate",
    "ins": "EventInstance",
    "exc": "EventException",
    "loc": "Location",
}

# Pattern for validating GUIDs
# Format: {3-char prefix}_{26-char Crockford Base32}
GUID_PATTERN = re.compile(
    r"^(rec|ins|exc|loc)_[0-9A-HJKMNP-TV-Za-hjkmnp-tv-z]{26}$",
    re.IGNORECASE
)


class GuidService:
    """
    Service for GUID operations.

    Provides static methods for:
    - Generating new UUIDv7 values and GUIDs
    - Encoding UUIDs to GUID strings
    - Decoding GUID strings to UUIDs
    - Validating GUID format and entity type
    """

    @staticmethod
    def generate_uuid() -> uuid.UUID:
        """Generate a new time-ordered UUIDv7 value."""
        return uuid7()

    @staticmethod
    def encode_uuid(uuid_value: uuid.UUID, prefix: str) -> str:
        """
        Encode a UUID to a GUID string.

        Args:
            uuid_value: UUID (or its 16 raw bytes) to encode
            prefix: Entity type prefix (rec, ins, exc, loc)

        Returns:
            GUID string (e.g., "rec_01hgw2bbg...")

        Raises:
            ValueError: If prefix is invalid
        """
        if prefix not in ENTITY_PREFIXES:
            raise ValueError(
                f"Invalid prefix '{prefix}'. "
                f"Valid prefixes: {', '.join(ENTITY_PREFIXES.keys())}"
            )

        raw = uuid_value if isinstance(uuid_value, bytes) else uuid_value.bytes
        encoded = base32_crockford.encode(int.from_bytes(raw, "big"))
        # Pad to 26 characters
        return f"{prefix}_{encoded.zfill(26).lower()}"

    @staticmethod
    def generate_guid(prefix: str) -> str:
        """Generate a new GUID with the specified prefix."""
        return GuidService.encode_uuid(GuidService.generate_uuid(), prefix)

    @staticmethod
    def decode_guid(guid: str) -> tuple[str, uuid.UUID]:
        """
        Decode a GUID string to its components.

        Args:
            guid: GUID string (e.g., "rec_01HGW2BBG...")

        Returns:
            Tuple of (prefix, UUID)

        Raises:
            ValueError: If the GUID format is invalid
        """
        if not guid:
            raise ValueError("GUID cannot be empty")

        if not GUID_PATTERN.match(guid):
            raise ValueError(
                f"Invalid GUID format: {guid}. "
                f"Expected format: {{prefix}}_{{26-char base32}}"
            )

        prefix = guid[:3].lower()
        try:
            uuid_int = base32_crockford.decode(guid[4:].upper())
            return prefix, uuid.UUID(bytes=uuid_int.to_bytes(16, "big"))
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid GUID encoding: {e}")

    @staticmethod
    def validate_guid(guid: str, expected_prefix: str = None) -> bool:
        """
        Validate a GUID format.

        Args:
            guid: GUID string to validate
            expected_prefix: Optional expected prefix for type checking

        Returns:
            True if valid, False otherwise
        """
        if not guid or not GUID_PATTERN.match(guid):
            return False

        if expected_prefix:
            return guid[:3].lower() == expected_prefix.lower()

        return True

    @staticmethod
    def get_entity_type(guid: str) -> str | None:
        """Get the entity type name from a GUID, or None if unknown."""
        if not guid or len(guid) < 3:
            return None
        return ENTITY_PREFIXES.get(guid[:3].lower())

    @staticmethod
    def parse_guid(guid: str, expected_prefix: str) -> uuid.UUID:
        """
        Parse a GUID string to UUID, validating the prefix.

        Convenience method for service layer lookups.

        Raises:
            ValueError: If format invalid or prefix doesn't match
        """
        prefix, uuid_value = GuidService.decode_guid(guid)
        if prefix != expected_prefix.lower():
            raise ValueError(
                f"GUID prefix mismatch. "
                f"Expected '{expected_prefix}', got '{prefix}'"
            )
        return uuid_value
