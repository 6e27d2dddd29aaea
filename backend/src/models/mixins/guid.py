"""
GUID mixin for SQLAlchemy models.

Series, instances, exceptions and locations are addressed externally by
GUIDs, never by their integer primary keys. A GUID is a UUIDv7 (time-ordered)
encoded with Crockford's Base32 behind a 3-character entity prefix.

GUID Format: {prefix}_{base32_uuid}
Examples:
    - rec_01hgw2bbg0000000000000000 (RecurringTemplate)
    - ins_01hgw2bbg0000000000000001 (EventInstance)
    - exc_01hgw2bbg0000000000000002 (EventException)
    - loc_01hgw2bbg0000000000000003 (Location)
"""

import uuid as uuid_module
from typing import ClassVar, Optional

from sqlalchemy import Column, TypeDecorator, LargeBinary
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from uuid_extensions import uuid7

from backend.src.services.guid import GuidService


class UUIDType(TypeDecorator):
    """
    Platform-independent UUID type.

    PostgreSQL stores a native UUID; SQLite (tests, local development)
    stores the 16 raw bytes. Always presents as a Python UUID object.
    """

    impl = LargeBinary
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(LargeBinary(16))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if not isinstance(value, uuid_module.UUID):
            value = uuid_module.UUID(bytes=value) if isinstance(value, bytes) else uuid_module.UUID(str(value))
        return value if dialect.name == "postgresql" else value.bytes

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid_module.UUID):
            return value
        if isinstance(value, bytes):
            return uuid_module.UUID(bytes=value)
        return uuid_module.UUID(str(value))


class GuidMixin:
    """
    Mixin providing GUID support for entities.

    Adds:
    - uuid: UUIDv7 column, unique and indexed
    - guid: Property returning the prefixed Base32 string
    - parse_guid: Class method decoding a GUID of this entity type

    Usage:
        class RecurringTemplate(Base, GuidMixin):
            GUID_PREFIX = "rec"
    """

    # Subclasses define their 3-character prefix
    GUID_PREFIX: ClassVar[str]

    uuid = Column(
        UUIDType(),
        nullable=False,
        unique=True,
        index=True,
        default=uuid7,  # Generated on insert
    )

    @property
    def guid(self) -> Optional[str]:
        """GUID in format {prefix}_{base32_uuid}, or None before the first flush."""
        if self.uuid is None:
            return None
        return GuidService.encode_uuid(self.uuid, self.GUID_PREFIX)

    @classmethod
    def parse_guid(cls, guid: str) -> uuid_module.UUID:
        """
        Parse a GUID of this entity type to its UUID.

        Raises:
            ValueError: If the GUID is malformed or has another entity's prefix
        """
        prefix, value = GuidService.decode_guid(guid)
        if prefix != cls.GUID_PREFIX:
            raise ValueError(
                f"Invalid prefix for {cls.__name__}. "
                f"Expected '{cls.GUID_PREFIX}', got '{prefix}'"
            )
        return value
