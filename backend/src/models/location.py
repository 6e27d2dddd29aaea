"""
Location model for event venues.

Locations are the venues where series take place. Templates reference a
default location; instances and modified exceptions may point elsewhere.

Design Rationale:
- Deleting a location never deletes schedules: referencing rows get NULL
- is_active hides retired venues from pickers without breaking history
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class Location(Base, GuidMixin):
    """
    Event location (venue) model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (loc_xxx, inherited from GuidMixin)
        name: Venue display name
        address: Free-form address
        capacity: Optional number of attendees the venue holds
        is_active: Whether the venue can be picked for new series
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Relationships:
        templates: Series using this venue by default (SET NULL on delete)
    """

    __tablename__ = "locations"

    GUID_PREFIX = "loc"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False, index=True)
    address = Column(Text, nullable=True)
    capacity = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    templates = relationship("RecurringTemplate", back_populates="location", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name='{self.name}')>"

    def __str__(self) -> str:
        return self.name
