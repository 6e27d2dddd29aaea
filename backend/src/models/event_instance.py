"""
EventInstance model for materialized occurrences.

Each row is one concrete occurrence of a RecurringTemplate on one date.
Instances are derived data: they are inserted, updated and deleted by
re-materializing the template and overlaying its exceptions, and they keep
their identity (id and GUID) across re-materializations of the same date.

Design Rationale:
- (template_id, occurrence_date) is unique, so re-materialization upserts
- occurrence_date never changes for a row; times and content may
- Cancelled occurrences remain as rows flagged is_cancelled so that they
  stay addressable and can be restored
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Text,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class EventInstance(Base, GuidMixin):
    """
    Materialized occurrence model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (ins_xxx, inherited from GuidMixin)
        template_id: Owning template (CASCADE on delete)
        occurrence_date: Date this occurrence was generated for
        start_at: Effective start (template time or exception override)
        end_at: Effective end
        title: Effective title
        description: Effective description
        location_id: Effective location (SET NULL on delete)
        is_cancelled: True when a cancellation exception covers the date
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "event_instances"

    GUID_PREFIX = "ins"

    id = Column(Integer, primary_key=True, autoincrement=True)

    template_id = Column(
        Integer,
        ForeignKey("recurring_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    occurrence_date = Column(Date, nullable=False)

    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime, nullable=False)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location_id = Column(
        Integer,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    is_cancelled = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("template_id", "occurrence_date", name="uq_event_instances_template_date"),
        Index("ix_event_instances_template_start", "template_id", "start_at"),
    )

    template = relationship("RecurringTemplate", back_populates="instances")
    location = relationship("Location")

    @property
    def template_guid(self) -> str:
        return self.template.guid

    @property
    def location_guid(self):
        return self.location.guid if self.location else None

    def __repr__(self) -> str:
        return (
            f"<EventInstance("
            f"id={self.id}, "
            f"template_id={self.template_id}, "
            f"date={self.occurrence_date}, "
            f"cancelled={self.is_cancelled}"
            f")>"
        )
