"""
EventException model for per-date overrides of a series.

An exception records how one occurrence deviates from its template:
- cancelled: the occurrence does not take place
- modified: some of title, description, start/end time or location differ

Override columns are NULL when the value is inherited from the template.
An exception is identified by (template_id, occurrence_date); the original
occurrence date is kept even when the start time is moved.
"""

from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Time, Text,
    ForeignKey, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class EventException(Base, GuidMixin):
    """
    Per-date override model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (exc_xxx, inherited from GuidMixin)
        template_id: Owning template (CASCADE on delete)
        occurrence_date: Generated date the exception applies to
        kind: "cancelled" or "modified"
        title: Override title (NULL = inherit)
        description: Override description (NULL = inherit)
        start_time: Override start time of day (NULL = inherit)
        end_time: Override end time of day (NULL = inherit)
        location_id: Override location (NULL = inherit)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "event_exceptions"

    GUID_PREFIX = "exc"

    id = Column(Integer, primary_key=True, autoincrement=True)

    template_id = Column(
        Integer,
        ForeignKey("recurring_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    occurrence_date = Column(Date, nullable=False)
    kind = Column(String(16), nullable=False)

    # Overrides
    title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    location_id = Column(
        Integer,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        UniqueConstraint("template_id", "occurrence_date", name="uq_event_exceptions_template_date"),
        CheckConstraint("kind IN ('cancelled', 'modified')", name="ck_event_exceptions_kind"),
    )

    template = relationship("RecurringTemplate", back_populates="exceptions")

    @property
    def is_cancellation(self) -> bool:
        return self.kind == "cancelled"

    def __repr__(self) -> str:
        return (
            f"<EventException("
            f"id={self.id}, "
            f"template_id={self.template_id}, "
            f"date={self.occurrence_date}, "
            f"kind='{self.kind}'"
            f")>"
        )
