"""
RecurringTemplate model for recurring series definitions.

A template is the abstract definition of a series: content (title,
description, location), an anchor time range and a recurrence rule. Every
concrete occurrence is an EventInstance row materialized from it; per-date
deviations are EventException rows.

Design Rationale:
- The rule is stored as typed columns (frequency, interval, count/until,
  by_day) rather than free text; `rule` rebuilds the Rule value object and
  `recurrence_rule` renders canonical text
- anchor_start/anchor_end carry the anchor date, the time-of-day range and
  the duration of every occurrence
- A this-and-future update splits the series: the original is truncated and
  the continuation points back through parent_template_id
- Deleting a template cascades to its instances and exceptions
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Text,
    ForeignKey, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin
from backend.src.services.rule_parser import (
    Count,
    Frequency,
    Rule,
    Until,
    Weekday,
)


class RecurringTemplate(Base, GuidMixin):
    """
    Recurring series template model.

    Attributes:
        id: Primary key (internal, never exposed)
        uuid: UUIDv7 for external identification (inherited from GuidMixin)
        guid: GUID string property (rec_xxx, inherited from GuidMixin)
        title: Series title, inherited by instances
        description: Series description, inherited by instances
        anchor_start: Start of the first occurrence (anchor date + start time)
        anchor_end: End of the first occurrence (end - start = duration)
        frequency: daily, weekly, monthly or yearly
        interval: Units of frequency between occurrences (>= 1)
        count: Occurrence count bound (exclusive with until)
        until: Last date that may be generated (exclusive with count)
        by_day: Comma-separated weekday tokens for weekly rules (MO,WE)
        rule_text: Canonical rule text, unique together with title and anchor_start
        location_id: Default location (SET NULL on delete)
        parent_template_id: Template this one was split from (SET NULL)
        created_at: Creation timestamp
        updated_at: Last update timestamp

    Relationships:
        location: Default venue (many-to-one)
        parent: Template this series continues (many-to-one)
        instances: Materialized occurrences (one-to-many, CASCADE on delete)
        exceptions: Per-date overrides (one-to-many, CASCADE on delete)
    """

    __tablename__ = "recurring_templates"

    GUID_PREFIX = "rec"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Content
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    # Anchor time range
    anchor_start = Column(DateTime, nullable=False, index=True)
    anchor_end = Column(DateTime, nullable=False)

    # Recurrence rule
    frequency = Column(String(16), nullable=False)
    interval = Column("recurrence_interval", Integer, default=1, nullable=False)
    count = Column(Integer, nullable=True)
    until = Column(Date, nullable=True)
    by_day = Column(String(32), nullable=True)
    # Canonical text of the columns above; part of the series identity key
    rule_text = Column(String(255), nullable=False)

    location_id = Column(
        Integer,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    parent_template_id = Column(
        Integer,
        ForeignKey("recurring_templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("recurrence_interval >= 1", name="ck_recurring_templates_interval"),
        CheckConstraint(
            "count IS NULL OR until IS NULL",
            name="ck_recurring_templates_single_bound"
        ),
        CheckConstraint("anchor_end >= anchor_start", name="ck_recurring_templates_anchor_range"),
        UniqueConstraint(
            "title", "anchor_start", "rule_text",
            name="uq_recurring_templates_identity"
        ),
    )

    # Relationships
    location = relationship("Location", back_populates="templates")
    parent = relationship("RecurringTemplate", remote_side=[id])
    instances = relationship(
        "EventInstance",
        back_populates="template",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True
    )
    exceptions = relationship(
        "EventException",
        back_populates="template",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    # =========================================================================
    # Rule accessors
    # =========================================================================

    @property
    def rule(self) -> Rule:
        """Typed recurrence rule rebuilt from the rule columns."""
        bound = None
        if self.count is not None:
            bound = Count(self.count)
        elif self.until is not None:
            bound = Until(self.until)

        by_day = ()
        if self.by_day:
            by_day = tuple(sorted(Weekday[token] for token in self.by_day.split(",")))

        return Rule(
            frequency=Frequency(self.frequency),
            interval=self.interval or 1,
            bound=bound,
            by_day=by_day,
        )

    @rule.setter
    def rule(self, rule: Rule) -> None:
        self.frequency = rule.frequency.value
        self.interval = rule.interval
        self.count = rule.count
        self.until = rule.until
        self.by_day = ",".join(day.name for day in rule.by_day) or None
        self.rule_text = rule.to_text()

    @property
    def recurrence_rule(self) -> str:
        """Canonical rule text (e.g. FREQ=WEEKLY;COUNT=4)."""
        return self.rule.to_text()

    # =========================================================================
    # Anchor accessors
    # =========================================================================

    @property
    def start_date(self) -> date:
        return self.anchor_start.date()

    @property
    def start_time(self) -> time:
        return self.anchor_start.time()

    @property
    def end_time(self) -> time:
        return self.anchor_end.time()

    @property
    def duration(self) -> timedelta:
        return self.anchor_end - self.anchor_start

    @property
    def parent_guid(self) -> Optional[str]:
        return self.parent.guid if self.parent else None

    @property
    def location_guid(self) -> Optional[str]:
        return self.location.guid if self.location else None

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<RecurringTemplate("
            f"id={self.id}, "
            f"title='{self.title}', "
            f"rule='{self.recurrence_rule}'"
            f")>"
        )

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"{self.title} ({self.recurrence_rule})"
