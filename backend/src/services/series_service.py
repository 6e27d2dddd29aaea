"""
Recurring series service.

Coordinates every mutation of a recurring series. A mutation parses any new
rule, materializes candidate occurrences, folds exceptions in and writes the
minimal set of instance inserts, updates and deletes, all inside one
SeriesStore transaction.

Scopes:
- "this": one occurrence, recorded as an exception for its date
- "this_and_future": the series is split at the pivot date; the original is
  truncated to end the day before and a new template carries the series on
- "all": the template itself is changed and the series regenerated

Policies:
- Exceptions on or after a split pivot move with their instances to the new
  template; earlier exceptions stay with the truncated original
- A split without a new rule keeps FREQ, INTERVAL and BYDAY; an UNTIL bound
  is kept, a COUNT bound (or the default count) becomes the number of
  occurrences not yet consumed before the pivot
- A this_and_future update pivoting on the first generated date is applied
  as "all"; a this_and_future delete there cancels without truncating
- Every mutation locks the template row before reading its rule, anchor
  or instances
- Regeneration never deletes an instance that carries an exception, even
  when its date is no longer generated
- Regeneration is idempotent: rows are keyed by (template, date), keep their
  identity and only count as updated when a value changes
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from backend.src.config.settings import AppSettings, get_settings
from backend.src.models import EventException, EventInstance, RecurringTemplate
from backend.src.services.exception_overlay import (
    EXCEPTION_CANCELLED,
    EXCEPTION_MODIFIED,
    ExceptionOverlay,
    ResolvedOccurrence,
    TemplateDefaults,
)
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from backend.src.services.location_service import LocationService
from backend.src.services.materializer import (
    build_occurrence,
    count_before,
    horizon_for,
    iter_occurrence_dates,
    materialize,
)
from backend.src.services.rule_parser import Count, Rule, RuleParser, Until
from backend.src.services.series_store import SeriesStore
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")


SCOPE_THIS = "this"
SCOPE_THIS_AND_FUTURE = "this_and_future"
SCOPE_ALL = "all"
SCOPES = (SCOPE_THIS, SCOPE_THIS_AND_FUTURE, SCOPE_ALL)

# Fields a series update may carry
SERIES_FIELDS = {"title", "description", "start", "end", "recurrence_rule", "location_guid"}

# Instance fields written from resolved occurrences
_INSTANCE_VALUES = ("start_at", "end_at", "title", "description", "location_id", "is_cancelled")


@dataclass
class InstanceDiff:
    """Counts of instance rows touched by a mutation."""

    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0

    def __add__(self, other: "InstanceDiff") -> "InstanceDiff":
        return InstanceDiff(
            inserted=self.inserted + other.inserted,
            updated=self.updated + other.updated,
            deleted=self.deleted + other.deleted,
            unchanged=self.unchanged + other.unchanged,
        )

    @property
    def is_noop(self) -> bool:
        return not (self.inserted or self.updated or self.deleted)

    def __str__(self) -> str:
        return (
            f"+{self.inserted} ~{self.updated} -{self.deleted} ={self.unchanged}"
        )


@dataclass
class MutationResult:
    """
    Outcome of a series mutation.

    template is None once the series has been deleted; series_guid is
    captured before any delete so it is always available.
    """

    series_guid: str
    scope: str
    template: Optional[RecurringTemplate]
    diff: InstanceDiff = field(default_factory=InstanceDiff)
    new_template: Optional[RecurringTemplate] = None
    deleted: bool = False


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo; times are wall-clock values."""
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None)


class RecurringSeriesService:
    """
    Service for recurring series and their occurrences.

    Usage:
        >>> service = RecurringSeriesService(db_session)
        >>> result = service.create(
        ...     title="Daily Meeting",
        ...     start=datetime(2023, 1, 1, 9, 0),
        ...     end=datetime(2023, 1, 1, 9, 30),
        ...     recurrence_rule="FREQ=DAILY;COUNT=10",
        ... )
        >>> result.diff.inserted
        10
    """

    def __init__(self, db: Session, settings: Optional[AppSettings] = None):
        """
        Initialize series service.

        Args:
            db: SQLAlchemy database session
            settings: Application settings (defaults to get_settings())
        """
        self.db = db
        self.settings = settings or get_settings()
        self.store = SeriesStore(db)
        self.locations = LocationService(db)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_by_guid(self, guid: str) -> RecurringTemplate:
        """
        Get a series template by GUID.

        Raises:
            NotFoundError: If the series does not exist
        """
        return self.store.get_template_by_guid(guid)

    def list(self, limit: int = 20, offset: int = 0) -> tuple[List[RecurringTemplate], int]:
        """
        List series templates ordered by anchor start.

        Returns:
            Tuple of (templates, total count)
        """
        limit = max(1, min(limit, self.settings.max_page_size))
        offset = max(0, offset)
        return self.store.list_templates(limit, offset), self.store.count_templates()

    def get_instances(self, guid: str) -> List[EventInstance]:
        """
        Get the ordered occurrences of a series.

        Raises:
            NotFoundError: If the series does not exist (including after delete)
        """
        template = self.store.get_template_by_guid(guid)
        return self.store.list_instances(template.id)

    def get_instance(self, guid: str) -> EventInstance:
        """
        Get a single occurrence by GUID.

        Raises:
            NotFoundError: If the instance does not exist
        """
        return self.store.get_instance_by_guid(guid)

    def next_instance(self, template: RecurringTemplate, now: Optional[datetime] = None) -> Optional[EventInstance]:
        """Next upcoming non-cancelled occurrence of a series."""
        return self.store.next_instance(template.id, now or datetime.now())

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        title: str,
        start: datetime,
        recurrence_rule: str,
        end: Optional[datetime] = None,
        description: Optional[str] = None,
        location_guid: Optional[str] = None,
    ) -> MutationResult:
        """
        Create a series and materialize its occurrences.

        Args:
            title: Series title
            start: Start of the first occurrence
            recurrence_rule: Rule text (FREQ=...;COUNT=...)
            end: End of the first occurrence (defaults to start)
            description: Series description
            location_guid: Default location GUID

        Returns:
            MutationResult with the new template and inserted count

        Raises:
            InvalidRuleError: If the rule text is malformed
            ValidationError: If values are invalid or nothing would be generated
            ConflictError: If an identical series already exists
        """
        title = self._clean_title(title)
        anchor_start = _naive(start)
        anchor_end = _naive(end) or anchor_start
        self._check_range(anchor_start, anchor_end)

        rule = RuleParser.parse(recurrence_rule)
        location = self.locations.resolve_assignable(location_guid)
        self._require_occurrences(rule, anchor_start)

        # A concurrent identical create passes this check; the unique key on
        # (title, anchor_start, rule_text) then turns it into a ConflictError
        with self.store.transaction("create series"):
            for existing in self.store.find_templates(title, anchor_start):
                if existing.recurrence_rule == rule.to_text():
                    raise ConflictError(
                        f"Series '{title}' with rule {rule.to_text()} already exists",
                        existing_guid=existing.guid,
                    )

            template = RecurringTemplate(
                title=title,
                description=description,
                anchor_start=anchor_start,
                anchor_end=anchor_end,
                location_id=location.id if location else None,
            )
            template.rule = rule
            self.store.add_template(template)
            diff = self._regenerate(template)

        logger.info(
            f"Created series: {template.guid} - {title} "
            f"({rule.to_text()}, {diff.inserted} instances)"
        )
        return MutationResult(series_guid=template.guid, scope=SCOPE_ALL, template=template, diff=diff)

    # =========================================================================
    # Update
    # =========================================================================

    def update(
        self,
        guid: str,
        changes: Dict[str, Any],
        scope: str = SCOPE_ALL,
        pivot_date: Optional[date] = None,
    ) -> MutationResult:
        """
        Update a series with the given scope.

        Request values are validated first. The template row is then locked
        and the rule, anchor and pivot occurrence are read from the locked
        row, so concurrent mutations of one series apply one after the other.

        Args:
            guid: Series GUID
            changes: Fields to change (title, description, start, end,
                recurrence_rule, location_guid); absent keys are untouched
            scope: "this", "this_and_future" or "all"
            pivot_date: Occurrence date the change starts from (required
                unless scope is "all")

        Returns:
            MutationResult (new_template is set for a this_and_future split)

        Raises:
            NotFoundError: If the series or the pivot occurrence does not exist
            ValidationError: If scope, fields or pivot are invalid
            InvalidRuleError: If the new rule is malformed
        """
        scope = self._check_scope(scope)
        unknown = set(changes) - SERIES_FIELDS
        if unknown:
            raise ValidationError(f"Unknown series fields: {', '.join(sorted(unknown))}")
        if scope != SCOPE_ALL:
            self._check_pivot(pivot_date)

        template_id = self.store.get_template_by_guid(guid).id

        if scope == SCOPE_ALL:
            return self._update_all(template_id, changes)
        if scope == SCOPE_THIS:
            return self._update_this(template_id, pivot_date, changes)
        return self._update_this_and_future(template_id, pivot_date, changes)

    def _update_all(self, template_id: int, changes: Dict[str, Any]) -> MutationResult:
        parsed = self._parse_changes(changes)

        with self.store.transaction("update series"):
            template = self.store.lock_template(template_id)
            diff = self._apply_all(template, changes, parsed)

        logger.info(f"Updated series: {template.guid} (scope: all, instances: {diff})")
        return MutationResult(series_guid=template.guid, scope=SCOPE_ALL, template=template, diff=diff)

    def _apply_all(
        self,
        template: RecurringTemplate,
        changes: Dict[str, Any],
        parsed: Dict[str, Any],
    ) -> InstanceDiff:
        """Change a locked template in place and regenerate its instances."""
        anchor_start, anchor_end = self._new_anchor(template, changes)
        rule = parsed["rule"] or template.rule
        # A rename of a series that no longer generates anything stays possible
        if parsed["rule"] is not None or changes.get("start") is not None:
            self._require_occurrences(rule, anchor_start)

        if parsed["title"] is not None:
            template.title = parsed["title"]
        if "description" in changes:
            template.description = changes["description"]
        if "location_guid" in changes:
            location = parsed["location"]
            template.location_id = location.id if location else None
        template.anchor_start = anchor_start
        template.anchor_end = anchor_end
        template.rule = rule
        self.store.flush()
        return self._regenerate(template)

    def _update_this(
        self,
        template_id: int,
        occurrence_date: date,
        changes: Dict[str, Any],
    ) -> MutationResult:
        if "recurrence_rule" in changes:
            raise ValidationError(
                "The recurrence rule cannot be changed for a single occurrence",
                field="recurrence_rule",
            )

        overrides = self._occurrence_overrides(occurrence_date, changes)

        with self.store.transaction("update occurrence"):
            template = self.store.lock_template(template_id)
            instance = self._pivot_instance(template, occurrence_date)
            existing = self.store.get_exception(template.id, occurrence_date)
            # Modifying a cancelled occurrence keeps it cancelled
            kind = existing.kind if existing is not None else EXCEPTION_MODIFIED
            exception = self.store.save_exception(template.id, occurrence_date, kind, overrides)
            diff = self._refresh_instance(template, instance, exception)

        logger.info(f"Updated occurrence {instance.guid} of series {template.guid} ({occurrence_date})")
        return MutationResult(series_guid=template.guid, scope=SCOPE_THIS, template=template, diff=diff)

    def _update_this_and_future(
        self,
        template_id: int,
        pivot_date: date,
        changes: Dict[str, Any],
    ) -> MutationResult:
        parsed = self._parse_changes(changes)

        with self.store.transaction("split series"):
            template = self.store.lock_template(template_id)
            pivot = self._pivot_instance(template, pivot_date).occurrence_date

            if self._starts_series(template, pivot):
                logger.debug(f"Pivot {pivot} is the first date of {template.guid}; applying to all")
                diff = self._apply_all(template, changes, parsed)
                successor = None
            else:
                continued_rule = self._continued_rule(template, pivot, parsed["rule"])
                anchor_start, anchor_end = self._split_anchor(template, pivot, changes)
                self._require_occurrences(continued_rule, anchor_start)

                template.rule = template.rule.with_bound(Until(pivot - timedelta(days=1)))
                self.store.flush()

                if "location_guid" in changes:
                    location = parsed["location"]
                    location_id = location.id if location else None
                else:
                    location_id = template.location_id

                successor = RecurringTemplate(
                    title=parsed["title"] or template.title,
                    description=changes.get("description", template.description),
                    anchor_start=anchor_start,
                    anchor_end=anchor_end,
                    location_id=location_id,
                    parent_template_id=template.id,
                )
                successor.rule = continued_rule
                self.store.add_template(successor)

                moved = self.store.reassign_from(template.id, successor.id, pivot)
                diff = self._regenerate(template) + self._regenerate(successor)

        if successor is None:
            logger.info(f"Updated series: {template.guid} (scope: all, instances: {diff})")
            return MutationResult(series_guid=template.guid, scope=SCOPE_ALL, template=template, diff=diff)

        logger.info(
            f"Split series {template.guid} at {pivot} into {successor.guid} "
            f"({moved} instances moved, instances: {diff})"
        )
        return MutationResult(
            series_guid=template.guid,
            scope=SCOPE_THIS_AND_FUTURE,
            template=template,
            new_template=successor,
            diff=diff,
        )

    # =========================================================================
    # Delete
    # =========================================================================

    def delete(
        self,
        guid: str,
        scope: str = SCOPE_ALL,
        pivot_date: Optional[date] = None,
    ) -> MutationResult:
        """
        Delete a series with the given scope.

        - "this": the pivot occurrence is cancelled (it stays addressable)
        - "this_and_future": every occurrence from the pivot on is cancelled
          and the series is truncated to end the day before the pivot; a
          pivot on the first occurrence keeps the rule as it is
        - "all": the template, its instances and exceptions are removed

        Raises:
            NotFoundError: If the series or the pivot occurrence does not exist
            ValidationError: If scope or pivot are invalid
        """
        scope = self._check_scope(scope)
        if scope != SCOPE_ALL:
            self._check_pivot(pivot_date)

        template_id = self.store.get_template_by_guid(guid).id

        if scope == SCOPE_ALL:
            return self._delete_all(template_id)
        return self._cancel_from(template_id, pivot_date, single=scope == SCOPE_THIS)

    def _delete_all(self, template_id: int) -> MutationResult:
        with self.store.transaction("delete series"):
            template = self.store.lock_template(template_id)
            series_guid = template.guid
            removed = self.store.count_instances(template.id)
            exceptions = self.store.count_exceptions(template.id)
            self.store.delete_template(template)

        logger.info(
            f"Deleted series: {series_guid} ({removed} instances, {exceptions} exceptions)"
        )
        return MutationResult(
            series_guid=series_guid,
            scope=SCOPE_ALL,
            template=None,
            diff=InstanceDiff(deleted=removed),
            deleted=True,
        )

    def _cancel_from(self, template_id: int, pivot_date: date, single: bool) -> MutationResult:
        scope = SCOPE_THIS if single else SCOPE_THIS_AND_FUTURE

        with self.store.transaction("cancel occurrences"):
            template = self.store.lock_template(template_id)
            instance = self._pivot_instance(template, pivot_date)
            pivot = instance.occurrence_date
            if single:
                exception = self.store.save_exception(template.id, pivot, EXCEPTION_CANCELLED)
                diff = self._refresh_instance(template, instance, exception)
            else:
                for future in self.store.list_instances(template.id, from_date=pivot):
                    self.store.save_exception(
                        template.id, future.occurrence_date, EXCEPTION_CANCELLED
                    )
                # Nothing precedes a pivot on the first occurrence; the rule is kept
                if not self._starts_series(template, pivot):
                    # Cancelled dates past the new bound survive as exception rows
                    template.rule = template.rule.with_bound(Until(pivot - timedelta(days=1)))
                    self.store.flush()
                diff = self._regenerate(template)

        logger.info(
            f"Cancelled occurrences of series {template.guid} "
            f"(scope: {scope}, from: {pivot}, instances: {diff})"
        )
        return MutationResult(series_guid=template.guid, scope=scope, template=template, diff=diff)

    # =========================================================================
    # Instance-level operations
    # =========================================================================

    def update_instance(self, guid: str, changes: Dict[str, Any]) -> EventInstance:
        """Update one occurrence; equivalent to a "this" series update."""
        unknown = set(changes) - SERIES_FIELDS
        if unknown:
            raise ValidationError(f"Unknown instance fields: {', '.join(sorted(unknown))}")

        instance = self.store.get_instance_by_guid(guid)
        self._update_this(instance.template_id, instance.occurrence_date, changes)
        return self.store.get_instance_by_guid(guid)

    def cancel_instance(self, guid: str) -> EventInstance:
        """Cancel one occurrence; equivalent to a "this" series delete."""
        instance = self.store.get_instance_by_guid(guid)
        self._cancel_from(instance.template_id, instance.occurrence_date, single=True)
        return self.store.get_instance_by_guid(guid)

    def restore_instance(self, guid: str) -> Optional[EventInstance]:
        """
        Reset one occurrence to its series values.

        Deletes the occurrence's exception, whatever its kind. The instance is
        recomputed from the template, or deleted when its date is no longer
        generated by the rule. Restoring an occurrence without exception
        changes nothing.

        Returns:
            The restored instance, or None if it was removed

        Raises:
            NotFoundError: If the instance does not exist
        """
        instance = self.store.get_instance_by_guid(guid)
        template_id = instance.template_id
        occurrence_date = instance.occurrence_date
        removed = False

        with self.store.transaction("restore occurrence"):
            template = self.store.lock_template(template_id)
            exception = self.store.get_exception(template.id, occurrence_date)
            if exception is not None:
                self.store.delete_exception(exception)
                instance = self.store.get_instance(template.id, occurrence_date)
                if self._generates(template, occurrence_date):
                    self._refresh_instance(template, instance, None)
                else:
                    self.store.delete_instance(instance)
                    self.store.flush()
                    removed = True

        if exception is None:
            return self.store.get_instance_by_guid(guid)

        if removed:
            logger.info(f"Restored occurrence {guid} of series {template.guid}: date no longer generated, removed")
            return None

        logger.info(f"Restored occurrence {guid} of series {template.guid} ({occurrence_date})")
        return self.store.get_instance_by_guid(guid)

    # =========================================================================
    # Regeneration
    # =========================================================================

    def _regenerate(self, template: RecurringTemplate) -> InstanceDiff:
        """
        Bring a template's instances in line with its rule and exceptions.

        Upserts keyed by occurrence date: new dates are inserted, existing
        rows are updated only when a value differs, rows for dates no longer
        generated are deleted unless an exception covers them.
        """
        occurrences = materialize(
            template.rule,
            template.anchor_start,
            template.anchor_end,
            horizon=self._horizon(template),
            default_count=self.settings.default_occurrence_count,
        )
        exceptions = self.store.exceptions_by_date(template.id)
        resolved = ExceptionOverlay.apply(occurrences, self._defaults(template), exceptions)
        existing = self.store.instances_by_date(template.id)

        diff = InstanceDiff()
        for occurrence in resolved:
            instance = existing.pop(occurrence.occurrence_date, None)
            if instance is None:
                self.store.add_instance(self._new_instance(template, occurrence))
                diff.inserted += 1
            elif self._apply_resolved(instance, occurrence):
                diff.updated += 1
            else:
                diff.unchanged += 1

        # Dates no longer generated: kept only when an exception covers them
        for occurrence_date, instance in existing.items():
            exception = exceptions.get(occurrence_date)
            if exception is None:
                self.store.delete_instance(instance)
                diff.deleted += 1
                continue
            stale = ExceptionOverlay.resolve(
                build_occurrence(occurrence_date, template.anchor_start, template.anchor_end),
                self._defaults(template),
                exception,
            )
            if self._apply_resolved(instance, stale):
                diff.updated += 1
            else:
                diff.unchanged += 1

        self.store.flush()
        return diff

    def _refresh_instance(
        self,
        template: RecurringTemplate,
        instance: EventInstance,
        exception: Optional[EventException],
    ) -> InstanceDiff:
        occurrence = build_occurrence(instance.occurrence_date, template.anchor_start, template.anchor_end)
        resolved = ExceptionOverlay.resolve(occurrence, self._defaults(template), exception)
        changed = self._apply_resolved(instance, resolved)
        self.store.flush()
        return InstanceDiff(updated=1) if changed else InstanceDiff(unchanged=1)

    @staticmethod
    def _new_instance(template: RecurringTemplate, occurrence: ResolvedOccurrence) -> EventInstance:
        return EventInstance(
            template_id=template.id,
            occurrence_date=occurrence.occurrence_date,
            start_at=occurrence.start_at,
            end_at=occurrence.end_at,
            title=occurrence.title,
            description=occurrence.description,
            location_id=occurrence.location_id,
            is_cancelled=occurrence.is_cancelled,
        )

    @staticmethod
    def _apply_resolved(instance: EventInstance, occurrence: ResolvedOccurrence) -> bool:
        changed = False
        for name in _INSTANCE_VALUES:
            value = getattr(occurrence, name)
            if getattr(instance, name) != value:
                setattr(instance, name, value)
                changed = True
        return changed

    @staticmethod
    def _defaults(template: RecurringTemplate) -> TemplateDefaults:
        return TemplateDefaults(
            title=template.title,
            description=template.description,
            location_id=template.location_id,
        )

    def _horizon(self, template: RecurringTemplate) -> date:
        return horizon_for(template.anchor_start, self.settings.horizon_days)

    def _generates(self, template: RecurringTemplate, occurrence_date: date) -> bool:
        for generated in iter_occurrence_dates(
            template.rule,
            template.anchor_start,
            self._horizon(template),
            self.settings.default_occurrence_count,
        ):
            if generated == occurrence_date:
                return True
            if generated > occurrence_date:
                return False
        return False

    # =========================================================================
    # Validation helpers
    # =========================================================================

    @staticmethod
    def _check_scope(scope: str) -> str:
        scope = getattr(scope, "value", scope)
        if scope not in SCOPES:
            raise ValidationError(
                f"Invalid scope '{scope}'. Valid scopes: {', '.join(SCOPES)}",
                field="scope",
            )
        return scope

    @staticmethod
    def _clean_title(title: Optional[str]) -> str:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        return title

    @staticmethod
    def _check_range(start: datetime, end: datetime) -> None:
        if start is None:
            raise ValidationError("Start is required", field="start")
        if end < start:
            raise ValidationError("End must not be before start", field="end")

    def _require_occurrences(self, rule: Rule, anchor_start: datetime) -> None:
        first = next(
            iter_occurrence_dates(
                rule,
                anchor_start,
                horizon_for(anchor_start, self.settings.horizon_days),
                self.settings.default_occurrence_count,
            ),
            None,
        )
        if first is None:
            raise ValidationError(
                f"Recurrence rule {rule.to_text()} generates no occurrences",
                field="recurrence_rule",
            )

    def _pivot_instance(self, template: RecurringTemplate, pivot_date: Optional[date]) -> EventInstance:
        self._check_pivot(pivot_date)
        instance = self.store.get_instance(template.id, pivot_date)
        if instance is None:
            raise NotFoundError("Instance", f"{template.guid}@{pivot_date.isoformat()}")
        return instance

    @staticmethod
    def _check_pivot(pivot_date: Optional[date]) -> None:
        if pivot_date is None:
            raise ValidationError("pivot_date is required for this scope", field="pivot_date")

    def _first_date(self, template: RecurringTemplate) -> Optional[date]:
        return next(
            iter_occurrence_dates(
                template.rule,
                template.anchor_start,
                self._horizon(template),
                self.settings.default_occurrence_count,
            ),
            None,
        )

    def _starts_series(self, template: RecurringTemplate, pivot: date) -> bool:
        """True when no generated occurrence precedes pivot."""
        first = self._first_date(template)
        return first is None or pivot <= first

    def _parse_changes(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Validate the request's own values before the template is locked."""
        rule = None
        if changes.get("recurrence_rule") is not None:
            rule = RuleParser.parse(changes["recurrence_rule"])
        return {
            "title": self._clean_title(changes["title"]) if "title" in changes else None,
            "rule": rule,
            "location": self._new_location(changes),
        }

    def _new_location(self, changes: Dict[str, Any]):
        if "location_guid" not in changes:
            return None
        return self.locations.resolve_assignable(changes["location_guid"])

    def _new_anchor(self, template: RecurringTemplate, changes: Dict[str, Any]) -> tuple[datetime, datetime]:
        """Anchor range after an in-place update; the duration follows start."""
        start = _naive(changes.get("start"))
        end = _naive(changes.get("end"))

        anchor_start = start or template.anchor_start
        if end is not None:
            anchor_end = end
        else:
            anchor_end = anchor_start + template.duration

        self._check_range(anchor_start, anchor_end)
        return anchor_start, anchor_end

    def _split_anchor(
        self,
        template: RecurringTemplate,
        pivot: date,
        changes: Dict[str, Any],
    ) -> tuple[datetime, datetime]:
        """Anchor range of the template continuing a series from pivot."""
        start = _naive(changes.get("start"))
        end = _naive(changes.get("end"))

        if start is not None:
            if start.date() < pivot:
                raise ValidationError(
                    f"Start {start.isoformat()} precedes the pivot date {pivot.isoformat()}",
                    field="start",
                )
            anchor_start = start
        else:
            anchor_start = datetime.combine(pivot, template.start_time)

        anchor_end = end if end is not None else anchor_start + template.duration
        self._check_range(anchor_start, anchor_end)
        return anchor_start, anchor_end

    def _continued_rule(self, template: RecurringTemplate, pivot: date, new_rule: Optional[Rule]) -> Rule:
        """Rule of the template continuing a series from pivot."""
        if new_rule is not None:
            return new_rule

        rule = template.rule
        if isinstance(rule.bound, Until):
            return rule

        total = rule.count if rule.count is not None else self.settings.default_occurrence_count
        consumed = count_before(
            rule,
            template.anchor_start,
            pivot,
            self._horizon(template),
            self.settings.default_occurrence_count,
        )
        remaining = total - consumed
        if remaining < 1:
            raise ValidationError(
                f"No occurrences of {template.guid} remain from {pivot.isoformat()}",
                field="pivot_date",
            )
        return rule.with_bound(Count(remaining))

    def _occurrence_overrides(self, occurrence_date: date, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Translate series-style fields into exception overrides.

        Only the time of day of start/end is kept; an occurrence never moves
        to another date. None clears an override (inherit again).
        """
        overrides: Dict[str, Any] = {}

        if "title" in changes:
            overrides["title"] = (
                self._clean_title(changes["title"]) if changes["title"] is not None else None
            )
        if "description" in changes:
            overrides["description"] = changes["description"]
        if "location_guid" in changes:
            location = self.locations.resolve_assignable(changes["location_guid"])
            overrides["location_id"] = location.id if location else None

        start = _naive(changes.get("start"))
        end = _naive(changes.get("end"))
        if start is not None and start.date() != occurrence_date:
            raise ValidationError(
                f"An occurrence cannot move to another date ({occurrence_date.isoformat()})",
                field="start",
            )
        if start is not None and end is not None and end < start:
            raise ValidationError("End must not be before start", field="end")
        if "start" in changes:
            overrides["start_time"] = start.time() if start is not None else None
        if "end" in changes:
            overrides["end_time"] = end.time() if end is not None else None

        return overrides

    # =========================================================================
    # Responses
    # =========================================================================

    def build_series_response(
        self,
        template: RecurringTemplate,
        include_next: bool = False,
        now: Optional[datetime] = None,
    ) -> dict:
        """Build API response dict for a series template."""
        response = {
            "guid": template.guid,
            "title": template.title,
            "description": template.description,
            "start": template.anchor_start,
            "end": template.anchor_end,
            "recurrence_rule": template.recurrence_rule,
            "location": (
                self.locations.build_location_response(template.location)
                if template.location else None
            ),
            "parent_guid": template.parent_guid,
            "instance_count": self.store.count_instances(template.id),
            "created_at": template.created_at,
            "updated_at": template.updated_at,
        }
        if include_next:
            upcoming = self.next_instance(template, now)
            response["next_instance"] = self.build_instance_response(upcoming) if upcoming else None
        return response

    def build_series_detail_response(self, template: RecurringTemplate) -> dict:
        """Series response with its ordered instances."""
        response = self.build_series_response(template)
        response["instances"] = self.build_instance_list(template)
        return response

    def build_instance_list(self, template: RecurringTemplate) -> List[dict]:
        exceptions = self.store.exceptions_by_date(template.id)
        return [
            self.build_instance_response(instance, exceptions.get(instance.occurrence_date), template)
            for instance in self.store.list_instances(template.id)
        ]

    def build_instance_response(
        self,
        instance: EventInstance,
        exception: Optional[EventException] = None,
        template: Optional[RecurringTemplate] = None,
    ) -> dict:
        """
        Build API response dict for an instance.

        When exception is not given it is looked up for the instance's date.
        """
        template = template or instance.template
        if exception is None:
            exception = self.store.get_exception(template.id, instance.occurrence_date)

        return {
            "guid": instance.guid,
            "series_guid": template.guid,
            "occurrence_date": instance.occurrence_date,
            "start_at": instance.start_at,
            "end_at": instance.end_at,
            "title": instance.title,
            "description": instance.description,
            "location_guid": instance.location_guid,
            "is_cancelled": instance.is_cancelled,
            "is_exception": exception is not None,
            "exception_kind": exception.kind if exception is not None else None,
        }

    def build_mutation_response(self, result: MutationResult) -> dict:
        """Build API response dict for a mutation outcome."""
        return {
            "series_guid": result.series_guid,
            "scope": result.scope,
            "deleted": result.deleted,
            "series": self.build_series_response(result.template) if result.template else None,
            "new_series": (
                self.build_series_response(result.new_template) if result.new_template else None
            ),
            "diff": {
                "inserted": result.diff.inserted,
                "updated": result.diff.updated,
                "deleted": result.diff.deleted,
                "unchanged": result.diff.unchanged,
            },
        }
