"""
Exception overlay for materialized occurrences.

Folds per-date exceptions onto generated occurrences:
- cancelled: the occurrence stays in the result, flagged cancelled, so it
  remains addressable and can be restored
- modified: title, description, start/end time and location are taken from
  the exception where it sets them; the date never changes
- no exception: every value is inherited from the template

Restoring an occurrence means deleting its exception; the next overlay pass
then yields template values again.

The overlay is pure: it accepts any objects exposing the exception attributes
(ORM rows in the service, simple stand-ins in tests).
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from backend.src.services.materializer import Occurrence


EXCEPTION_CANCELLED = "cancelled"
EXCEPTION_MODIFIED = "modified"


@dataclass(frozen=True)
class TemplateDefaults:
    """Values an occurrence inherits from its template."""

    title: str
    description: Optional[str] = None
    location_id: Optional[int] = None


@dataclass(frozen=True)
class ResolvedOccurrence:
    """An occurrence after exceptions have been applied."""

    occurrence_date: date
    start_at: datetime
    end_at: datetime
    title: str
    description: Optional[str]
    location_id: Optional[int]
    is_cancelled: bool = False
    exception_kind: Optional[str] = None

    @property
    def is_exception(self) -> bool:
        return self.exception_kind is not None


class ExceptionOverlay:
    """
    Applies exceptions to generated occurrences.

    Usage:
        >>> resolved = ExceptionOverlay.apply(
        ...     occurrences,
        ...     TemplateDefaults(title="Yoga"),
        ...     exceptions,
        ... )
    """

    @staticmethod
    def index(exceptions: Union[Iterable[Any], Mapping[date, Any], None]) -> Dict[date, Any]:
        """Key exceptions by occurrence date."""
        if exceptions is None:
            return {}
        if isinstance(exceptions, Mapping):
            return dict(exceptions)
        return {exc.occurrence_date: exc for exc in exceptions}

    @staticmethod
    def apply(
        occurrences: Iterable[Occurrence],
        defaults: TemplateDefaults,
        exceptions: Union[Iterable[Any], Mapping[date, Any], None] = None,
    ) -> List[ResolvedOccurrence]:
        """
        Resolve every occurrence against the exceptions for its date.

        Args:
            occurrences: Materialized occurrences, in order
            defaults: Template values inherited when not overridden
            exceptions: Exceptions (iterable or mapping keyed by date);
                exceptions for dates not in occurrences are ignored

        Returns:
            Resolved occurrences in the same order, cancelled ones included
        """
        by_date = ExceptionOverlay.index(exceptions)
        return [
            ExceptionOverlay.resolve(occurrence, defaults, by_date.get(occurrence.occurrence_date))
            for occurrence in occurrences
        ]

    @staticmethod
    def resolve(
        occurrence: Occurrence,
        defaults: TemplateDefaults,
        exception: Optional[Any] = None,
    ) -> ResolvedOccurrence:
        """Resolve a single occurrence against its exception, if any."""
        if exception is None:
            return ResolvedOccurrence(
                occurrence_date=occurrence.occurrence_date,
                start_at=occurrence.start_at,
                end_at=occurrence.end_at,
                title=defaults.title,
                description=defaults.description,
                location_id=defaults.location_id,
            )

        start_at, end_at = ExceptionOverlay._override_times(occurrence, exception)

        # Override values are kept on cancellation so a customized occurrence
        # still shows what was cancelled
        return ResolvedOccurrence(
            occurrence_date=occurrence.occurrence_date,
            start_at=start_at,
            end_at=end_at,
            title=exception.title if exception.title is not None else defaults.title,
            description=(
                exception.description if exception.description is not None
                else defaults.description
            ),
            location_id=(
                exception.location_id if exception.location_id is not None
                else defaults.location_id
            ),
            is_cancelled=exception.kind == EXCEPTION_CANCELLED,
            exception_kind=exception.kind,
        )

    @staticmethod
    def _override_times(occurrence: Occurrence, exception: Any):
        start_at = occurrence.start_at
        end_at = occurrence.end_at
        duration = occurrence.end_at - occurrence.start_at

        if exception.start_time is not None:
            start_at = datetime.combine(occurrence.occurrence_date, exception.start_time)
            end_at = start_at + duration

        if exception.end_time is not None:
            end_at = datetime.combine(start_at.date(), exception.end_time)
            if end_at < start_at:
                end_at += timedelta(days=1)

        return start_at, end_at
