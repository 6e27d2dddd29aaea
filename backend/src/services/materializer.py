"""
Instance materialization.

Expands a Rule and an anchor time range into concrete, ordered occurrences.
Materialization is a pure function of its inputs: it never reads or writes
stored state, so callers can recompute it at any time and diff the result
against the instances they already have.

Expansion uses python-dateutil's rrule, which matches the required semantics:
- WEEKLY with BYDAY enumerates the listed weekdays of every interval-th week
  (weeks start on Monday), never before the anchor
- MONTHLY keeps the anchor day-of-month and YEARLY the anchor month/day;
  dates that do not exist (the 31st, February 29) are skipped, not clamped
- COUNT counts produced occurrences, UNTIL is inclusive
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional

from dateutil import rrule as dateutil_rrule

from backend.src.services.rule_parser import (
    DEFAULT_OCCURRENCE_COUNT,
    Count,
    Frequency,
    Rule,
    Until,
)


_RRULE_FREQUENCIES = {
    Frequency.DAILY: dateutil_rrule.DAILY,
    Frequency.WEEKLY: dateutil_rrule.WEEKLY,
    Frequency.MONTHLY: dateutil_rrule.MONTHLY,
    Frequency.YEARLY: dateutil_rrule.YEARLY,
}


@dataclass(frozen=True)
class Occurrence:
    """One generated occurrence of a series."""

    occurrence_date: date
    start_at: datetime
    end_at: datetime


def build_occurrence(occurrence_date: date, anchor_start: datetime, anchor_end: datetime) -> Occurrence:
    """
    Build the occurrence of a series on a given date.

    The start is the date combined with the anchor's start time; the end keeps
    the anchor's duration, so an anchor crossing midnight keeps doing so.
    """
    start_at = datetime.combine(occurrence_date, anchor_start.time())
    return Occurrence(
        occurrence_date=occurrence_date,
        start_at=start_at,
        end_at=start_at + (anchor_end - anchor_start),
    )


def iter_occurrence_dates(
    rule: Rule,
    anchor_start: datetime,
    horizon: Optional[date] = None,
    default_count: int = DEFAULT_OCCURRENCE_COUNT,
) -> Iterator[date]:
    """
    Lazily yield occurrence dates in ascending order.

    Args:
        rule: Parsed recurrence rule
        anchor_start: First possible occurrence (its date is the series start)
        horizon: Last date (inclusive) that may be generated, or None
        default_count: Bound applied when the rule has neither COUNT nor UNTIL

    Yields:
        Occurrence dates, stopping at the first of COUNT reached, UNTIL
        exceeded or horizon exceeded
    """
    dtstart = datetime.combine(anchor_start.date(), time.min)

    count = None
    until = None
    if isinstance(rule.bound, Count):
        count = rule.bound.value
    elif isinstance(rule.bound, Until):
        until = datetime.combine(rule.bound.value, time.max)
    else:
        count = default_count

    kwargs = {}
    if rule.frequency is Frequency.WEEKLY and rule.by_day:
        kwargs["byweekday"] = [int(day) for day in rule.by_day]

    generator = dateutil_rrule.rrule(
        _RRULE_FREQUENCIES[rule.frequency],
        dtstart=dtstart,
        interval=rule.interval,
        wkst=dateutil_rrule.MO,
        count=count,
        until=until,
        cache=False,
        **kwargs,
    )

    for moment in generator:
        if horizon is not None and moment.date() > horizon:
            return
        yield moment.date()


def materialize(
    rule: Rule,
    anchor_start: datetime,
    anchor_end: datetime,
    horizon: Optional[date] = None,
    default_count: int = DEFAULT_OCCURRENCE_COUNT,
) -> List[Occurrence]:
    """
    Expand a rule into its occurrences.

    Args:
        rule: Parsed recurrence rule
        anchor_start: Start of the first occurrence (date + start time)
        anchor_end: End of the first occurrence; end - start is the duration
            of every occurrence
        horizon: Last date (inclusive) that may be generated, or None
        default_count: Bound applied when the rule has neither COUNT nor UNTIL

    Returns:
        Ordered, finite list of occurrences

    Example:
        >>> rule = RuleParser.parse("FREQ=DAILY;COUNT=3")
        >>> [o.occurrence_date.isoformat() for o in materialize(
        ...     rule, datetime(2023, 1, 1, 9), datetime(2023, 1, 1, 10))]
        ['2023-01-01', '2023-01-02', '2023-01-03']
    """
    return [
        build_occurrence(occurrence_date, anchor_start, anchor_end)
        for occurrence_date in iter_occurrence_dates(rule, anchor_start, horizon, default_count)
    ]


def count_before(
    rule: Rule,
    anchor_start: datetime,
    pivot: date,
    horizon: Optional[date] = None,
    default_count: int = DEFAULT_OCCURRENCE_COUNT,
) -> int:
    """Count the occurrences a rule generates strictly before a pivot date."""
    total = 0
    for occurrence_date in iter_occurrence_dates(rule, anchor_start, horizon, default_count):
        if occurrence_date >= pivot:
            break
        total += 1
    return total


def horizon_for(anchor_start: datetime, horizon_days: int) -> date:
    """Last date that may be materialized for a series anchored at anchor_start."""
    return anchor_start.date() + timedelta(days=horizon_days)
