"""
Recurrence rule parsing.

Turns recurrence text of the form

    FREQ=<DAILY|WEEKLY|MONTHLY|YEARLY>[;INTERVAL=n][;COUNT=n|;UNTIL=date][;BYDAY=MO,WE]

into a typed, validated Rule value object. Only the FREQ, INTERVAL, COUNT,
UNTIL and BYDAY parts of the iCalendar grammar are supported; anything else
is rejected rather than silently ignored.

Design:
- Rule is immutable and hashable, so it can be compared between the stored
  template and an update request
- The generation bound is a tagged variant: Count(n), Until(date) or None
- None means "open ended"; the materializer caps it with a configured
  default count instead of generating an unbounded series
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Optional, Tuple, Union

from dateutil.parser import isoparse

from backend.src.services.exceptions import InvalidRuleError


# Occurrences generated for a rule with neither COUNT nor UNTIL
DEFAULT_OCCURRENCE_COUNT = 10

SUPPORTED_KEYS = ("FREQ", "INTERVAL", "COUNT", "UNTIL", "BYDAY")


class Frequency(str, enum.Enum):
    """Recurrence frequency."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Weekday(enum.IntEnum):
    """Weekday tokens, valued like date.weekday() (Monday == 0)."""
    MO = 0
    TU = 1
    WE = 2
    TH = 3
    FR = 4
    SA = 5
    SU = 6


@dataclass(frozen=True)
class Count:
    """Bound the series to a number of occurrences."""
    value: int


@dataclass(frozen=True)
class Until:
    """Bound the series to occurrences on or before a date (inclusive)."""
    value: date


Bound = Union[Count, Until, None]


@dataclass(frozen=True)
class Rule:
    """
    Structured recurrence rule.

    Attributes:
        frequency: Step unit (day, week, month, year)
        interval: Number of units between steps (>= 1)
        bound: Count(n), Until(date) or None for open-ended
        by_day: Weekdays for WEEKLY rules, ascending; empty means
            "the weekday of the anchor date"
    """

    frequency: Frequency
    interval: int = 1
    bound: Bound = None
    by_day: Tuple[Weekday, ...] = field(default_factory=tuple)

    @property
    def count(self) -> Optional[int]:
        return self.bound.value if isinstance(self.bound, Count) else None

    @property
    def until(self) -> Optional[date]:
        return self.bound.value if isinstance(self.bound, Until) else None

    def with_bound(self, bound: Bound) -> "Rule":
        """Return a copy of this rule with a different generation bound."""
        return replace(self, bound=bound)

    def to_text(self) -> str:
        """
        Render the canonical rule text.

        INTERVAL is omitted when it is 1, so equal rules always render to the
        same string.

        Example:
            >>> Rule(Frequency.WEEKLY, 2, Count(4), (Weekday.MO, Weekday.WE)).to_text()
            'FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO,WE'
        """
        parts = [f"FREQ={self.frequency.name}"]
        if self.interval != 1:
            parts.append(f"INTERVAL={self.interval}")
        if isinstance(self.bound, Count):
            parts.append(f"COUNT={self.bound.value}")
        elif isinstance(self.bound, Until):
            parts.append(f"UNTIL={self.bound.value.isoformat()}")
        if self.by_day:
            parts.append("BYDAY=" + ",".join(d.name for d in self.by_day))
        return ";".join(parts)

    def __str__(self) -> str:
        return self.to_text()


class RuleParser:
    """
    Parser for recurrence rule text.

    Provides static methods for:
    - Parsing rule text into a Rule
    - Validating rule text without keeping the result

    Usage:
        >>> rule = RuleParser.parse("FREQ=WEEKLY;BYDAY=MO,WE;COUNT=4")
        >>> rule.frequency
        <Frequency.WEEKLY: 'weekly'>
    """

    @staticmethod
    def parse(rule_text: str) -> Rule:
        """
        Parse recurrence rule text.

        Args:
            rule_text: Semicolon-delimited KEY=VALUE text

        Returns:
            Validated Rule

        Raises:
            InvalidRuleError: If the text is empty, uses an unsupported or
                duplicated key, has a missing/unknown FREQ, a non-positive
                INTERVAL or COUNT, an unparseable UNTIL, both COUNT and UNTIL,
                or an unknown / misplaced BYDAY token
        """
        if rule_text is None or not rule_text.strip():
            raise InvalidRuleError("rule text is empty", rule_text)

        text = rule_text.strip()
        if text.upper().startswith("RRULE:"):
            text = text[len("RRULE:"):]

        parts = RuleParser._split(text, rule_text)

        if "FREQ" not in parts:
            raise InvalidRuleError("FREQ is required", rule_text)
        try:
            frequency = Frequency[parts["FREQ"].upper()]
        except KeyError:
            raise InvalidRuleError(
                f"unsupported FREQ '{parts['FREQ']}' "
                f"(expected one of {', '.join(f.name for f in Frequency)})",
                rule_text,
            )

        interval = 1
        if "INTERVAL" in parts:
            interval = RuleParser._positive_int(parts["INTERVAL"], "INTERVAL", rule_text)

        if "COUNT" in parts and "UNTIL" in parts:
            raise InvalidRuleError("COUNT and UNTIL are mutually exclusive", rule_text)

        bound: Bound = None
        if "COUNT" in parts:
            bound = Count(RuleParser._positive_int(parts["COUNT"], "COUNT", rule_text))
        elif "UNTIL" in parts:
            bound = Until(RuleParser._parse_until(parts["UNTIL"], rule_text))

        by_day: Tuple[Weekday, ...] = ()
        if "BYDAY" in parts:
            if frequency is not Frequency.WEEKLY:
                raise InvalidRuleError("BYDAY is only supported with FREQ=WEEKLY", rule_text)
            by_day = RuleParser._parse_by_day(parts["BYDAY"], rule_text)

        return Rule(frequency=frequency, interval=interval, bound=bound, by_day=by_day)

    @staticmethod
    def is_valid(rule_text: str) -> bool:
        """Check whether rule text parses."""
        try:
            RuleParser.parse(rule_text)
        except InvalidRuleError:
            return False
        return True

    @staticmethod
    def _split(text: str, rule_text: str) -> Dict[str, str]:
        parts: Dict[str, str] = {}
        for chunk in text.split(";"):
            chunk = chunk.strip()
            if not chunk:
                continue
            if "=" not in chunk:
                raise InvalidRuleError(f"expected KEY=VALUE, got '{chunk}'", rule_text)
            key, value = (s.strip() for s in chunk.split("=", 1))
            key = key.upper()
            if key not in SUPPORTED_KEYS:
                raise InvalidRuleError(f"unsupported key '{key}'", rule_text)
            if key in parts:
                raise InvalidRuleError(f"duplicate key '{key}'", rule_text)
            if not value:
                raise InvalidRuleError(f"{key} has no value", rule_text)
            parts[key] = value
        return parts

    @staticmethod
    def _positive_int(value: str, key: str, rule_text: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise InvalidRuleError(f"{key} must be an integer, got '{value}'", rule_text)
        if number < 1:
            raise InvalidRuleError(f"{key} must be a positive integer", rule_text)
        return number

    @staticmethod
    def _parse_until(value: str, rule_text: str) -> date:
        # Accepts 2023-01-31, 20230131 and 20230131T235959Z; only the date is kept
        try:
            return isoparse(value).date()
        except (ValueError, OverflowError):
            raise InvalidRuleError(f"UNTIL is not a valid date: '{value}'", rule_text)

    @staticmethod
    def _parse_by_day(value: str, rule_text: str) -> Tuple[Weekday, ...]:
        days = set()
        for token in value.split(","):
            token = token.strip().upper()
            try:
                days.add(Weekday[token])
            except KeyError:
                raise InvalidRuleError(f"unrecognized BYDAY token '{token}'", rule_text)
        return tuple(sorted(days))
