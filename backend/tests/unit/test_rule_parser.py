"""
Unit tests for RuleParser.

Tests cover:
- Parsing of every supported part (FREQ, INTERVAL, COUNT, UNTIL, BYDAY)
- Case and whitespace tolerance
- Canonical text rendering
- Rejection of malformed and contradictory rules
"""

from datetime import date

import pytest

from backend.src.services.exceptions import InvalidRuleError, ValidationError
from backend.src.services.rule_parser import (
    Count,
    Frequency,
    Rule,
    RuleParser,
    Until,
    Weekday,
)


class TestRuleParsing:
    """Tests for well-formed rules."""

    def test_parse_frequency_only(self):
        """A bare FREQ gives interval 1 and no bound."""
        rule = RuleParser.parse("FREQ=DAILY")

        assert rule.frequency is Frequency.DAILY
        assert rule.interval == 1
        assert rule.bound is None
        assert rule.by_day == ()

    def test_parse_all_parts(self):
        """Every supported part is parsed into its typed value."""
        rule = RuleParser.parse("FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO,WE")

        assert rule.frequency is Frequency.WEEKLY
        assert rule.interval == 2
        assert rule.bound == Count(4)
        assert rule.count == 4
        assert rule.until is None
        assert rule.by_day == (Weekday.MO, Weekday.WE)

    def test_parse_until(self):
        """UNTIL accepts an ISO date."""
        rule = RuleParser.parse("FREQ=MONTHLY;UNTIL=2023-06-30")

        assert rule.bound == Until(date(2023, 6, 30))
        assert rule.until == date(2023, 6, 30)
        assert rule.count is None

    def test_parse_until_basic_format_with_time(self):
        """UNTIL in iCalendar basic format keeps only the date."""
        rule = RuleParser.parse("FREQ=DAILY;UNTIL=20230131T235959Z")
        assert rule.until == date(2023, 1, 31)

    def test_parse_is_case_insensitive(self):
        """Keys and values may be lowercase."""
        rule = RuleParser.parse("freq=weekly;byday=fr,mo;count=3")

        assert rule.frequency is Frequency.WEEKLY
        assert rule.by_day == (Weekday.MO, Weekday.FR)
        assert rule.count == 3

    def test_parse_tolerates_whitespace_and_trailing_separator(self):
        """Whitespace around parts and a trailing ';' are ignored."""
        rule = RuleParser.parse("  FREQ = DAILY ; COUNT = 5 ; ")
        assert rule == Rule(Frequency.DAILY, 1, Count(5))

    def test_parse_accepts_rrule_prefix(self):
        """An iCalendar 'RRULE:' prefix is accepted."""
        rule = RuleParser.parse("RRULE:FREQ=YEARLY;COUNT=2")
        assert rule.frequency is Frequency.YEARLY

    def test_by_day_is_sorted_and_deduplicated(self):
        """BYDAY tokens are normalized to ascending unique weekdays."""
        rule = RuleParser.parse("FREQ=WEEKLY;BYDAY=WE,MO,WE")
        assert rule.by_day == (Weekday.MO, Weekday.WE)

    def test_equal_rules_compare_equal(self):
        """Rules are values: same content, same rule."""
        assert RuleParser.parse("FREQ=DAILY;COUNT=3") == RuleParser.parse("count=3;freq=daily")


class TestRuleText:
    """Tests for canonical rendering."""

    def test_to_text_omits_default_interval(self):
        """INTERVAL=1 is not rendered."""
        assert RuleParser.parse("FREQ=DAILY;INTERVAL=1;COUNT=10").to_text() == "FREQ=DAILY;COUNT=10"

    def test_to_text_full(self):
        """All parts render in a fixed order."""
        rule = RuleParser.parse("BYDAY=WE,MO;COUNT=4;INTERVAL=2;FREQ=WEEKLY")
        assert rule.to_text() == "FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO,WE"

    def test_to_text_until(self):
        """UNTIL renders as an ISO date."""
        rule = RuleParser.parse("FREQ=DAILY;UNTIL=20230131")
        assert str(rule) == "FREQ=DAILY;UNTIL=2023-01-31"

    def test_to_text_parses_back(self):
        """Canonical text parses back to the same rule."""
        rule = RuleParser.parse("FREQ=WEEKLY;INTERVAL=3;UNTIL=2024-02-29;BYDAY=TU,TH")
        assert RuleParser.parse(rule.to_text()) == rule

    def test_with_bound_replaces_bound_only(self):
        """with_bound keeps frequency, interval and weekdays."""
        rule = RuleParser.parse("FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO")
        truncated = rule.with_bound(Until(date(2023, 3, 1)))

        assert truncated.frequency is Frequency.WEEKLY
        assert truncated.interval == 2
        assert truncated.by_day == (Weekday.MO,)
        assert truncated.until == date(2023, 3, 1)
        assert rule.count == 4


class TestRuleRejection:
    """Tests for malformed and contradictory rules."""

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        None,
    ])
    def test_empty_rule(self, text):
        """Empty text is rejected."""
        with pytest.raises(InvalidRuleError):
            RuleParser.parse(text)

    def test_missing_freq(self):
        """FREQ is required."""
        with pytest.raises(InvalidRuleError) as exc_info:
            RuleParser.parse("COUNT=3")
        assert "FREQ is required" in str(exc_info.value)

    def test_unknown_freq(self):
        """Only DAILY, WEEKLY, MONTHLY and YEARLY are supported."""
        with pytest.raises(InvalidRuleError) as exc_info:
            RuleParser.parse("FREQ=HOURLY")
        assert "HOURLY" in str(exc_info.value)

    def test_count_and_until_together(self):
        """COUNT and UNTIL are mutually exclusive."""
        with pytest.raises(InvalidRuleError) as exc_info:
            RuleParser.parse("FREQ=DAILY;COUNT=3;UNTIL=2023-01-10")
        assert "mutually exclusive" in str(exc_info.value)

    def test_unknown_by_day_token(self):
        """Unrecognized weekday tokens are rejected."""
        with pytest.raises(InvalidRuleError) as exc_info:
            RuleParser.parse("FREQ=WEEKLY;BYDAY=MO,XX")
        assert "XX" in str(exc_info.value)

    def test_by_day_requires_weekly(self):
        """BYDAY only applies to WEEKLY rules."""
        with pytest.raises(InvalidRuleError):
            RuleParser.parse("FREQ=MONTHLY;BYDAY=MO")

    @pytest.mark.parametrize("text", [
        "FREQ=DAILY;INTERVAL=0",
        "FREQ=DAILY;INTERVAL=-2",
        "FREQ=DAILY;INTERVAL=two",
        "FREQ=DAILY;COUNT=0",
        "FREQ=DAILY;COUNT=1.5",
    ])
    def test_non_positive_or_non_integer_numbers(self, text):
        """INTERVAL and COUNT must be positive integers."""
        with pytest.raises(InvalidRuleError):
            RuleParser.parse(text)

    def test_unparseable_until(self):
        """UNTIL must be a date."""
        with pytest.raises(InvalidRuleError):
            RuleParser.parse("FREQ=DAILY;UNTIL=next-tuesday")

    def test_unsupported_key(self):
        """Parts outside the supported grammar are rejected, not ignored."""
        with pytest.raises(InvalidRuleError) as exc_info:
            RuleParser.parse("FREQ=MONTHLY;BYMONTHDAY=15")
        assert "BYMONTHDAY" in str(exc_info.value)

    def test_duplicate_key(self):
        """A key may appear once."""
        with pytest.raises(InvalidRuleError):
            RuleParser.parse("FREQ=DAILY;FREQ=WEEKLY")

    def test_part_without_value_separator(self):
        """Every part must be KEY=VALUE."""
        with pytest.raises(InvalidRuleError):
            RuleParser.parse("FREQ=DAILY;COUNT")

    def test_invalid_rule_is_validation_error(self):
        """InvalidRuleError is reported like any validation error."""
        with pytest.raises(ValidationError) as exc_info:
            RuleParser.parse("FREQ=NEVER")

        assert exc_info.value.field == "recurrence_rule"
        assert exc_info.value.rule_text == "FREQ=NEVER"

    def test_is_valid(self):
        """is_valid reports parse success without raising."""
        assert RuleParser.is_valid("FREQ=DAILY;COUNT=2") is True
        assert RuleParser.is_valid("FREQ=DAILY;COUNT=2;UNTIL=2023-01-01") is False
