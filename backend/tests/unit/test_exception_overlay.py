"""
Unit tests for ExceptionOverlay.

The overlay only reads attributes, so exceptions are simple namespaces here.
"""

from datetime import date, datetime, time
from types import SimpleNamespace

import pytest

from backend.src.services.exception_overlay import (
    EXCEPTION_CANCELLED,
    EXCEPTION_MODIFIED,
    ExceptionOverlay,
    TemplateDefaults,
)
from backend.src.services.materializer import materialize
from backend.src.services.rule_parser import RuleParser


def _exception(occurrence_date, kind=EXCEPTION_MODIFIED, **overrides):
    values = dict(
        occurrence_date=occurrence_date,
        kind=kind,
        title=None,
        description=None,
        start_time=None,
        end_time=None,
        location_id=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def occurrences():
    """Daily 09:00-10:00 occurrences, 2023-01-01 to 2023-01-05."""
    return materialize(
        RuleParser.parse("FREQ=DAILY;COUNT=5"),
        datetime(2023, 1, 1, 9, 0),
        datetime(2023, 1, 1, 10, 0),
    )


@pytest.fixture
def defaults():
    return TemplateDefaults(title="Daily Meeting", description="Standup", location_id=7)


class TestOverlayWithoutExceptions:
    """Occurrences with no exception inherit template values."""

    def test_inherits_template_values(self, occurrences, defaults):
        resolved = ExceptionOverlay.apply(occurrences, defaults)

        assert len(resolved) == 5
        for item, occurrence in zip(resolved, occurrences):
            assert item.occurrence_date == occurrence.occurrence_date
            assert item.start_at == occurrence.start_at
            assert item.end_at == occurrence.end_at
            assert item.title == "Daily Meeting"
            assert item.description == "Standup"
            assert item.location_id == 7
            assert item.is_cancelled is False
            assert item.is_exception is False

    def test_exceptions_for_other_dates_are_ignored(self, occurrences, defaults):
        """An exception on a non-generated date changes nothing."""
        stray = _exception(date(2023, 2, 1), kind=EXCEPTION_CANCELLED)

        resolved = ExceptionOverlay.apply(occurrences, defaults, [stray])

        assert not any(item.is_exception for item in resolved)


class TestCancellation:
    """Tests for cancelled exceptions."""

    def test_cancelled_occurrence_is_kept_and_flagged(self, occurrences, defaults):
        """Cancelled occurrences remain in the result."""
        resolved = ExceptionOverlay.apply(
            occurrences, defaults, [_exception(date(2023, 1, 3), kind=EXCEPTION_CANCELLED)]
        )

        assert len(resolved) == 5
        cancelled = [item for item in resolved if item.is_cancelled]
        assert [item.occurrence_date for item in cancelled] == [date(2023, 1, 3)]
        assert cancelled[0].exception_kind == EXCEPTION_CANCELLED
        assert cancelled[0].title == "Daily Meeting"

    def test_cancellation_keeps_overrides(self, occurrences, defaults):
        """A cancelled occurrence still shows its overridden values."""
        resolved = ExceptionOverlay.apply(
            occurrences,
            defaults,
            [_exception(date(2023, 1, 2), kind=EXCEPTION_CANCELLED, title="Offsite")],
        )

        assert resolved[1].is_cancelled is True
        assert resolved[1].title == "Offsite"


class TestModification:
    """Tests for modified exceptions."""

    def test_overrides_title_description_and_location(self, occurrences, defaults):
        resolved = ExceptionOverlay.apply(
            occurrences,
            defaults,
            [_exception(date(2023, 1, 4), title="Retro", description="Sprint retro", location_id=9)],
        )
        item = resolved[3]

        assert item.title == "Retro"
        assert item.description == "Sprint retro"
        assert item.location_id == 9
        assert item.is_cancelled is False
        assert item.exception_kind == EXCEPTION_MODIFIED
        # Neighbours are untouched
        assert resolved[2].title == "Daily Meeting"
        assert resolved[4].title == "Daily Meeting"

    def test_start_time_override_keeps_duration(self, occurrences, defaults):
        """Moving the start keeps the occurrence's duration."""
        resolved = ExceptionOverlay.apply(
            occurrences, defaults, [_exception(date(2023, 1, 2), start_time=time(14, 30))]
        )

        assert resolved[1].start_at == datetime(2023, 1, 2, 14, 30)
        assert resolved[1].end_at == datetime(2023, 1, 2, 15, 30)
        assert resolved[1].occurrence_date == date(2023, 1, 2)

    def test_end_time_override(self, occurrences, defaults):
        resolved = ExceptionOverlay.apply(
            occurrences, defaults, [_exception(date(2023, 1, 2), end_time=time(11, 0))]
        )

        assert resolved[1].start_at == datetime(2023, 1, 2, 9, 0)
        assert resolved[1].end_at == datetime(2023, 1, 2, 11, 0)

    def test_end_time_before_start_rolls_to_next_day(self, occurrences, defaults):
        """An end time earlier than the start means the next day."""
        resolved = ExceptionOverlay.apply(
            occurrences,
            defaults,
            [_exception(date(2023, 1, 2), start_time=time(23, 0), end_time=time(1, 0))],
        )

        assert resolved[1].start_at == datetime(2023, 1, 2, 23, 0)
        assert resolved[1].end_at == datetime(2023, 1, 3, 1, 0)

    def test_exceptions_accepted_as_mapping(self, occurrences, defaults):
        """Exceptions may be passed already keyed by date."""
        by_date = {date(2023, 1, 5): _exception(date(2023, 1, 5), title="Demo")}

        resolved = ExceptionOverlay.apply(occurrences, defaults, by_date)

        assert resolved[4].title == "Demo"

    def test_removing_exception_restores_template_values(self, occurrences, defaults):
        """Without its exception an occurrence resolves to template values again."""
        exception = _exception(date(2023, 1, 3), title="Moved", start_time=time(16, 0))
        modified = ExceptionOverlay.resolve(occurrences[2], defaults, exception)
        restored = ExceptionOverlay.resolve(occurrences[2], defaults, None)

        assert modified.title == "Moved"
        assert restored.title == "Daily Meeting"
        assert restored.start_at == occurrences[2].start_at
        assert restored.is_exception is False
