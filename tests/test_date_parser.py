"""
Tests for natural-language date parsing.
Target: 95% coverage
"""

from datetime import date

import pytest

from hr_assistant.date_parser import (
    INVERTED_RANGE,
    UNPARSEABLE_DATE,
    calculate_inclusive_days,
    expand_days,
    format_human_readable,
    is_past_date,
    parse_date,
    parse_date_range,
    parse_dates,
    project_end_date,
    to_date,
)

THURSDAY = date(2025, 12, 11)
FRIDAY = date(2025, 12, 12)


class TestRelativeDates:
    """Test relative keywords."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("tomorrow", "2025-12-11"),
            ("day after tomorrow", "2025-12-12"),
            ("yesterday", "2025-12-09"),
            ("leave today please", "2025-12-10"),
        ],
    )
    def test_relative_keywords(self, reference_date, text, expected):
        """Relative words resolve against the reference date."""
        result = parse_dates(text, reference_date)
        assert result.start_date == expected
        assert result.end_date == expected
        assert result.is_range is False
        assert result.errors == []

    def test_datetime_reference_is_normalized(self):
        """A datetime reference behaves like its date."""
        from datetime import datetime

        result = parse_dates("tomorrow", datetime(2025, 12, 10, 23, 59))
        assert result.start_date == "2025-12-11"


class TestWeekdays:
    """Test this/next/coming weekday resolution."""

    def test_this_friday_from_thursday(self):
        """"this Friday" from a Thursday is the next day."""
        assert parse_date("this friday", THURSDAY) == "2025-12-12"

    def test_next_friday_from_thursday(self):
        """"next Friday" from a Thursday is eight days ahead."""
        assert parse_date("next friday", THURSDAY) == "2025-12-19"

    def test_next_friday_from_friday(self):
        """"next Friday" from a Friday is one week ahead."""
        assert parse_date("next friday", FRIDAY) == "2025-12-19"

    def test_this_friday_on_friday_is_today(self):
        """"this Friday" said on a Friday means today."""
        assert parse_date("this friday", FRIDAY) == "2025-12-12"

    def test_coming_friday_on_friday_is_next_week(self):
        """"coming" is strictly after today."""
        assert parse_date("coming friday", FRIDAY) == "2025-12-19"

    def test_bare_weekday_resolves_forward(self, reference_date):
        """"on Friday" from a Wednesday is two days ahead."""
        assert parse_date("leave on friday", reference_date) == "2025-12-12"


class TestAbsoluteDates:
    """Test absolute date formats."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2025-12-20", "2025-12-20"),
            ("20.12.2025", "2025-12-20"),
            ("20/12/2025", "2025-12-20"),
            ("20-12-2025", "2025-12-20"),
            ("20/12", "2025-12-20"),
            ("15th December", "2025-12-15"),
            ("15 dec 2026", "2026-12-15"),
            ("December 15th", "2025-12-15"),
            ("on the 18th", "2025-12-18"),
        ],
    )
    def test_formats_resolve_to_iso(self, reference_date, text, expected):
        """Every supported absolute form yields the same ISO date."""
        result = parse_dates(text, reference_date)
        assert result.errors == []
        assert result.start_date == expected

    def test_number_followed_by_unit_is_not_a_date(self, reference_date):
        """"2 days" is a duration, not the 2nd of the month."""
        result = parse_dates("2 days", reference_date)
        assert result.start_date is None
        assert result.errors == [UNPARSEABLE_DATE]


class TestInvalidDates:
    """Test calendar validation."""

    def test_day_past_month_end(self, reference_date):
        """32nd December is rejected."""
        result = parse_dates("32nd December", reference_date)
        assert result.start_date is None
        assert result.errors
        assert "Invalid day for the specified month" in result.errors[0]

    def test_february_31(self, reference_date):
        """31 February is rejected."""
        result = parse_dates("31 February", reference_date)
        assert result.start_date is None
        assert "Invalid day for the specified month" in result.errors[0]

    def test_month_out_of_range(self, reference_date):
        """Month 13 is an invalid date."""
        result = parse_dates("15/13/2025", reference_date)
        assert result.start_date is None
        assert result.errors[0] == 'Invalid date in "15/13/2025".'

    def test_no_date(self, reference_date):
        """Text without a date reports it could not understand."""
        result = parse_dates("sometime soon", reference_date)
        assert result.start_date is None
        assert result.end_date is None
        assert result.errors == [UNPARSEABLE_DATE]

    def test_empty_text(self, reference_date):
        """Empty input reports no text."""
        assert parse_dates("", reference_date).errors == ["No text provided"]
        assert parse_dates("   ", reference_date).errors == ["No text provided"]


class TestRanges:
    """Test date range parsing."""

    def test_bare_start_inherits_end_month(self, reference_date):
        """"from 15th to 17th December" spans three December days."""
        result = parse_dates("from 15th to 17th December", reference_date)
        assert result.is_range is True
        assert result.start_date == "2025-12-15"
        assert result.end_date == "2025-12-17"
        assert result.errors == []

    def test_numeric_range(self, reference_date):
        """Numeric boundaries parse independently."""
        result = parse_dates("from 20.12.2025 to 22.12.2025", reference_date)
        assert (result.start_date, result.end_date) == ("2025-12-20", "2025-12-22")

    def test_bare_range_without_from(self, reference_date):
        """"15th to 17th" uses the reference month."""
        result = parse_dates("15th to 17th", reference_date)
        assert result.is_range is True
        assert (result.start_date, result.end_date) == ("2025-12-15", "2025-12-17")

    def test_clause_after_end_is_ignored(self, reference_date):
        """A trailing reason does not confuse the end boundary."""
        result = parse_dates("from 15th to 17th December for a family trip", reference_date)
        assert result.end_date == "2025-12-17"

    def test_inverted_range(self, reference_date):
        """An end before the start is an error."""
        result = parse_dates("from 20.12.2025 to 18.12.2025", reference_date)
        assert INVERTED_RANGE in result.errors

    def test_invalid_end_keeps_partial_start(self, reference_date):
        """A bad end still reports the parsed start."""
        result = parse_dates("from 15th to 45th December", reference_date)
        assert result.start_date == "2025-12-15"
        assert result.end_date is None
        assert "Unable to parse end date." in result.errors

    def test_bare_weekday_end_follows_start(self):
        """"monday to wednesday" on a Tuesday spans next week's Monday to Wednesday."""
        result = parse_dates("leave from monday to wednesday", date(2025, 12, 9))
        assert (result.start_date, result.end_date) == ("2025-12-15", "2025-12-17")
        assert result.errors == []

    def test_qualified_weekday_end_stays_put(self):
        """An explicitly qualified end keeps its own week, even when inverted."""
        result = parse_dates("from next monday to this wednesday", date(2025, 12, 9))
        assert result.end_date == "2025-12-10"
        assert INVERTED_RANGE in result.errors

    def test_work_from_home_is_not_a_range(self, reference_date):
        """"from home" is not a date boundary."""
        result = parse_dates("work from home tomorrow", reference_date)
        assert result.is_range is False
        assert result.start_date == "2025-12-11"

    def test_parse_date_range_wrapper(self, reference_date):
        """parse_date_range returns a (start, end) pair."""
        assert parse_date_range("from 15th to 17th December", reference_date) == ("2025-12-15", "2025-12-17")
        assert parse_date_range("32nd December", reference_date) == (None, None)


class TestDateHelpers:
    """Test day counting and formatting helpers."""

    def test_inclusive_days(self):
        """Both ends are counted."""
        assert calculate_inclusive_days("2025-12-15", "2025-12-17") == 3
        assert calculate_inclusive_days("2025-12-15", "2025-12-15") == 1

    def test_half_day(self):
        """A half day is always 0.5."""
        assert calculate_inclusive_days("2025-12-15", "2025-12-15", is_half_day=True) == 0.5

    def test_invalid_input_counts_zero(self):
        """Garbage and inverted ranges count 0."""
        assert calculate_inclusive_days("nope", "2025-12-15") == 0
        assert calculate_inclusive_days("2025-12-17", "2025-12-15") == 0

    def test_project_end_date(self):
        """A duration projects an inclusive end date."""
        assert project_end_date("2025-12-15", 3) == "2025-12-17"
        assert project_end_date("2025-12-15", 0.5) == "2025-12-15"
        assert project_end_date("2025-12-15", 1.5) == "2025-12-16"

    def test_expand_days(self):
        """Every day in the range is listed."""
        assert expand_days("2025-12-30", "2026-01-01") == [
            date(2025, 12, 30),
            date(2025, 12, 31),
            date(2026, 1, 1),
        ]

    def test_is_past_date(self, reference_date):
        """Only days strictly before today are past."""
        assert is_past_date("2025-12-09", reference_date) is True
        assert is_past_date("2025-12-10", reference_date) is False

    def test_format_human_readable(self):
        """ISO dates render as "Month D, YYYY"; non-dates echo back."""
        assert format_human_readable("2025-12-15") == "December 15, 2025"
        assert format_human_readable(date(2026, 1, 5)) == "January 5, 2026"
        assert format_human_readable("not a date") == "not a date"

    def test_to_date(self):
        """Only ISO strings coerce to dates."""
        assert to_date("2025-12-15") == date(2025, 12, 15)
        assert to_date("15/12/2025") is None
        assert to_date(None) is None
