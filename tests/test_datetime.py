"""Tests for date, datetime and duration utilities."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from kanban_md.utils import (
    format_age,
    format_duration,
    from_iso,
    parse_date,
    parse_duration,
    to_iso,
)


class TestIso:
    """Tests for RFC3339 conversion."""

    def test_utc_uses_z_suffix(self):
        assert to_iso(datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)) == "2025-01-02T03:04:05Z"

    def test_naive_treated_as_utc(self):
        """Naive datetimes are assumed to be UTC."""
        assert from_iso("2025-01-02T03:04:05").tzinfo is not None
        assert to_iso(datetime(2025, 1, 2)) == "2025-01-02T00:00:00Z"

    def test_offset_preserved(self):
        """Non-UTC offsets survive a round trip."""
        parsed = from_iso("2025-01-02T03:04:05+02:00")
        assert parsed.utcoffset() == timedelta(hours=2)
        assert parsed == datetime(2025, 1, 2, 1, 4, 5, tzinfo=UTC)

    def test_z_suffix_parsed(self):
        assert from_iso("2025-01-02T03:04:05Z") == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


class TestParseDate:
    """Tests for parse_date."""

    def test_valid(self):
        assert parse_date("2025-02-28") == date(2025, 2, 28)

    def test_passes_through_dates(self):
        assert parse_date(date(2025, 1, 1)) == date(2025, 1, 1)

    @pytest.mark.parametrize("value", ["2025-2-28", "28/02/2025", "2025-02-30", "tomorrow", ""])
    def test_invalid(self, value: str):
        """Anything but a real YYYY-MM-DD date is rejected."""
        with pytest.raises(ValueError):
            parse_date(value)


class TestDurations:
    """Tests for duration parsing and formatting."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("1h", timedelta(hours=1)),
            ("30m", timedelta(minutes=30)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("90s", timedelta(seconds=90)),
            ("1.5h", timedelta(minutes=90)),
        ],
    )
    def test_parse(self, text: str, expected: timedelta):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["", "1d", "h", "1h 30m", "abc"])
    def test_parse_invalid(self, text: str):
        with pytest.raises(ValueError):
            parse_duration(text)

    def test_format_duration(self):
        assert format_duration(timedelta(hours=5, minutes=30)) == "5h 30m"
        assert format_duration(timedelta(days=2, hours=3)) == "2d 3h"
        assert format_duration(timedelta(seconds=-5)) == "0h 0m"

    def test_format_age(self):
        """Age labels use the largest whole unit."""
        assert format_age(timedelta(minutes=12)) == "12m"
        assert format_age(timedelta(hours=5, minutes=59)) == "5h"
        assert format_age(timedelta(days=3, hours=4)) == "3d"
        assert format_age(timedelta(seconds=-1)) == "0m"
