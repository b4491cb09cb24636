"""
Unit tests for the time service.
"""
from datetime import datetime, timedelta, timezone

import pytest

from quire.utils.time_service import TimeService


class TestTimeService:
    """Test UTC handling and cursor parsing."""

    def test_now_returns_utc_datetime(self):
        """Test that now() returns timezone-aware UTC datetime."""
        current = TimeService().now()

        assert current.tzinfo is not None
        assert current.utcoffset() == timedelta(0)

    def test_from_timestamp(self):
        converted = TimeService().from_timestamp(0)
        assert converted == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert converted.utcoffset() == timedelta(0)

    def test_parse_cursor_with_offset(self):
        parsed = TimeService().parse_datetime("2024-05-01T14:00:00+02:00")
        assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)

    def test_naive_cursor_is_utc(self):
        parsed = TimeService().parse_datetime("2024-05-01T12:00:00")
        assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", ["yesterday-ish", "2024-13-45"])
    def test_unparseable_cursor(self, value):
        with pytest.raises(ValueError):
            TimeService().parse_datetime(value)


class TestFormatAge:
    """Test relative ages shown in listings."""

    NOW = datetime(2025, 8, 4, 14, 3, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        ("delta", "expected"),
        [
            (timedelta(seconds=30), "just now"),
            (timedelta(minutes=1), "1 minute ago"),
            (timedelta(minutes=5), "5 minutes ago"),
            (timedelta(hours=1), "1 hour ago"),
            (timedelta(hours=30), "30 hours ago"),
            (timedelta(days=3), "3 days ago"),
            (timedelta(days=7), "1 week ago"),
            (timedelta(days=20), "2 weeks ago"),
        ],
    )
    def test_recent(self, delta, expected):
        assert TimeService().format_age(self.NOW - delta, self.NOW) == expected

    def test_old_dates_use_pendulum_wording(self):
        age = TimeService().format_age(self.NOW - timedelta(days=90), self.NOW)
        assert "month" in age
