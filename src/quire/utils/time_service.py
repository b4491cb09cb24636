"""Time service for timezone-aware datetime handling using Pendulum."""

from datetime import datetime

import pendulum
from pendulum import DateTime


class TimeService:
    """Handles UTC timestamps, cursor parsing and relative ages."""

    def now(self) -> DateTime:
        """Get current time in UTC."""
        return pendulum.now("UTC")

    def from_timestamp(self, timestamp: float) -> DateTime:
        """Convert a POSIX timestamp (e.g. a file mtime) to a UTC datetime."""
        return pendulum.from_timestamp(timestamp, tz="UTC")

    def parse_datetime(self, dt_str: str) -> DateTime:
        """Parse a listing cursor or other ISO-8601 string.

        Naive strings are taken to be UTC; the result is always in UTC.
        """
        try:
            parsed = pendulum.parse(dt_str, tz="UTC")
        except Exception as e:
            raise ValueError(f"Cannot parse datetime: {dt_str}") from e
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Cannot parse datetime: {dt_str}")
        return parsed.in_timezone("UTC")

    def format_age(self, dt: datetime | DateTime, now: datetime | None = None) -> str:
        """Format as relative time like '5 minutes ago'.

        Uses more precise units for better clarity:
        - Shows hours for 1-47 hours
        - Shows exact days for 2-6 days
        - Shows weeks for 7+ days
        """
        if not isinstance(dt, DateTime):
            dt = pendulum.instance(dt)

        now = pendulum.instance(now) if now is not None else pendulum.now("UTC")

        # Future times
        if dt > now:
            return dt.diff_for_humans(now)

        diff = now.diff(dt)
        total_hours = diff.total_seconds() / 3600

        if total_hours < 1:
            minutes = int(diff.total_seconds() / 60)
            if minutes == 0:
                return "just now"
            elif minutes == 1:
                return "1 minute ago"
            else:
                return f"{minutes} minutes ago"
        elif total_hours < 48:
            hours = int(total_hours)
            if hours == 1:
                return "1 hour ago"
            else:
                return f"{hours} hours ago"
        elif diff.in_days() < 7:
            return f"{diff.in_days()} days ago"
        elif diff.in_days() < 30:
            weeks = diff.in_days() // 7
            if weeks == 1:
                return "1 week ago"
            else:
                return f"{weeks} weeks ago"
        else:
            return dt.diff_for_humans(now)
