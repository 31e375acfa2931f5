"""
Centralized timezone handling for the booking engine.

Rules:
- Lesson dates and times are wall-clock values in the business timezone
- A (date, time) pair is composed directly in that timezone, never by
  parsing the date as UTC midnight and shifting it
- All storage: UTC
- All comparisons: UTC
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz

from ..core.constants import DEFAULT_BUSINESS_TIMEZONE


class TimezoneService:
    """Handles all timezone conversions consistently."""

    DEFAULT_TIMEZONE = DEFAULT_BUSINESS_TIMEZONE

    @staticmethod
    def get_timezone(tz_str: Optional[str]) -> pytz.BaseTzInfo:
        """Get timezone object, with fallback to default."""
        try:
            return pytz.timezone(tz_str or TimezoneService.DEFAULT_TIMEZONE)
        except pytz.UnknownTimeZoneError:
            return pytz.timezone(TimezoneService.DEFAULT_TIMEZONE)

    @staticmethod
    def is_valid_timezone(tz_str: str) -> bool:
        return tz_str in pytz.all_timezones_set

    @staticmethod
    def localize(local_date: date, local_time: time, timezone_str: str) -> datetime:
        """
        Attach the business timezone to a wall-clock date and time.

        Uses the timezone rules valid on local_date (not today).

        Raises:
            ValueError: If the time doesn't exist (DST spring-forward gap)
        """
        tz = TimezoneService.get_timezone(timezone_str)
        naive_dt = datetime.combine(local_date, local_time)  # Intentionally naive for localize()

        try:
            # is_dst=None raises exception for ambiguous/nonexistent times
            return tz.localize(naive_dt, is_dst=None)
        except pytz.exceptions.AmbiguousTimeError:
            # Fall back (time exists twice) - use first occurrence
            return tz.localize(naive_dt, is_dst=True)
        except pytz.exceptions.NonExistentTimeError:
            raise ValueError(
                f"The time {local_time.strftime('%H:%M')} does not exist on "
                f"{local_date} in {timezone_str} due to Daylight Saving Time. "
                f"Please select a different time."
            )

    @staticmethod
    def local_to_utc(local_date: date, local_time: time, timezone_str: str) -> datetime:
        """Convert local date/time to a UTC instant."""
        return TimezoneService.localize(local_date, local_time, timezone_str).astimezone(
            timezone.utc
        )

    @staticmethod
    def utc_to_local(utc_dt: datetime, timezone_str: str) -> datetime:
        """Convert UTC datetime to local timezone."""
        return TimezoneService.ensure_utc(utc_dt).astimezone(
            TimezoneService.get_timezone(timezone_str)
        )

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """Treat naive datetimes (as returned by SQLite) as UTC."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)

    @staticmethod
    def local_day_bounds(local_date: date, timezone_str: str) -> Tuple[datetime, datetime]:
        """
        Return [start, end) of a local calendar day as timezone-aware local datetimes.

        Midnight is localized with the same rules as any other wall-clock time,
        so days that are 23 or 25 hours long are handled.
        """
        tz = TimezoneService.get_timezone(timezone_str)
        start = tz.localize(datetime.combine(local_date, time(0, 0)), is_dst=True)
        end = tz.localize(datetime.combine(local_date + timedelta(days=1), time(0, 0)), is_dst=True)
        return start, end

    @staticmethod
    def local_date_of(instant: datetime, timezone_str: str) -> date:
        return TimezoneService.utc_to_local(instant, timezone_str).date()

    @staticmethod
    def weekday_index(local_date: date) -> int:
        """Weekday number with 0 = Sunday ... 6 = Saturday."""
        return (local_date.weekday() + 1) % 7

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(timezone.utc)
