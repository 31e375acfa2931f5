# backend/drivebook/services/busy_interval_source.py
"""
Busy-interval source.

Merges confirmed bookings from the store with events from the external
calendar into absolute [start, end) ranges. An unreachable calendar raises
CalendarUnavailableException; it is never reported as "no events".
"""

from datetime import date, datetime, timedelta
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import CalendarUnavailableException
from ..domain.scheduling import BusyInterval, BusySource
from ..integrations.google_calendar import (
    BOOKING_EVENT_PROPERTY,
    CalendarProviderError,
    GoogleCalendarClient,
)
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .slot_generator import overlaps_busy
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)


def _parse_event_datetime(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return TimezoneService.ensure_utc(datetime.fromisoformat(value))


def event_to_interval(event: Dict[str, Any], timezone_str: str) -> Optional[BusyInterval]:
    """
    Convert a Calendar v3 event resource into a busy interval.

    Returns None for cancelled or transparent (free) events. All-day events
    carry an exclusive end date and cover local midnight to local midnight.
    """
    if event.get("status") == "cancelled":
        return None
    if event.get("transparency") == "transparent":
        return None
    # Events mirrored from our own bookings are already covered by the store
    private = (event.get("extendedProperties") or {}).get("private") or {}
    if private.get(BOOKING_EVENT_PROPERTY):
        return None

    start_info = event.get("start") or {}
    end_info = event.get("end") or {}

    if "dateTime" in start_info:
        start = _parse_event_datetime(start_info["dateTime"])
        end = _parse_event_datetime(end_info.get("dateTime", start_info["dateTime"]))
    elif "date" in start_info:
        first_day = date.fromisoformat(start_info["date"])
        end_day = (
            date.fromisoformat(end_info["date"])
            if "date" in end_info
            else first_day + timedelta(days=1)
        )
        start, _ = TimezoneService.local_day_bounds(first_day, timezone_str)
        end, _ = TimezoneService.local_day_bounds(end_day, timezone_str)
        start = TimezoneService.ensure_utc(start)
        end = TimezoneService.ensure_utc(end)
    else:
        return None

    if end <= start:
        return None
    return BusyInterval(start=start, end=end, source=BusySource.EXTERNAL, external_id=event.get("id"))


class BusyIntervalSource(BaseService):
    """Read-only view over everything that occupies the instructor's time."""

    def __init__(self, db: Session, calendar_client: Optional[GoogleCalendarClient] = None):
        super().__init__(db)
        self.calendar_client = calendar_client
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    def list_booking_intervals(self, range_start: datetime, range_end: datetime) -> List[BusyInterval]:
        bookings = self.booking_repository.get_confirmed_overlapping(
            TimezoneService.ensure_utc(range_start), TimezoneService.ensure_utc(range_end)
        )
        return [
            BusyInterval(
                start=TimezoneService.ensure_utc(booking.starts_at),
                end=TimezoneService.ensure_utc(booking.ends_at),
                source=BusySource.BOOKING,
                external_id=booking.id,
            )
            for booking in bookings
        ]

    def list_external_intervals(
        self, range_start: datetime, range_end: datetime, timezone_str: str
    ) -> List[BusyInterval]:
        if self.calendar_client is None:
            return []
        try:
            events = self.calendar_client.list_events(
                TimezoneService.ensure_utc(range_start), TimezoneService.ensure_utc(range_end)
            )
        except CalendarProviderError as e:
            logger.error(
                "calendar_busy_fetch_failed",
                extra={"error": str(e), "range_start": range_start.isoformat()},
            )
            raise CalendarUnavailableException() from e

        intervals = []
        for event in events:
            interval = event_to_interval(event, timezone_str)
            if interval is not None:
                intervals.append(interval)
        return intervals

    @BaseService.measure_operation("list_busy_intervals")
    def list_busy_intervals(
        self,
        range_start: datetime,
        range_end: datetime,
        timezone_str: str = TimezoneService.DEFAULT_TIMEZONE,
        include_external: bool = True,
    ) -> List[BusyInterval]:
        """
        Busy intervals intersecting [range_start, range_end), sorted by start.

        Raises:
            CalendarUnavailableException: The external calendar could not be read
        """
        intervals = self.list_booking_intervals(range_start, range_end)
        if include_external:
            intervals.extend(self.list_external_intervals(range_start, range_end, timezone_str))
        return sorted(intervals, key=lambda interval: (interval.start, interval.end))

    def is_busy(
        self,
        start: datetime,
        end: datetime,
        buffer_minutes: int = 0,
        timezone_str: str = TimezoneService.DEFAULT_TIMEZONE,
    ) -> bool:
        pad = timedelta(minutes=buffer_minutes)
        busy = self.list_busy_intervals(start - pad, end + pad, timezone_str)
        return overlaps_busy(start, end, busy, buffer_minutes)
