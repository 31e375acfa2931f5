"""Scheduling value objects shared across services, routes, and schemas."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from enum import Enum
from typing import FrozenSet, Mapping, Optional


class SlotReason(str, Enum):
    """Why a slot is (un)available. NONE means bookable."""

    NONE = "none"
    OUTSIDE_WORKING_HOURS = "outside-working-hours"
    VACATION_DAY = "vacation-day"
    OVERLAPS_BUSY_INTERVAL = "overlaps-busy-interval"
    IN_THE_PAST = "in-the-past"
    INSUFFICIENT_NOTICE = "insufficient-notice"
    BEYOND_BOOKING_WINDOW = "beyond-booking-window"


class BusySource(str, Enum):
    BOOKING = "booking"
    EXTERNAL = "external"


@dataclass(frozen=True)
class BusyInterval:
    """An absolute [start, end) range during which the instructor is unavailable."""

    start: datetime
    end: datetime
    source: BusySource
    external_id: Optional[str] = None

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # Touching boundaries do not overlap
        return start < self.end and end > self.start


@dataclass(frozen=True)
class DayHours:
    start: time
    end: time


@dataclass(frozen=True)
class CalendarRules:
    """
    Immutable snapshot of the calendar settings used by the slot generator.

    working_days uses 0 = Sunday ... 6 = Saturday; working_hours is keyed the same way.
    """

    timezone: str
    working_days: FrozenSet[int]
    working_hours: Mapping[int, DayHours]
    slot_duration_minutes: int
    buffer_minutes: int
    vacation_days: Mapping[date, Optional[str]] = field(default_factory=dict)
    min_notice_minutes: int = 0
    max_bookings_per_day: int = 8
    block_day_on_external_event: bool = True
    # None leaves the booking window open-ended
    max_advance_booking_days: Optional[int] = None

    def with_buffer(self, buffer_minutes: int) -> "CalendarRules":
        return replace(self, buffer_minutes=buffer_minutes)


@dataclass(frozen=True)
class TimeSlot:
    """
    A candidate lesson slot.

    start and end are timezone-aware datetimes in the business timezone, so the
    local date and clock time read back exactly as the user selected them.
    """

    date: date
    start: datetime
    end: datetime
    available: bool
    reason: SlotReason = SlotReason.NONE

    @property
    def start_time(self) -> str:
        return self.start.strftime("%H:%M")

    @property
    def end_time(self) -> str:
        # A whole-day slot ends at the following local midnight
        if self.end.date() > self.date and self.end.hour == 0 and self.end.minute == 0:
            return "24:00"
        return self.end.strftime("%H:%M")
