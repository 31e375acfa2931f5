"""
Slot generation.

Pure functions: the same rules, busy intervals, date, and "now" always give
the same slots. No I/O happens here; callers fetch busy intervals first.

Slots step by slot_duration_minutes from the day's working-hours start and
stop before any partial slot that would run past the working-hours end.
A slot is blocked when its buffer-padded range [start - buffer, end + buffer)
intersects a busy interval. When the rules say so, any external calendar
commitment on the date blocks the whole day.
"""

from datetime import date, datetime, time, timedelta
import logging
import math
from typing import Iterable, List, Optional, Sequence, Tuple

from ..domain.scheduling import BusyInterval, BusySource, CalendarRules, SlotReason, TimeSlot
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)

_WHOLE_DAY_REASONS = (
    SlotReason.VACATION_DAY,
    SlotReason.OUTSIDE_WORKING_HOURS,
    SlotReason.BEYOND_BOOKING_WINDOW,
)


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _clock(total_minutes: int) -> time:
    return time(total_minutes // 60, total_minutes % 60)


def _whole_day_slot(rules: CalendarRules, target_date: date, reason: SlotReason) -> TimeSlot:
    day_start, day_end = TimezoneService.local_day_bounds(target_date, rules.timezone)
    return TimeSlot(date=target_date, start=day_start, end=day_end, available=False, reason=reason)


def overlaps_busy(
    start: datetime,
    end: datetime,
    busy: Iterable[BusyInterval],
    buffer_minutes: int,
) -> bool:
    """True when [start - buffer, end + buffer) intersects any busy interval."""
    pad = timedelta(minutes=buffer_minutes)
    padded_start = start - pad
    padded_end = end + pad
    return any(interval.overlaps(padded_start, padded_end) for interval in busy)


def day_has_external_commitment(
    rules: CalendarRules, target_date: date, busy: Iterable[BusyInterval]
) -> bool:
    day_start, day_end = TimezoneService.local_day_bounds(target_date, rules.timezone)
    return any(
        interval.source == BusySource.EXTERNAL and interval.overlaps(day_start, day_end)
        for interval in busy
    )


def generate_slots(
    rules: CalendarRules,
    busy: Sequence[BusyInterval],
    target_date: date,
    now: datetime,
) -> List[TimeSlot]:
    """
    Compute the ordered candidate slots for one local date.

    Non-working dates, vacation dates and dates past the booking window yield
    a single unavailable slot spanning the local day. Wall-clock times skipped
    by a DST transition are omitted.
    """
    if target_date in rules.vacation_days:
        return [_whole_day_slot(rules, target_date, SlotReason.VACATION_DAY)]

    weekday = TimezoneService.weekday_index(target_date)
    hours = rules.working_hours.get(weekday)
    if weekday not in rules.working_days or hours is None:
        return [_whole_day_slot(rules, target_date, SlotReason.OUTSIDE_WORKING_HOURS)]

    now_utc = TimezoneService.ensure_utc(now)
    if rules.max_advance_booking_days is not None:
        last_bookable = TimezoneService.local_date_of(now_utc, rules.timezone) + timedelta(
            days=rules.max_advance_booking_days
        )
        if target_date > last_bookable:
            return [_whole_day_slot(rules, target_date, SlotReason.BEYOND_BOOKING_WINDOW)]

    notice_cutoff = now_utc + timedelta(minutes=rules.min_notice_minutes)
    day_blocked = rules.block_day_on_external_event and day_has_external_commitment(
        rules, target_date, busy
    )

    duration = rules.slot_duration_minutes
    end_of_day = _minutes(hours.end)
    cursor = _minutes(hours.start)
    slots: List[TimeSlot] = []

    while cursor + duration <= end_of_day:
        start_clock = _clock(cursor)
        end_clock = _clock(cursor + duration)
        cursor += duration
        try:
            start = TimezoneService.localize(target_date, start_clock, rules.timezone)
            end = TimezoneService.localize(target_date, end_clock, rules.timezone)
        except ValueError:
            logger.debug(
                "slot_skipped_nonexistent_time",
                extra={"date": target_date.isoformat(), "start": start_clock.isoformat()},
            )
            continue

        if start < now_utc:
            reason = SlotReason.IN_THE_PAST
        elif start < notice_cutoff:
            reason = SlotReason.INSUFFICIENT_NOTICE
        elif day_blocked or overlaps_busy(start, end, busy, rules.buffer_minutes):
            reason = SlotReason.OVERLAPS_BUSY_INTERVAL
        else:
            reason = SlotReason.NONE

        slots.append(
            TimeSlot(
                date=target_date,
                start=start,
                end=end,
                available=reason == SlotReason.NONE,
                reason=reason,
            )
        )

    return slots


def slots_needed(duration_minutes: int, slot_duration_minutes: int) -> int:
    return max(1, math.ceil(duration_minutes / slot_duration_minutes))


def find_run(
    slots: Sequence[TimeSlot], start_index: int, count: int
) -> Tuple[bool, Optional[SlotReason]]:
    """
    Check that `count` back-to-back slots starting at start_index are all available.

    Returns (ok, first blocking reason).
    """
    run = slots[start_index : start_index + count]
    if len(run) < count:
        return False, SlotReason.OUTSIDE_WORKING_HOURS
    previous: Optional[TimeSlot] = None
    for slot in run:
        if previous is not None and previous.end != slot.start:
            return False, SlotReason.OUTSIDE_WORKING_HOURS
        if not slot.available:
            return False, slot.reason
        previous = slot
    return True, None


def check_requested_slot(
    slots: Sequence[TimeSlot],
    requested_start: time,
    duration_minutes: int,
    slot_duration_minutes: int,
) -> Tuple[bool, SlotReason]:
    """
    Decide whether a lesson starting at requested_start (local clock) fits.

    The start must line up with a generated slot boundary and every slot the
    lesson covers must be available.
    """
    if len(slots) == 1 and slots[0].reason in _WHOLE_DAY_REASONS:
        return False, slots[0].reason

    wanted = requested_start.strftime("%H:%M")
    for index, slot in enumerate(slots):
        if slot.start_time == wanted:
            ok, reason = find_run(slots, index, slots_needed(duration_minutes, slot_duration_minutes))
            return ok, reason or SlotReason.NONE
    return False, SlotReason.OUTSIDE_WORKING_HOURS


def find_next_available_slot(
    rules: CalendarRules,
    busy: Sequence[BusyInterval],
    from_date: date,
    now: datetime,
    duration_minutes: int,
    horizon_days: int = 30,
) -> Optional[TimeSlot]:
    """
    Scan forward day by day for the first run of available slots covering duration_minutes.

    Returns a single slot spanning the whole run, or None within the horizon.
    """
    needed = slots_needed(duration_minutes, rules.slot_duration_minutes)
    for offset in range(horizon_days):
        target_date = from_date + timedelta(days=offset)
        slots = generate_slots(rules, busy, target_date, now)
        for index in range(len(slots)):
            ok, _ = find_run(slots, index, needed)
            if ok:
                last = slots[index + needed - 1]
                return TimeSlot(
                    date=target_date,
                    start=slots[index].start,
                    end=last.end,
                    available=True,
                    reason=SlotReason.NONE,
                )
    return None
