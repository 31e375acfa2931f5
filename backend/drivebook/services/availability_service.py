# backend/drivebook/services/availability_service.py
"""
Availability Service

Reads the calendar rules and the current busy-interval snapshot and hands
them to the pure slot generator. Used by the availability endpoints and by
the booking coordinator's final recheck.
"""

from datetime import date, datetime, time, timedelta
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import CalendarUnavailableException, ValidationException
from ..domain.scheduling import BusyInterval, CalendarRules, SlotReason, TimeSlot
from ..integrations.google_calendar import GoogleCalendarClient
from . import slot_generator
from .base import BaseService
from .busy_interval_source import BusyIntervalSource
from .calendar_settings_service import CalendarSettingsService
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """Compute bookable slots for a date or find the next free run."""

    def __init__(
        self,
        db: Session,
        calendar_client: Optional[GoogleCalendarClient] = None,
        settings_service: Optional[CalendarSettingsService] = None,
        busy_source: Optional[BusyIntervalSource] = None,
    ):
        super().__init__(db)
        self.settings_service = settings_service or CalendarSettingsService(db)
        self.busy_source = busy_source or BusyIntervalSource(db, calendar_client)

    def load_busy(
        self, rules: CalendarRules, range_start: datetime, range_end: datetime
    ) -> List[BusyInterval]:
        """
        Busy intervals for the range, honouring calendar_fail_closed.

        Raises:
            CalendarUnavailableException: Calendar unreachable and failing closed
        """
        try:
            return self.busy_source.list_busy_intervals(range_start, range_end, rules.timezone)
        except CalendarUnavailableException:
            if settings.calendar_fail_closed:
                raise
            logger.warning(
                "calendar_unavailable_fail_open",
                extra={"range_start": range_start.isoformat(), "range_end": range_end.isoformat()},
            )
            return self.busy_source.list_busy_intervals(
                range_start, range_end, rules.timezone, include_external=False
            )

    def _busy_for_dates(
        self, rules: CalendarRules, first_date: date, last_date: date
    ) -> List[BusyInterval]:
        pad = timedelta(minutes=rules.buffer_minutes)
        range_start, _ = TimezoneService.local_day_bounds(first_date, rules.timezone)
        _, range_end = TimezoneService.local_day_bounds(last_date, rules.timezone)
        return self.load_busy(
            rules,
            TimezoneService.ensure_utc(range_start) - pad,
            TimezoneService.ensure_utc(range_end) + pad,
        )

    def _effective_rules(self, buffer_minutes: Optional[int]) -> CalendarRules:
        rules = self.settings_service.get_rules()
        if buffer_minutes is None:
            return rules
        if buffer_minutes < 0:
            raise ValidationException("bufferMinutes must not be negative")
        return rules.with_buffer(buffer_minutes)

    def _slots_for(
        self, rules: CalendarRules, target_date: date, now: Optional[datetime]
    ) -> List[TimeSlot]:
        busy = self._busy_for_dates(rules, target_date, target_date)
        return slot_generator.generate_slots(
            rules, busy, target_date, now or TimezoneService.now_utc()
        )

    @BaseService.measure_operation("get_slots")
    def get_slots(
        self,
        target_date: date,
        buffer_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[TimeSlot]:
        """Slots for one local date; buffer_minutes overrides the configured buffer."""
        return self._slots_for(self._effective_rules(buffer_minutes), target_date, now)

    @BaseService.measure_operation("get_day_availability")
    def get_day_availability(
        self,
        target_date: date,
        buffer_minutes: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        rules = self._effective_rules(buffer_minutes)
        return {
            "slot_date": target_date,
            "timezone": rules.timezone,
            "buffer_minutes": rules.buffer_minutes,
            "slots": self._slots_for(rules, target_date, now),
        }

    def check_slot(
        self,
        rules: CalendarRules,
        target_date: date,
        start_time: time,
        duration_minutes: int,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, SlotReason]:
        """Recheck one requested lesson against a fresh busy snapshot."""
        slots = self._slots_for(rules, target_date, now)
        return slot_generator.check_requested_slot(
            slots, start_time, duration_minutes, rules.slot_duration_minutes
        )

    @BaseService.measure_operation("get_next_available")
    def get_next_available(
        self,
        duration_minutes: int,
        from_date: Optional[date] = None,
        now: Optional[datetime] = None,
        horizon_days: Optional[int] = None,
    ) -> Optional[TimeSlot]:
        if duration_minutes <= 0:
            raise ValidationException("durationMinutes must be positive")
        now = now or TimezoneService.now_utc()
        rules = self.settings_service.get_rules()
        start_date = from_date or TimezoneService.local_date_of(now, rules.timezone)
        horizon = horizon_days or settings.next_slot_horizon_days
        busy = self._busy_for_dates(rules, start_date, start_date + timedelta(days=horizon - 1))
        return slot_generator.find_next_available_slot(
            rules, busy, start_date, now, duration_minutes, horizon_days=horizon
        )
