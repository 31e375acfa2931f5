# backend/drivebook/services/calendar_settings_service.py
"""
Calendar Settings Service

Owns the singleton scheduling configuration and the vacation calendar, and
turns the persisted rows into the immutable CalendarRules snapshot the slot
generator consumes.
"""

from datetime import date, time
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings as app_settings
from ..core.constants import MAX_ADVANCE_BOOKING_DAYS_DEFAULT, SATURDAY, SUNDAY
from ..core.exceptions import NotFoundException
from ..domain.scheduling import CalendarRules, DayHours
from ..models.calendar_settings import CalendarSettings, VacationDay, WorkingHours
from ..repositories.factory import RepositoryFactory
from ..schemas.calendar_settings import CalendarSettingsUpdate
from .base import BaseService

logger = logging.getLogger(__name__)

WEEKDAY_DEFAULT_HOURS = (time(9, 0), time(17, 0))
WEEKEND_DEFAULT_HOURS = (time(10, 0), time(16, 0))


def _default_working_hours() -> list:
    rows = []
    for weekday in range(7):
        weekend = weekday in (SUNDAY, SATURDAY)
        start, end = WEEKEND_DEFAULT_HOURS if weekend else WEEKDAY_DEFAULT_HOURS
        rows.append(WorkingHours(weekday=weekday, enabled=not weekend, start_time=start, end_time=end))
    return rows


class CalendarSettingsService(BaseService):
    """Read and update the instructor's scheduling configuration."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_calendar_settings_repository(db)

    def _get_or_create(self) -> CalendarSettings:
        row = self.repository.get_current()
        if row is not None:
            return row
        row = CalendarSettings(
            timezone=app_settings.business_timezone_default,
            slot_duration_minutes=60,
            buffer_minutes=30,
            max_bookings_per_day=8,
            min_notice_minutes=120,
            block_day_on_external_event=True,
            max_advance_booking_days=MAX_ADVANCE_BOOKING_DAYS_DEFAULT,
        )
        row.working_hours = _default_working_hours()
        self.db.add(row)
        self.db.flush()
        self.logger.info("calendar_settings_initialized", extra={"timezone": row.timezone})
        return row

    @BaseService.measure_operation("get_settings")
    def get_settings(self) -> CalendarSettings:
        """Return the singleton settings row, creating it with defaults on first read."""
        with self.transaction():
            return self._get_or_create()

    @BaseService.measure_operation("get_rules")
    def get_rules(self) -> CalendarRules:
        row = self.get_settings()
        vacation_days: Dict[date, Optional[str]] = {
            day.vacation_date: day.reason for day in self.repository.list_vacation_days()
        }
        return self.to_rules(row, vacation_days)

    @staticmethod
    def to_rules(row: CalendarSettings, vacation_days: Dict[date, Optional[str]]) -> CalendarRules:
        working_hours = {
            entry.weekday: DayHours(start=entry.start_time, end=entry.end_time)
            for entry in row.working_hours
        }
        working_days = frozenset(entry.weekday for entry in row.working_hours if entry.enabled)
        return CalendarRules(
            timezone=row.timezone,
            working_days=working_days,
            working_hours=working_hours,
            slot_duration_minutes=row.slot_duration_minutes,
            buffer_minutes=row.buffer_minutes,
            vacation_days=vacation_days,
            min_notice_minutes=row.min_notice_minutes,
            max_bookings_per_day=row.max_bookings_per_day,
            block_day_on_external_event=row.block_day_on_external_event,
            max_advance_booking_days=row.max_advance_booking_days,
        )

    @BaseService.measure_operation("update_settings")
    def update_settings(self, update: CalendarSettingsUpdate) -> CalendarSettings:
        """Apply a partial update. Weekdays missing from working_hours are left unchanged."""
        changes = update.model_dump(exclude_unset=True, exclude={"working_hours"})
        with self.transaction():
            row = self._get_or_create()
            for field, value in changes.items():
                if value is not None:
                    setattr(row, field, value)

            if update.working_hours:
                existing = {entry.weekday: entry for entry in row.working_hours}
                for weekday, entry in update.working_hours.items():
                    target = existing.get(weekday)
                    if target is None:
                        target = WorkingHours(weekday=weekday)
                        row.working_hours.append(target)
                    target.enabled = entry.enabled
                    target.start_time = entry.start
                    target.end_time = entry.end
            self.db.flush()

        self.log_operation("update_settings", fields=sorted(update.model_fields_set))
        return row

    def list_vacation_days(self) -> list:
        return self.repository.list_vacation_days()

    @BaseService.measure_operation("add_vacation_day")
    def add_vacation_day(self, vacation_date: date, reason: Optional[str] = None) -> VacationDay:
        """Block a date. Adding an existing date updates its reason."""
        with self.transaction():
            day = self.repository.upsert_vacation_day(vacation_date, reason)
        self.log_operation("add_vacation_day", date=vacation_date.isoformat())
        return day

    @BaseService.measure_operation("remove_vacation_day")
    def remove_vacation_day(self, vacation_date: date) -> None:
        with self.transaction():
            removed = self.repository.delete_vacation_day(vacation_date)
        if not removed:
            raise NotFoundException(
                f"No vacation day on {vacation_date.isoformat()}",
                code="VACATION_DAY_NOT_FOUND",
            )
        self.log_operation("remove_vacation_day", date=vacation_date.isoformat())
