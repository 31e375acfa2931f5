# backend/drivebook/schemas/calendar_settings.py
"""Calendar settings and vacation day schemas."""

from datetime import date, datetime, time
from typing import Dict, List, Optional

from pydantic import Field, field_serializer, field_validator, model_validator
import pytz

from ..core.constants import (
    BUFFER_MINUTES_MAX,
    MAX_ADVANCE_BOOKING_DAYS_MAX,
    MAX_ADVANCE_BOOKING_DAYS_MIN,
    MAX_BOOKINGS_PER_DAY_MAX,
    MAX_BOOKINGS_PER_DAY_MIN,
    SLOT_DURATION_MAX,
    SLOT_DURATION_MIN,
    VACATION_REASON_MAX_LENGTH,
)
from .base import StandardizedModel, StrictRequestModel, ensure_date_only


def _parse_clock(v: object) -> object:
    if isinstance(v, str):
        try:
            hour, minute = v.split(":")
            return time(int(hour), int(minute))
        except (ValueError, AttributeError):
            raise ValueError(f"Invalid time format: {v}. Expected HH:MM format.")
    return v


class WorkingHoursEntry(StrictRequestModel):
    """Working window for one weekday, in local wall-clock time."""

    enabled: bool = False
    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        return _parse_clock(v)

    @model_validator(mode="after")
    def validate_time_order(self) -> "WorkingHoursEntry":
        if self.start >= self.end:
            raise ValueError("Working hours start must be before end")
        return self

    @field_serializer("start", "end")
    def serialize_clock(self, value: time) -> str:
        return value.strftime("%H:%M")


class CalendarSettingsUpdate(StrictRequestModel):
    """Partial update; omitted fields keep their current value."""

    timezone: Optional[str] = None
    working_hours: Optional[Dict[int, WorkingHoursEntry]] = Field(
        None, description="Keyed by weekday, 0 = Sunday ... 6 = Saturday"
    )
    slot_duration_minutes: Optional[int] = Field(None, ge=SLOT_DURATION_MIN, le=SLOT_DURATION_MAX)
    buffer_minutes: Optional[int] = Field(None, ge=0, le=BUFFER_MINUTES_MAX)
    max_bookings_per_day: Optional[int] = Field(
        None, ge=MAX_BOOKINGS_PER_DAY_MIN, le=MAX_BOOKINGS_PER_DAY_MAX
    )
    min_notice_minutes: Optional[int] = Field(None, ge=0, le=7 * 24 * 60)
    block_day_on_external_event: Optional[bool] = None
    max_advance_booking_days: Optional[int] = Field(
        None, ge=MAX_ADVANCE_BOOKING_DAYS_MIN, le=MAX_ADVANCE_BOOKING_DAYS_MAX
    )

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("working_hours")
    @classmethod
    def validate_weekdays(
        cls, v: Optional[Dict[int, WorkingHoursEntry]]
    ) -> Optional[Dict[int, WorkingHoursEntry]]:
        if v is not None:
            invalid = sorted(day for day in v if day < 0 or day > 6)
            if invalid:
                raise ValueError(f"Weekdays must be between 0 (Sunday) and 6 (Saturday): {invalid}")
        return v


class CalendarSettingsResponse(StandardizedModel):
    timezone: str
    working_days: List[int]
    working_hours: Dict[int, WorkingHoursEntry]
    slot_duration_minutes: int
    buffer_minutes: int
    max_bookings_per_day: int
    min_notice_minutes: int
    block_day_on_external_event: bool
    max_advance_booking_days: int
    vacation_days: List["VacationDayResponse"] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


class VacationDayCreate(StrictRequestModel):
    vacation_date: date = Field(..., alias="date")
    reason: Optional[str] = Field(None, min_length=1, max_length=VACATION_REASON_MAX_LENGTH)

    @field_validator("vacation_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "date")

    @field_validator("reason", mode="before")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class VacationDayResponse(StandardizedModel):
    vacation_date: date = Field(..., alias="date")
    reason: Optional[str] = None


CalendarSettingsResponse.model_rebuild()
