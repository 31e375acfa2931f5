# backend/drivebook/schemas/booking.py
"""
Booking schemas.

Lesson date and time are separate wall-clock fields in the business
timezone. The date is accepted only as a bare YYYY-MM-DD string so that it
can never be parsed as UTC midnight and shifted into a neighbouring day.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from pydantic import Field, field_serializer, field_validator

from ..core.constants import MIN_CANCELLATION_REASON_LENGTH
from ..models.booking import BookingStatus
from .base import Hours, StandardizedModel, StrictRequestModel, ensure_date_only


class BookingCreate(StrictRequestModel):
    """Request to book a lesson starting at a generated slot boundary."""

    lesson_date: date = Field(..., alias="date", description="Local lesson date")
    start_time: time = Field(..., alias="time", description="Local start time, HH:MM")
    duration_minutes: int = Field(..., gt=0, le=720)
    lesson_type: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("lesson_date", mode="before")
    @classmethod
    def _enforce_date_only(cls, v: object) -> object:
        return ensure_date_only(v, "date")

    @field_validator("start_time", mode="before")
    @classmethod
    def parse_time_string(cls, v: object) -> object:
        """Convert HH:MM strings to time objects."""
        if isinstance(v, str):
            try:
                hour, minute = v.split(":")
                return time(int(hour), int(minute))
            except (ValueError, AttributeError):
                raise ValueError(f"Invalid time format: {v}. Expected HH:MM format.")
        return v

    @field_validator("lesson_type")
    @classmethod
    def clean_lesson_type(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("lessonType must not be blank")
        return v

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class BookingCancel(StrictRequestModel):
    cancellation_reason: str = Field(..., max_length=1000)

    @field_validator("cancellation_reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        v = v.strip()
        if len(v) < MIN_CANCELLATION_REASON_LENGTH:
            raise ValueError(
                f"cancellationReason must be at least {MIN_CANCELLATION_REASON_LENGTH} characters"
            )
        return v


class BookingResponse(StandardizedModel):
    id: str
    user_id: str
    lesson_date: date = Field(..., alias="date")
    start_time: time
    end_time: time
    timezone: str
    starts_at: datetime
    ends_at: datetime
    duration_minutes: int
    lesson_type: str
    status: BookingStatus
    hours_consumed: Hours
    notes: Optional[str] = None
    external_event_id: Optional[str] = None
    needs_calendar_sync: bool = False
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @field_validator("starts_at", "ends_at", "created_at", "confirmed_at", "cancelled_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # SQLite drops tzinfo; stored instants are UTC
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer("start_time", "end_time")
    def serialize_clock(self, value: time) -> str:
        return value.strftime("%H:%M")


class CancellationResponse(StandardizedModel):
    booking_id: str
    hours_refunded: Hours
    new_balance: Hours


class PendingSyncResponse(StandardizedModel):
    """Deferred calendar side effect awaiting the reconciliation worker."""

    id: str
    event_type: str
    aggregate_id: str
    status: str
    attempt_count: int
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
