# backend/drivebook/schemas/availability.py
"""Slot query responses."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from ..domain.scheduling import SlotReason, TimeSlot
from .base import StandardizedModel


class TimeSlotResponse(StandardizedModel):
    """A slot as shown to clients: local date and clock times plus UTC instants."""

    slot_date: date = Field(..., alias="date")
    start_time: str
    end_time: str
    starts_at: datetime
    ends_at: datetime
    available: bool
    reason: SlotReason

    @classmethod
    def from_slot(cls, slot: TimeSlot) -> "TimeSlotResponse":
        return cls(
            slot_date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
            starts_at=slot.start,
            ends_at=slot.end,
            available=slot.available,
            reason=slot.reason,
        )


class AvailabilityResponse(StandardizedModel):
    slot_date: date = Field(..., alias="date")
    timezone: str
    buffer_minutes: int
    slots: List[TimeSlotResponse]


class NextAvailableResponse(StandardizedModel):
    duration_minutes: int
    slot: Optional[TimeSlotResponse] = None
