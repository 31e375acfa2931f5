# backend/drivebook/routes/v1/availability.py
"""
Availability routes - API v1

Endpoints:
    GET / - Slots for one local date
    GET /next - First run of free slots covering a duration
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_availability_service
from ...core.constants import BUFFER_MINUTES_MAX
from ...core.exceptions import DomainException
from ...schemas.availability import AvailabilityResponse, NextAvailableResponse, TimeSlotResponse
from ...services.availability_service import AvailabilityService
from .errors import handle_domain_exception, parse_date_param

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["availability-v1"])


@router.get(
    "",
    response_model=AvailabilityResponse,
    responses={
        400: {"description": "Invalid date or buffer"},
        503: {"description": "Calendar provider unavailable"},
    },
)
async def get_availability(
    date_str: str = Query(..., alias="date", description="Local date, YYYY-MM-DD"),
    buffer_minutes: Optional[int] = Query(
        None, alias="bufferMinutes", ge=0, le=BUFFER_MINUTES_MAX
    ),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """Every candidate slot for the date, with availability and the blocking reason."""
    target_date = parse_date_param(date_str)
    try:
        day = await asyncio.to_thread(
            availability_service.get_day_availability, target_date, buffer_minutes
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AvailabilityResponse(
        slot_date=day["slot_date"],
        timezone=day["timezone"],
        buffer_minutes=day["buffer_minutes"],
        slots=[TimeSlotResponse.from_slot(slot) for slot in day["slots"]],
    )


@router.get("/next", response_model=NextAvailableResponse)
async def get_next_available(
    duration_minutes: int = Query(60, alias="durationMinutes", gt=0, le=720),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> NextAvailableResponse:
    try:
        slot = await asyncio.to_thread(availability_service.get_next_available, duration_minutes)
    except DomainException as e:
        handle_domain_exception(e)
    return NextAvailableResponse(
        duration_minutes=duration_minutes,
        slot=TimeSlotResponse.from_slot(slot) if slot else None,
    )
