# backend/drivebook/routes/v1/calendar_settings.py
"""
Calendar settings routes - API v1

Endpoints:
    GET / - Current scheduling configuration
    PATCH / - Partial update (admin)
    POST /vacation-days - Block a date (admin)
    DELETE /vacation-days/{date} - Unblock a date (admin)
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Response, status

from ...api.dependencies import get_calendar_settings_service, require_admin
from ...core.exceptions import DomainException
from ...models.calendar_settings import CalendarSettings
from ...schemas.calendar_settings import (
    CalendarSettingsResponse,
    CalendarSettingsUpdate,
    VacationDayCreate,
    VacationDayResponse,
    WorkingHoursEntry,
)
from ...services.calendar_settings_service import CalendarSettingsService
from .errors import handle_domain_exception, parse_date_param

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar-settings-v1"])


def _to_response(row: CalendarSettings, vacation_days: list) -> CalendarSettingsResponse:
    return CalendarSettingsResponse(
        timezone=row.timezone,
        working_days=sorted(entry.weekday for entry in row.working_hours if entry.enabled),
        working_hours={
            entry.weekday: WorkingHoursEntry(
                enabled=entry.enabled, start=entry.start_time, end=entry.end_time
            )
            for entry in row.working_hours
        },
        slot_duration_minutes=row.slot_duration_minutes,
        buffer_minutes=row.buffer_minutes,
        max_bookings_per_day=row.max_bookings_per_day,
        min_notice_minutes=row.min_notice_minutes,
        block_day_on_external_event=row.block_day_on_external_event,
        max_advance_booking_days=row.max_advance_booking_days,
        vacation_days=[VacationDayResponse.model_validate(day) for day in vacation_days],
        updated_at=row.updated_at,
    )


def _load(settings_service: CalendarSettingsService) -> CalendarSettingsResponse:
    row = settings_service.get_settings()
    return _to_response(row, settings_service.list_vacation_days())


@router.get("", response_model=CalendarSettingsResponse)
async def get_calendar_settings(
    settings_service: CalendarSettingsService = Depends(get_calendar_settings_service),
) -> CalendarSettingsResponse:
    try:
        return await asyncio.to_thread(_load, settings_service)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("", response_model=CalendarSettingsResponse)
async def update_calendar_settings(
    update: CalendarSettingsUpdate = Body(...),
    _: str = Depends(require_admin),
    settings_service: CalendarSettingsService = Depends(get_calendar_settings_service),
) -> CalendarSettingsResponse:
    try:
        await asyncio.to_thread(settings_service.update_settings, update)
        return await asyncio.to_thread(_load, settings_service)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/vacation-days",
    response_model=VacationDayResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_vacation_day(
    vacation: VacationDayCreate = Body(...),
    _: str = Depends(require_admin),
    settings_service: CalendarSettingsService = Depends(get_calendar_settings_service),
) -> VacationDayResponse:
    try:
        day = await asyncio.to_thread(
            settings_service.add_vacation_day, vacation.vacation_date, vacation.reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return VacationDayResponse.model_validate(day)


@router.delete("/vacation-days/{vacation_date}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_vacation_day(
    vacation_date: str,
    _: str = Depends(require_admin),
    settings_service: CalendarSettingsService = Depends(get_calendar_settings_service),
) -> Response:
    target = parse_date_param(vacation_date)
    try:
        await asyncio.to_thread(settings_service.remove_vacation_day, target)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
