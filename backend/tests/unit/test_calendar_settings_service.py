# backend/tests/unit/test_calendar_settings_service.py
from datetime import date, time

from pydantic import ValidationError
import pytest

from drivebook.core.exceptions import NotFoundException
from drivebook.schemas.calendar_settings import CalendarSettingsUpdate
from drivebook.services.calendar_settings_service import CalendarSettingsService


@pytest.fixture
def service(db) -> CalendarSettingsService:
    return CalendarSettingsService(db)


def test_defaults_created_on_first_read(service):
    rules = service.get_rules()

    assert rules.timezone == "Australia/Brisbane"
    assert rules.working_days == frozenset({1, 2, 3, 4, 5})
    assert rules.working_hours[1].start == time(9, 0)
    assert rules.working_hours[1].end == time(17, 0)
    assert rules.slot_duration_minutes == 60
    assert rules.buffer_minutes == 30
    assert rules.max_bookings_per_day == 8
    assert rules.min_notice_minutes == 120
    assert rules.block_day_on_external_event is True
    assert rules.max_advance_booking_days == 30
    assert rules.vacation_days == {}


def test_settings_row_is_singleton(service):
    first = service.get_settings()
    second = service.get_settings()

    assert first.id == second.id


def test_partial_update_keeps_other_fields(service):
    update = CalendarSettingsUpdate.model_validate(
        {
            "bufferMinutes": 15,
            "workingHours": {"6": {"enabled": True, "start": "08:00", "end": "12:00"}},
        }
    )

    service.update_settings(update)
    rules = service.get_rules()

    assert rules.buffer_minutes == 15
    assert rules.slot_duration_minutes == 60
    assert 6 in rules.working_days
    assert rules.working_hours[6].start == time(8, 0)
    assert rules.working_hours[1].start == time(9, 0)


def test_disable_weekday(service):
    service.update_settings(
        CalendarSettingsUpdate.model_validate(
            {"workingHours": {"3": {"enabled": False, "start": "09:00", "end": "17:00"}}}
        )
    )

    assert 3 not in service.get_rules().working_days


@pytest.mark.parametrize(
    "payload",
    [
        {"slotDurationMinutes": 15},
        {"bufferMinutes": -5},
        {"maxBookingsPerDay": 0},
        {"maxAdvanceBookingDays": 0},
        {"maxAdvanceBookingDays": 366},
        {"timezone": "Mars/Olympus"},
        {"workingHours": {"7": {"enabled": True, "start": "09:00", "end": "17:00"}}},
        {"workingHours": {"1": {"enabled": True, "start": "17:00", "end": "09:00"}}},
        {"unknownField": True},
    ],
)
def test_invalid_updates_rejected(payload):
    with pytest.raises(ValidationError):
        CalendarSettingsUpdate.model_validate(payload)


class TestVacationDays:
    def test_add_list_remove(self, service):
        service.add_vacation_day(date(2025, 12, 25), "Christmas")
        service.add_vacation_day(date(2025, 12, 24), None)

        assert [d.vacation_date for d in service.list_vacation_days()] == [
            date(2025, 12, 24),
            date(2025, 12, 25),
        ]
        assert service.get_rules().vacation_days[date(2025, 12, 25)] == "Christmas"

        service.remove_vacation_day(date(2025, 12, 24))
        assert [d.vacation_date for d in service.list_vacation_days()] == [date(2025, 12, 25)]

    def test_adding_twice_updates_reason(self, service):
        service.add_vacation_day(date(2025, 12, 25), "Christmas")
        service.add_vacation_day(date(2025, 12, 25), "Public holiday")

        days = service.list_vacation_days()
        assert len(days) == 1
        assert days[0].reason == "Public holiday"

    def test_remove_missing_day(self, service):
        with pytest.raises(NotFoundException) as exc_info:
            service.remove_vacation_day(date(2025, 1, 1))

        assert exc_info.value.code == "VACATION_DAY_NOT_FOUND"
