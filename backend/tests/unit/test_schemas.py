# backend/tests/unit/test_schemas.py
from datetime import date, time
from decimal import Decimal

from pydantic import ValidationError
import pytest

from drivebook.schemas.booking import BookingCancel, BookingCreate
from drivebook.schemas.quota import QuotaBalanceResponse


class TestBookingCreate:
    def test_camel_case_payload(self):
        data = BookingCreate.model_validate(
            {"date": "2025-11-20", "time": "23:00", "durationMinutes": 60, "lessonType": " Highway "}
        )

        assert data.lesson_date == date(2025, 11, 20)
        assert data.start_time == time(23, 0)
        assert data.lesson_type == "Highway"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"date": "2025-11-20T13:00:00Z"},
            {"date": "20/11/2025"},
            {"time": "10am"},
            {"durationMinutes": 0},
            {"lessonType": "   "},
        ],
    )
    def test_rejects(self, overrides):
        payload = {"date": "2025-11-20", "time": "10:00", "durationMinutes": 60, "lessonType": "Standard"}
        payload.update(overrides)

        with pytest.raises(ValidationError):
            BookingCreate.model_validate(payload)


def test_cancel_reason_is_trimmed_before_length_check():
    with pytest.raises(ValidationError):
        BookingCancel.model_validate({"cancellationReason": "    short    "})

    assert BookingCancel.model_validate(
        {"cancellationReason": "  Car in for service  "}
    ).cancellation_reason == "Car in for service"


def test_hours_serialize_as_numbers():
    balance = QuotaBalanceResponse(
        available_hours=Decimal("4.00"), total_hours=Decimal("5"), used_hours=Decimal("1")
    )

    assert balance.model_dump(by_alias=True) == {
        "availableHours": 4.0,
        "totalHours": 5.0,
        "usedHours": 1.0,
    }
