# backend/tests/routes/conftest.py
from datetime import date, timedelta

import pytest


@pytest.fixture
def booking_day() -> str:
    """A Tuesday at least two weeks out, so real-clock notice rules never apply."""
    day = date.today() + timedelta(days=14)
    while day.weekday() != 1:
        day += timedelta(days=1)
    return day.isoformat()


@pytest.fixture
def book(client, auth_headers, booking_day):
    def _book(user, start: str = "10:00", duration: int = 60, idempotency_key=None):
        headers = auth_headers(user)
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return client.post(
            "/api/v1/bookings",
            json={
                "date": booking_day,
                "time": start,
                "durationMinutes": duration,
                "lessonType": "Standard",
            },
            headers=headers,
        )

    return _book
