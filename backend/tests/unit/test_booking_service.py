# backend/tests/unit/test_booking_service.py
"""
Booking coordinator tests against a real SQLite session.

Lesson date is Thursday 2025-11-20 in Australia/Brisbane; "now" is the
morning before, so the default 120 minute notice never interferes.
"""

from decimal import Decimal

import pytest

from drivebook.core import booking_lock
from drivebook.core.config import settings
from drivebook.core.exceptions import (
    CalendarUnavailableException,
    ConflictException,
    DailyBookingLimitException,
    ForbiddenException,
    InsufficientQuotaException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from drivebook.domain.scheduling import SlotReason
from drivebook.integrations.google_calendar import BOOKING_EVENT_PROPERTY
from drivebook.models.booking import Booking, BookingStatus
from drivebook.models.event_outbox import EventOutbox
from drivebook.models.quota import QuotaTransaction
from drivebook.schemas.calendar_settings import CalendarSettingsUpdate
from drivebook.services.booking_service import CALENDAR_CREATE_EVENT, BookingService
from drivebook.services.calendar_settings_service import CalendarSettingsService
from drivebook.services.quota_ledger_service import QuotaLedgerService


@pytest.fixture
def service(db, calendar_client, notification_service) -> BookingService:
    return BookingService(db, calendar_client, notification_service)


def _balance(db, user_id) -> Decimal:
    return QuotaLedgerService(db).get_available_hours(user_id)


def _confirmed_count(db) -> int:
    return db.query(Booking).filter(Booking.status == BookingStatus.CONFIRMED.value).count()


class TestCreateBooking:
    def test_confirms_debits_and_mirrors(
        self, db, service, learner, booking_request, now, calendar_client, email_sender
    ):
        booking = service.create_booking(learner.id, booking_request(notes=" Pick up at home "), now=now)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.confirmed_at is not None
        assert booking.start_time.strftime("%H:%M") == "10:00"
        assert booking.end_time.strftime("%H:%M") == "11:00"
        assert booking.timezone == "Australia/Brisbane"
        assert booking.notes == "Pick up at home"
        assert Decimal(str(booking.hours_consumed)) == Decimal("1")
        assert _balance(db, learner.id) == Decimal("4")

        entries = db.query(QuotaTransaction).filter(QuotaTransaction.booking_id == booking.id).all()
        assert len(entries) == 1
        assert Decimal(str(entries[0].hours_change)) == Decimal("-1")

        assert booking.external_event_id == "evt-1"
        assert booking.needs_calendar_sync is False
        body = calendar_client.inserted[0]
        assert body["start"] == {"dateTime": "2025-11-20T10:00:00+10:00", "timeZone": "Australia/Brisbane"}
        assert body["extendedProperties"]["private"][BOOKING_EVENT_PROPERTY] == booking.id
        assert "Lee Learner" in body["summary"]

        recipients = sorted(message["to"] for message in email_sender.sent)
        assert recipients == ["admin@drivebook.test", "learner@example.com"]

    def test_multi_slot_lesson_charges_rounded_hours(self, db, service, learner, booking_request, now):
        booking = service.create_booking(learner.id, booking_request(duration=120), now=now)

        assert booking.end_time.strftime("%H:%M") == "12:00"
        assert Decimal(str(booking.hours_consumed)) == Decimal("2")
        assert _balance(db, learner.id) == Decimal("3")

    def test_idempotent_replay_charges_once(self, db, service, learner, booking_request, now, calendar_client):
        first = service.create_booking(learner.id, booking_request(), idempotency_key="retry-1", now=now)
        second = service.create_booking(learner.id, booking_request(), idempotency_key="retry-1", now=now)

        assert second.id == first.id
        assert _balance(db, learner.id) == Decimal("4")
        assert len(calendar_client.inserted) == 1

    def test_unknown_user(self, service, booking_request, now):
        with pytest.raises(NotFoundException) as exc_info:
            service.create_booking("01NOSUCHUSER00000000000000", booking_request(), now=now)

        assert exc_info.value.code == "USER_NOT_FOUND"

    def test_insufficient_quota_leaves_no_rows(self, db, service, create_user, booking_request, now, calendar_client):
        broke = create_user()

        with pytest.raises(InsufficientQuotaException):
            service.create_booking(broke.id, booking_request(), now=now)

        assert db.query(Booking).count() == 0
        assert db.query(QuotaTransaction).filter(QuotaTransaction.user_id == broke.id).count() == 0
        assert calendar_client.inserted == []

    def test_duration_must_fit_slot_grid(self, service, learner, booking_request, now):
        with pytest.raises(ValidationException) as exc_info:
            service.create_booking(learner.id, booking_request(duration=90), now=now)

        assert exc_info.value.code == "INVALID_DURATION"

    def test_misaligned_start_rejected(self, service, learner, booking_request, now):
        with pytest.raises(SlotUnavailableException) as exc_info:
            service.create_booking(learner.id, booking_request(start="10:30"), now=now)

        assert exc_info.value.details["reason"] == SlotReason.OUTSIDE_WORKING_HOURS.value

    def test_vacation_day_rejected(self, service, learner, booking_request, lesson_date, now, db):
        CalendarSettingsService(db).add_vacation_day(lesson_date, "Holiday")

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.create_booking(learner.id, booking_request(), now=now)

        assert exc_info.value.details["reason"] == "vacation-day"

    def test_date_past_booking_window_rejected(self, db, service, learner, booking_request, now):
        CalendarSettingsService(db).update_settings(CalendarSettingsUpdate(max_advance_booking_days=1))

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.create_booking(learner.id, booking_request(on="2025-11-21"), now=now)

        assert exc_info.value.details["reason"] == SlotReason.BEYOND_BOOKING_WINDOW.value
        assert _balance(db, learner.id) == Decimal("5")

        booking = service.create_booking(learner.id, booking_request(), now=now)
        assert booking.lesson_date.isoformat() == "2025-11-20"

    def test_slot_taken_by_recheck(self, db, service, learner, create_user, grant_hours, booking_request, now):
        rival = create_user()
        grant_hours(rival.id, 2)
        service.create_booking(learner.id, booking_request(), now=now)

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.create_booking(rival.id, booking_request(), now=now)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["reason"] == SlotReason.OVERLAPS_BUSY_INTERVAL.value
        assert _balance(db, rival.id) == Decimal("2")

    def test_store_constraint_catches_lost_race(
        self, db, service, learner, create_user, grant_hours, booking_request, now, monkeypatch
    ):
        """Two requests that both passed the recheck: the unique index decides."""
        rival = create_user()
        grant_hours(rival.id, 2)
        service.create_booking(learner.id, booking_request(), now=now)
        monkeypatch.setattr(
            service.availability_service,
            "check_slot",
            lambda *args, **kwargs: (True, SlotReason.NONE),
        )

        with pytest.raises(SlotUnavailableException) as exc_info:
            service.create_booking(rival.id, booking_request(), now=now)

        assert exc_info.value.details["reason"] == "double-booked"
        assert _confirmed_count(db) == 1
        assert db.query(Booking).filter(Booking.user_id == rival.id).count() == 0
        assert _balance(db, rival.id) == Decimal("2")
        assert QuotaLedgerService(db).recompute_balance(rival.id)["consistent"] is True

    def test_daily_limit(self, db, service, learner, create_user, grant_hours, booking_request, now):
        CalendarSettingsService(db).update_settings(CalendarSettingsUpdate(max_bookings_per_day=1))
        service.create_booking(learner.id, booking_request(), now=now)
        other = create_user()
        grant_hours(other.id, 1)

        with pytest.raises(DailyBookingLimitException) as exc_info:
            service.create_booking(other.id, booking_request(start="14:00"), now=now)

        assert exc_info.value.code == "DAILY_LIMIT_REACHED"
        assert exc_info.value.status_code == 422

    def test_external_event_blocks_day(self, service, learner, booking_request, now, calendar_client):
        calendar_client.events = [
            {
                "id": "dentist",
                "start": {"dateTime": "2025-11-20T15:00:00+10:00"},
                "end": {"dateTime": "2025-11-20T15:30:00+10:00"},
            }
        ]

        with pytest.raises(SlotUnavailableException):
            service.create_booking(learner.id, booking_request(), now=now)

    def test_user_lock_contention(self, service, learner, booking_request, now, monkeypatch):
        class BusyRedis:
            def set(self, *args, **kwargs):
                return False

            def delete(self, *args):
                return 0

        monkeypatch.setattr(booking_lock, "_get_sync_redis", lambda: BusyRedis())

        with pytest.raises(ConflictException) as exc_info:
            service.create_booking(learner.id, booking_request(), now=now)

        assert exc_info.value.code == "BOOKING_IN_PROGRESS"


class TestCalendarFailures:
    def test_insert_failure_defers_to_outbox(self, db, service, learner, booking_request, now, calendar_client, email_sender):
        calendar_client.fail_insert = True

        booking = service.create_booking(learner.id, booking_request(), now=now)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.needs_calendar_sync is True
        assert booking.external_event_id is None
        outbox = db.query(EventOutbox).all()
        assert [(row.event_type, row.aggregate_id) for row in outbox] == [
            (CALENDAR_CREATE_EVENT, booking.id)
        ]
        assert [row.id for row in service.list_pending_sync()] == [outbox[0].id]
        assert len(email_sender.sent) == 2

    def test_unreachable_calendar_fails_closed(self, db, service, learner, booking_request, now, calendar_client):
        calendar_client.fail_list = True

        with pytest.raises(CalendarUnavailableException):
            service.create_booking(learner.id, booking_request(), now=now)

        assert db.query(Booking).count() == 0
        assert _balance(db, learner.id) == Decimal("5")

    def test_unreachable_calendar_fail_open(self, service, learner, booking_request, now, calendar_client, monkeypatch):
        monkeypatch.setattr(settings, "calendar_fail_closed", False)
        calendar_client.fail_list = True

        booking = service.create_booking(learner.id, booking_request(), now=now)

        assert booking.status == BookingStatus.CONFIRMED.value

    def test_email_failure_does_not_fail_booking(self, service, learner, booking_request, now, email_sender):
        email_sender.fail = True

        booking = service.create_booking(learner.id, booking_request(), now=now)

        assert booking.status == BookingStatus.CONFIRMED.value
        assert email_sender.sent == []


class TestQueries:
    def test_list_and_get(self, service, learner, create_user, booking_request, now):
        booking = service.create_booking(learner.id, booking_request(), now=now)
        stranger = create_user()

        assert [b.id for b in service.list_bookings(learner.id)] == [booking.id]
        assert service.list_bookings(learner.id, status="cancelled") == []
        assert service.get_booking(booking.id, learner.id).id == booking.id
        assert service.get_booking(booking.id, stranger.id, is_admin=True).id == booking.id
        with pytest.raises(ForbiddenException):
            service.get_booking(booking.id, stranger.id)
        with pytest.raises(NotFoundException):
            service.get_booking("01NOSUCHBOOKING00000000000", learner.id)

    def test_list_rejects_unknown_status(self, service, learner):
        with pytest.raises(ValidationException):
            service.list_bookings(learner.id, status="archived")
