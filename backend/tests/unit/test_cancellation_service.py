# backend/tests/unit/test_cancellation_service.py
from decimal import Decimal

import pytest

from drivebook.core.exceptions import (
    AlreadyCancelledException,
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from drivebook.models.booking import BookingStatus
from drivebook.models.event_outbox import EventOutbox, EventOutboxStatus
from drivebook.services.availability_service import AvailabilityService
from drivebook.services.booking_service import (
    CALENDAR_CREATE_EVENT,
    CALENDAR_DELETE_EVENT,
    BookingService,
)
from drivebook.services.cancellation_service import CancellationService, cancellation_note
from drivebook.services.quota_ledger_service import QuotaLedgerService

REASON = "Instructor unwell today"


@pytest.fixture
def booking_service(db, calendar_client, notification_service) -> BookingService:
    return BookingService(db, calendar_client, notification_service)


@pytest.fixture
def service(db, calendar_client, notification_service) -> CancellationService:
    return CancellationService(db, calendar_client, notification_service)


@pytest.fixture
def booking(booking_service, learner, booking_request, now):
    return booking_service.create_booking(learner.id, booking_request(), now=now)


def test_cancellation_note_format():
    assert cancellation_note("Car in for service") == "CANCELLED BY ADMIN\nReason: Car in for service"


class TestCancelBooking:
    def test_round_trip_restores_balance(self, db, service, booking, learner, admin, calendar_client):
        result = service.cancel_booking(booking.id, REASON, cancelled_by_id=admin.id)

        assert result == {"hours_refunded": Decimal("1"), "new_balance": Decimal("5")}
        db.refresh(booking)
        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.cancelled_by_id == admin.id
        assert booking.cancellation_reason == REASON
        assert booking.cancelled_at is not None
        assert booking.notes.endswith(f"CANCELLED BY ADMIN\nReason: {REASON}")
        assert calendar_client.deleted == ["evt-1"]
        assert booking.needs_calendar_sync is False

        ledger = QuotaLedgerService(db)
        entries = ledger.quota_repository.list_for_booking(booking.id)
        assert len(entries) == 2
        assert sum(Decimal(str(e.hours_change)) for e in entries) == Decimal("0")
        assert ledger.recompute_balance(learner.id)["consistent"] is True

    def test_existing_notes_are_kept(self, db, booking_service, service, learner, booking_request, now):
        booking = booking_service.create_booking(
            learner.id, booking_request(notes="Manual car please"), now=now
        )

        service.cancel_booking(booking.id, REASON)

        db.refresh(booking)
        assert booking.notes == f"Manual car please\n\nCANCELLED BY ADMIN\nReason: {REASON}"

    def test_slot_is_released(self, db, service, booking, calendar_client, lesson_date, now):
        availability = AvailabilityService(db, calendar_client)
        before = {s.start_time: s for s in availability.get_slots(lesson_date, now=now)}
        assert before["10:00"].available is False

        service.cancel_booking(booking.id, REASON)

        after = {s.start_time: s for s in availability.get_slots(lesson_date, now=now)}
        assert after["10:00"].available is True

    def test_notifies_customer_and_admin(self, service, booking, email_sender):
        email_sender.sent.clear()

        service.cancel_booking(booking.id, REASON)

        subjects = sorted(message["subject"] for message in email_sender.sent)
        assert subjects == [
            "Booking cancelled: 2025-11-20 10:00",
            "Your driving lesson has been cancelled",
        ]
        customer = next(m for m in email_sender.sent if m["to"] == "learner@example.com")
        assert REASON in customer["html"]
        assert "5 hours" in customer["html"]

    def test_second_cancel_is_rejected(self, db, service, booking, learner):
        service.cancel_booking(booking.id, REASON)

        with pytest.raises(AlreadyCancelledException) as exc_info:
            service.cancel_booking(booking.id, REASON)

        assert exc_info.value.status_code == 409
        ledger = QuotaLedgerService(db)
        assert ledger.get_available_hours(learner.id) == Decimal("5")
        assert len(ledger.quota_repository.list_for_booking(booking.id)) == 2

    @pytest.mark.parametrize("reason", ["", "   ", "too short", "  short   "])
    def test_reason_minimum_length(self, db, service, booking, reason):
        with pytest.raises(ValidationException) as exc_info:
            service.cancel_booking(booking.id, reason)

        assert exc_info.value.code == "REASON_TOO_SHORT"
        db.refresh(booking)
        assert booking.status == BookingStatus.CONFIRMED.value

    def test_unknown_booking(self, service):
        with pytest.raises(NotFoundException):
            service.cancel_booking("01NOSUCHBOOKING00000000000", REASON)

    def test_pending_booking_is_not_cancellable(self, db, service, booking):
        booking.status = BookingStatus.PENDING.value
        db.commit()

        with pytest.raises(BusinessRuleException) as exc_info:
            service.cancel_booking(booking.id, REASON)

        assert exc_info.value.code == "NOT_CANCELLABLE"


class TestCalendarDeleteFailures:
    def test_delete_failure_still_cancels(self, db, service, booking, learner, calendar_client):
        calendar_client.fail_delete = True

        result = service.cancel_booking(booking.id, REASON)

        assert result["new_balance"] == Decimal("5")
        db.refresh(booking)
        assert booking.status == BookingStatus.CANCELLED.value
        assert booking.needs_calendar_sync is True
        pending = db.query(EventOutbox).filter(EventOutbox.event_type == CALENDAR_DELETE_EVENT).all()
        assert len(pending) == 1
        assert pending[0].aggregate_id == booking.id
        assert pending[0].payload["external_event_id"] == "evt-1"

    def test_no_calendar_client_queues_delete(self, db, booking, notification_service):
        service = CancellationService(db, None, notification_service)

        service.cancel_booking(booking.id, REASON)

        db.refresh(booking)
        assert booking.needs_calendar_sync is True

    def test_booking_without_event_needs_no_sync(
        self, db, booking_service, service, learner, booking_request, now, calendar_client
    ):
        calendar_client.fail_insert = True
        booking = booking_service.create_booking(learner.id, booking_request(start="14:00"), now=now)
        assert booking.external_event_id is None

        service.cancel_booking(booking.id, REASON)

        db.refresh(booking)
        assert booking.status == BookingStatus.CANCELLED.value
        assert calendar_client.deleted == []
        assert db.query(EventOutbox).filter(EventOutbox.event_type == CALENDAR_DELETE_EVENT).count() == 0

        outbox = db.query(EventOutbox).filter(EventOutbox.aggregate_id == booking.id).all()
        assert [(row.event_type, row.status) for row in outbox] == [
            (CALENDAR_CREATE_EVENT, EventOutboxStatus.SUPERSEDED.value)
        ]
        assert booking.needs_calendar_sync is False
