# backend/drivebook/services/cancellation_service.py
"""
Cancellation Service

Three phases so that no database transaction is held open across the
calendar network call:

- Phase 1: Read and validate the booking (short transaction)
- Phase 2: Delete the calendar event (no transaction, best effort)
- Phase 3: Refund entry, status transition, and audit note (one transaction)
"""

from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.constants import CANCELLATION_NOTE_HEADER, MIN_CANCELLATION_REASON_LENGTH
from ..core.exceptions import (
    AlreadyCancelledException,
    BusinessRuleException,
    NotFoundException,
    ValidationException,
)
from ..integrations.google_calendar import CalendarProviderError, GoogleCalendarClient
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_service import CALENDAR_CREATE_EVENT, CALENDAR_DELETE_EVENT, notification_payload
from .notification_service import BOOKING_CANCELLED, NotificationService
from .quota_ledger_service import QuotaLedgerService

logger = logging.getLogger(__name__)


def cancellation_note(reason: str) -> str:
    return f"{CANCELLATION_NOTE_HEADER}\nReason: {reason}"


class CancellationService(BaseService):
    """Reverses a confirmed booking and refunds its hours."""

    def __init__(
        self,
        db: Session,
        calendar_client: Optional[GoogleCalendarClient] = None,
        notification_service: Optional[NotificationService] = None,
        quota_service: Optional[QuotaLedgerService] = None,
    ):
        super().__init__(db)
        self.calendar_client = calendar_client
        self.notification_service = notification_service or NotificationService()
        self.quota_service = quota_service or QuotaLedgerService(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.outbox_repository = RepositoryFactory.create_event_outbox_repository(db)

    @staticmethod
    def _validate_reason(reason: Optional[str]) -> str:
        cleaned = (reason or "").strip()
        if len(cleaned) < MIN_CANCELLATION_REASON_LENGTH:
            raise ValidationException(
                f"Cancellation reason must be at least {MIN_CANCELLATION_REASON_LENGTH} characters",
                code="REASON_TOO_SHORT",
                details={"min_length": MIN_CANCELLATION_REASON_LENGTH},
            )
        return cleaned

    def _load_cancellable(self, booking_id: str) -> Any:
        booking = self.repository.get_for_update(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.is_cancelled:
            raise AlreadyCancelledException(booking_id)
        if not booking.is_confirmed:
            raise BusinessRuleException(
                f"Booking cannot be cancelled - current status: {booking.status}",
                code="NOT_CANCELLABLE",
            )
        return booking

    def _delete_calendar_event(self, booking_id: str, event_id: Optional[str]) -> bool:
        """Returns True when the booking no longer has an event to remove."""
        if not event_id:
            return True
        if self.calendar_client is None:
            prometheus_metrics.record_external_sync("delete", "skipped")
            return False
        try:
            self.calendar_client.delete_event(event_id)
        except CalendarProviderError as e:
            prometheus_metrics.record_external_sync("delete", "failed")
            logger.warning(
                "calendar_event_delete_failed",
                extra={"booking_id": booking_id, "event_id": event_id, "error": str(e)},
            )
            return False
        prometheus_metrics.record_external_sync("delete", "success")
        return True

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, reason: str, cancelled_by_id: Optional[str] = None
    ) -> Dict[str, Decimal]:
        """
        Cancel a confirmed booking and refund its hours.

        Returns:
            {"hours_refunded": Decimal, "new_balance": Decimal}

        Raises:
            ValidationException: Reason shorter than the minimum
            NotFoundException: No such booking
            AlreadyCancelledException: Booking was already cancelled
        """
        reason = self._validate_reason(reason)

        # ========== PHASE 1: Read/validate (quick transaction) ==========
        with self.transaction():
            booking = self._load_cancellable(booking_id)
            event_id = booking.external_event_id

        # ========== PHASE 2: Calendar delete (NO transaction) ==========
        calendar_cleared = self._delete_calendar_event(booking_id, event_id)

        # ========== PHASE 3: Refund and transition (one transaction) ==========
        with self.transaction():
            # Re-fetch; a concurrent cancel may have won while the calendar call ran
            booking = self._load_cancellable(booking_id)
            hours = Decimal(str(booking.hours_consumed))
            self.quota_service.refund_for_booking(
                user_id=booking.user_id,
                booking_id=booking.id,
                hours=hours,
                description=f"Refund for cancelled booking on {booking.lesson_date.isoformat()}",
                created_by=cancelled_by_id,
            )
            booking.cancel(cancelled_by_id, reason, cancellation_note(reason))
            if booking.external_event_id and booking.external_event_id != event_id:
                # Event was linked while the calendar call ran
                event_id = booking.external_event_id
                calendar_cleared = False
            # Pending create is moot once the lesson is cancelled
            self.outbox_repository.supersede_pending(
                booking.id, CALENDAR_CREATE_EVENT, reason="booking cancelled"
            )
            booking.needs_calendar_sync = not calendar_cleared
            if not calendar_cleared:
                self.outbox_repository.enqueue(
                    event_type=CALENDAR_DELETE_EVENT,
                    aggregate_id=booking.id,
                    payload={"booking_id": booking.id, "external_event_id": event_id},
                )
            self.db.flush()

        new_balance = self.quota_service.get_available_hours(booking.user_id)
        self.log_operation(
            "booking_cancelled",
            booking_id=booking.id,
            cancelled_by_id=cancelled_by_id,
            hours_refunded=str(hours),
        )

        user = self.user_repository.get_by_id(booking.user_id)
        payload = notification_payload(booking, user)
        payload.update({"reason": reason, "new_balance": float(new_balance)})
        self.notification_service.notify(BOOKING_CANCELLED, payload)

        return {"hours_refunded": hours, "new_balance": new_balance}
