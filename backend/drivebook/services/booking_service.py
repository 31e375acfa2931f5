# backend/drivebook/services/booking_service.py
"""
Booking Service

Turns a slot selection into a confirmed booking:

1. Validate the request and replay idempotent retries
2. Serialize per user and per date with short Redis mutexes
3. One transaction: take the per-date row lock, recheck the slot against
   a fresh busy snapshot, the daily cap and quota, then insert the
   booking, debit the ledger, confirm
4. After commit, best-effort calendar event and notification

The per-date lock row is the authoritative guard against overlapping
lessons; the Redis mutexes fail open and only spare the database the
contention. The partial unique index on confirmed (lesson_date, start_time)
and the conditional quota debit back it up.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.booking_lock import booking_lock_sync, date_lock_key, user_lock_key
from ..core.exceptions import (
    ConflictException,
    DailyBookingLimitException,
    ForbiddenException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from ..domain.scheduling import CalendarRules
from ..integrations.google_calendar import (
    BOOKING_EVENT_PROPERTY,
    CalendarProviderError,
    GoogleCalendarClient,
)
from ..models.booking import Booking, BookingStatus
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate
from .availability_service import AvailabilityService
from .base import BaseService
from .calendar_settings_service import CalendarSettingsService
from .notification_service import BOOKING_CONFIRMED, NotificationService
from .quota_ledger_service import QuotaLedgerService, hours_required
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)

CALENDAR_CREATE_EVENT = "booking.calendar_create"
CALENDAR_DELETE_EVENT = "booking.calendar_delete"


class _DuplicateRequest(Exception):
    """The (user, idempotency key) pair was inserted by a concurrent request."""


def notification_payload(booking: Booking, user: Optional[User]) -> Dict[str, Any]:
    return {
        "booking_id": booking.id,
        "customer_email": user.email if user else None,
        "customer_name": user.full_name if user else None,
        "lesson_type": booking.lesson_type,
        "lesson_date": booking.lesson_date.isoformat(),
        "start_time": booking.start_time.strftime("%H:%M"),
        "end_time": booking.end_time.strftime("%H:%M"),
        "timezone": booking.timezone,
        "hours": float(booking.hours_consumed),
        "notes": booking.notes,
        "needs_calendar_sync": bool(booking.needs_calendar_sync),
    }


def calendar_event_body(booking: Booking, user: Optional[User]) -> Dict[str, Any]:
    start = TimezoneService.localize(booking.lesson_date, booking.start_time, booking.timezone)
    end = TimezoneService.localize(booking.lesson_date, booking.end_time, booking.timezone)
    customer = (user.full_name or user.email) if user else booking.user_id
    lines = [
        f"Customer: {customer}",
        f"Email: {user.email}" if user else None,
        f"Lesson type: {booking.lesson_type}",
        f"Notes: {booking.notes}" if booking.notes else None,
        f"Booking ID: {booking.id}",
    ]
    return {
        "summary": f"Driving Lesson - {customer}",
        "description": "\n".join(line for line in lines if line),
        "start": {"dateTime": start.isoformat(), "timeZone": booking.timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": booking.timezone},
        "extendedProperties": {"private": {BOOKING_EVENT_PROPERTY: booking.id}},
    }


class BookingService(BaseService):
    """Coordinates lesson booking across the store, the calendar, and email."""

    def __init__(
        self,
        db: Session,
        calendar_client: Optional[GoogleCalendarClient] = None,
        notification_service: Optional[NotificationService] = None,
        availability_service: Optional[AvailabilityService] = None,
        quota_service: Optional[QuotaLedgerService] = None,
    ):
        super().__init__(db)
        self.calendar_client = calendar_client
        self.notification_service = notification_service or NotificationService()
        self.settings_service = CalendarSettingsService(db)
        self.availability_service = availability_service or AvailabilityService(
            db, calendar_client, settings_service=self.settings_service
        )
        self.quota_service = quota_service or QuotaLedgerService(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.outbox_repository = RepositoryFactory.create_event_outbox_repository(db)

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        user_id: str,
        booking_data: BookingCreate,
        idempotency_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        """
        Book a lesson.

        Raises:
            ValidationException: Duration or time does not fit the slot grid
            SlotUnavailableException: Slot taken, blocked, or lost a race
            DailyBookingLimitException: Instructor's daily cap reached
            InsufficientQuotaException: Balance does not cover the lesson
            CalendarUnavailableException: Calendar unreachable while failing closed
        """
        user = self.user_repository.get_by_id(user_id)
        if user is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")

        if idempotency_key:
            existing = self.repository.get_by_idempotency_key(user_id, idempotency_key)
            if existing is not None:
                logger.info(
                    "booking_idempotent_replay",
                    extra={"booking_id": existing.id, "user_id": user_id},
                )
                return existing

        rules = self.settings_service.get_rules()
        self._validate_duration(rules, booking_data.duration_minutes)
        lesson_date = booking_data.lesson_date

        with booking_lock_sync(user_lock_key(user_id)) as user_locked:
            if not user_locked:
                raise ConflictException(
                    "Another booking request for this account is in progress",
                    code="BOOKING_IN_PROGRESS",
                )
            with booking_lock_sync(date_lock_key(lesson_date.isoformat())) as date_locked:
                if not date_locked:
                    raise SlotUnavailableException(
                        details={"date": lesson_date.isoformat(), "reason": "locked"}
                    )
                try:
                    booking = self._create_confirmed(
                        user_id, rules, booking_data, idempotency_key, now
                    )
                except _DuplicateRequest:
                    existing = self.repository.get_by_idempotency_key(user_id, idempotency_key or "")
                    if existing is None:
                        raise SlotUnavailableException()
                    return existing

        self.log_operation(
            "booking_confirmed",
            booking_id=booking.id,
            user_id=user_id,
            lesson_date=lesson_date.isoformat(),
        )
        self._create_calendar_event(booking, user)
        self.notification_service.notify(BOOKING_CONFIRMED, notification_payload(booking, user))
        return booking

    def _validate_duration(self, rules: CalendarRules, duration_minutes: int) -> None:
        if duration_minutes <= 0 or duration_minutes % rules.slot_duration_minutes != 0:
            raise ValidationException(
                f"Duration must be a positive multiple of {rules.slot_duration_minutes} minutes",
                code="INVALID_DURATION",
                details={
                    "duration_minutes": duration_minutes,
                    "slot_duration_minutes": rules.slot_duration_minutes,
                },
            )

    def _lesson_window(
        self, rules: CalendarRules, lesson_date: date, start_time: time, duration_minutes: int
    ) -> Dict[str, Any]:
        local_start = datetime.combine(lesson_date, start_time)
        local_end = local_start + timedelta(minutes=duration_minutes)
        if local_end.date() != lesson_date:
            raise ValidationException("Lesson must end on the same day", code="INVALID_DURATION")
        try:
            starts_at = TimezoneService.local_to_utc(lesson_date, start_time, rules.timezone)
            ends_at = TimezoneService.local_to_utc(lesson_date, local_end.time(), rules.timezone)
        except ValueError as e:
            raise ValidationException(str(e), code="INVALID_LOCAL_TIME")
        return {
            "start_time": start_time,
            "end_time": local_end.time(),
            "starts_at": starts_at,
            "ends_at": ends_at,
        }

    def _create_confirmed(
        self,
        user_id: str,
        rules: CalendarRules,
        booking_data: BookingCreate,
        idempotency_key: Optional[str],
        now: Optional[datetime],
    ) -> Booking:
        lesson_date = booking_data.lesson_date
        window = self._lesson_window(
            rules, lesson_date, booking_data.start_time, booking_data.duration_minutes
        )
        hours: Decimal = hours_required(booking_data.duration_minutes)

        with self.transaction():
            # Held until commit; the checks below see every earlier booking for the date
            self.repository.lock_date(lesson_date)
            if idempotency_key and self.repository.get_by_idempotency_key(user_id, idempotency_key):
                raise _DuplicateRequest()

            ok, reason = self.availability_service.check_slot(
                rules, lesson_date, booking_data.start_time, booking_data.duration_minutes, now
            )
            if not ok:
                raise SlotUnavailableException(
                    details={
                        "date": lesson_date.isoformat(),
                        "time": booking_data.start_time.strftime("%H:%M"),
                        "reason": reason.value,
                    }
                )

            if self.repository.count_confirmed_on_date(lesson_date) >= rules.max_bookings_per_day:
                raise DailyBookingLimitException(lesson_date.isoformat(), rules.max_bookings_per_day)

            self.quota_service.ensure_sufficient(user_id, hours)

            try:
                booking = self.repository.create(
                    user_id=user_id,
                    lesson_date=lesson_date,
                    timezone=rules.timezone,
                    duration_minutes=booking_data.duration_minutes,
                    lesson_type=booking_data.lesson_type,
                    notes=booking_data.notes,
                    hours_consumed=hours,
                    status=BookingStatus.PENDING.value,
                    idempotency_key=idempotency_key,
                    **window,
                )
            except IntegrityError as e:
                raise _DuplicateRequest() from e

            self.quota_service.debit_for_booking(
                user_id=user_id,
                booking_id=booking.id,
                hours=hours,
                description=(
                    f"{booking_data.lesson_type} lesson on {lesson_date.isoformat()} "
                    f"at {booking_data.start_time.strftime('%H:%M')}"
                ),
            )

            booking.confirm()
            try:
                self.db.flush()
            except IntegrityError as e:
                logger.info(
                    "booking_slot_conflict",
                    extra={"user_id": user_id, "lesson_date": lesson_date.isoformat()},
                )
                raise SlotUnavailableException(
                    details={
                        "date": lesson_date.isoformat(),
                        "time": booking_data.start_time.strftime("%H:%M"),
                        "reason": "double-booked",
                    }
                ) from e

        return booking

    def _create_calendar_event(self, booking: Booking, user: Optional[User]) -> None:
        """Mirror a confirmed booking into the calendar; failures defer to the outbox."""
        if self.calendar_client is None:
            prometheus_metrics.record_external_sync("create", "skipped")
            return
        try:
            event = self.calendar_client.insert_event(calendar_event_body(booking, user))
        except CalendarProviderError as e:
            prometheus_metrics.record_external_sync("create", "failed")
            logger.warning(
                "calendar_event_create_failed",
                extra={"booking_id": booking.id, "error": str(e)},
            )
            self.flag_for_calendar_sync(booking, CALENDAR_CREATE_EVENT)
            return

        prometheus_metrics.record_external_sync("create", "success")
        try:
            with self.transaction():
                booking.external_event_id = event.get("id")
        except Exception as e:
            logger.error(
                "calendar_event_link_failed",
                extra={"booking_id": booking.id, "event_id": event.get("id"), "error": str(e)},
            )

    def flag_for_calendar_sync(self, booking: Booking, event_type: str) -> None:
        try:
            with self.transaction():
                self.mark_needs_sync(booking, event_type)
        except Exception as e:
            logger.error(
                "calendar_sync_flag_failed",
                extra={"booking_id": booking.id, "event_type": event_type, "error": str(e)},
            )

    def mark_needs_sync(self, booking: Booking, event_type: str) -> None:
        """Flag the booking and enqueue the outbox row; caller owns the transaction."""
        booking.needs_calendar_sync = True
        self.outbox_repository.enqueue(
            event_type=event_type,
            aggregate_id=booking.id,
            payload={
                "booking_id": booking.id,
                "external_event_id": booking.external_event_id,
            },
        )

    @BaseService.measure_operation("list_bookings")
    def list_bookings(
        self, user_id: str, status: Optional[str] = None, limit: int = 100
    ) -> List[Booking]:
        if status is not None and status not in {s.value for s in BookingStatus}:
            raise ValidationException(f"Unknown booking status: {status}", code="INVALID_STATUS")
        return self.repository.list_for_user(user_id, status=status, limit=limit)

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str, requester_id: str, is_admin: bool = False) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.user_id != requester_id and not is_admin:
            raise ForbiddenException("You do not have access to this booking")
        return booking

    def list_pending_sync(self) -> list:
        return self.outbox_repository.list_pending()
