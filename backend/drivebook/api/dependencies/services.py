# backend/drivebook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...integrations.google_calendar import GoogleCalendarClient
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.calendar_settings_service import CalendarSettingsService
from ...services.cancellation_service import CancellationService
from ...services.notification_service import NotificationService
from ...services.quota_ledger_service import QuotaLedgerService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_calendar_client_singleton() -> Optional[GoogleCalendarClient]:
    """Build the calendar client once per process; None when disabled."""
    return GoogleCalendarClient.from_settings(settings)


def get_calendar_client() -> Optional[GoogleCalendarClient]:
    return get_calendar_client_singleton()


@lru_cache(maxsize=1)
def get_notification_service_singleton() -> NotificationService:
    return NotificationService()


def get_notification_service() -> NotificationService:
    return get_notification_service_singleton()


def get_calendar_settings_service(db: Session = Depends(get_db)) -> CalendarSettingsService:
    return CalendarSettingsService(db)


def get_quota_ledger_service(db: Session = Depends(get_db)) -> QuotaLedgerService:
    return QuotaLedgerService(db)


def get_availability_service(
    db: Session = Depends(get_db),
    calendar_client: Optional[GoogleCalendarClient] = Depends(get_calendar_client),
) -> AvailabilityService:
    return AvailabilityService(db, calendar_client)


def get_booking_service(
    db: Session = Depends(get_db),
    calendar_client: Optional[GoogleCalendarClient] = Depends(get_calendar_client),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session
        calendar_client: Google Calendar client, None when the integration is off
        notification_service: Email notifications

    Returns:
        BookingService instance
    """
    return BookingService(db, calendar_client, notification_service)


def get_cancellation_service(
    db: Session = Depends(get_db),
    calendar_client: Optional[GoogleCalendarClient] = Depends(get_calendar_client),
    notification_service: NotificationService = Depends(get_notification_service),
) -> CancellationService:
    return CancellationService(db, calendar_client, notification_service)
