# backend/drivebook/repositories/factory.py
"""
Repository Factory

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .calendar_settings_repository import CalendarSettingsRepository
    from .event_outbox_repository import EventOutboxRepository
    from .quota_repository import QuotaRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        """Create repository for booking operations."""
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_quota_repository(db: Session) -> "QuotaRepository":
        """Create repository for the quota ledger."""
        from .quota_repository import QuotaRepository

        return QuotaRepository(db)

    @staticmethod
    def create_calendar_settings_repository(db: Session) -> "CalendarSettingsRepository":
        """Create repository for calendar settings and vacation days."""
        from .calendar_settings_repository import CalendarSettingsRepository

        return CalendarSettingsRepository(db)

    @staticmethod
    def create_event_outbox_repository(db: Session) -> "EventOutboxRepository":
        from .event_outbox_repository import EventOutboxRepository

        return EventOutboxRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)
