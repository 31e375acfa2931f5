# backend/drivebook/repositories/__init__.py
"""
Repository Pattern Implementation

This package provides the repository layer for data access,
separating business logic from database queries.

Usage:
    from drivebook.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_booking_repository(db)
    bookings = repository.get_confirmed_overlapping(start_utc, end_utc)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .calendar_settings_repository import CalendarSettingsRepository
from .event_outbox_repository import EventOutboxRepository
from .factory import RepositoryFactory
from .quota_repository import QuotaRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "CalendarSettingsRepository",
    "EventOutboxRepository",
    "QuotaRepository",
    "RepositoryFactory",
    "UserRepository",
]
