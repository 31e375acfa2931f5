# backend/drivebook/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_user_id, get_current_user_is_admin, require_admin
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_calendar_client,
    get_calendar_settings_service,
    get_cancellation_service,
    get_notification_service,
    get_quota_ledger_service,
)

__all__ = [
    # Auth
    "get_current_user_id",
    "get_current_user_is_admin",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_calendar_client",
    "get_calendar_settings_service",
    "get_cancellation_service",
    "get_notification_service",
    "get_quota_ledger_service",
]
