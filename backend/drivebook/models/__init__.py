"""
Database models for the booking engine.

The models are organized by functionality:
- Users (identity is external; this is the local profile)
- Calendar settings, working hours, and vacation days
- Bookings and their per-date write locks
- Quota ledger (transactions plus materialized balance)
- Event outbox for deferred external calendar sync
"""

from .booking import Booking, BookingDateLock, BookingStatus
from .calendar_settings import CalendarSettings, VacationDay, WorkingHours
from .event_outbox import EventOutbox, EventOutboxStatus
from .quota import QuotaTransaction, QuotaTransactionType, UserQuota
from .user import User

__all__ = [
    "Booking",
    "BookingDateLock",
    "BookingStatus",
    "CalendarSettings",
    "EventOutbox",
    "EventOutboxStatus",
    "QuotaTransaction",
    "QuotaTransactionType",
    "User",
    "UserQuota",
    "VacationDay",
    "WorkingHours",
]
