# backend/drivebook/models/booking.py
"""
Booking model.

A booking stores its local date and wall-clock start/end times (in the
business timezone) together with the absolute UTC instants derived from
them. Confirmed bookings are what the busy-interval source reports back to
the slot generator, so the status column is the single switch that makes a
lesson occupy or release its slot.

Bookings are never deleted; cancellation is a status transition.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(Base):
    """Lesson booking owned by a user and mutated only by the coordinators."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)

    # Local wall-clock values in the business timezone
    lesson_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String(64), nullable=False)

    # Absolute instants used for interval arithmetic
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ends_at = Column(DateTime(timezone=True), nullable=False)

    duration_minutes = Column(Integer, nullable=False)
    lesson_type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    hours_consumed = Column(Numeric(6, 2), nullable=False)
    notes = Column(Text, nullable=True)

    # External calendar linkage; null until the event exists
    external_event_id = Column(String(255), nullable=True)
    needs_calendar_sync = Column(Boolean, nullable=False, default=False)

    idempotency_key = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(String(26), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    user = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_bookings_duration_positive"),
        CheckConstraint("start_time < end_time", name="ck_bookings_time_order"),
        UniqueConstraint("user_id", "idempotency_key", name="uq_bookings_user_idempotency_key"),
        # One confirmed lesson per start slot
        Index(
            "uq_bookings_confirmed_slot",
            "lesson_date",
            "start_time",
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    def confirm(self) -> None:
        self.status = BookingStatus.CONFIRMED.value
        self.confirmed_at = datetime.now(timezone.utc)

    def cancel(self, cancelled_by_id: Optional[str], reason: str, audit_note: str) -> None:
        """Transition to cancelled and append the audit note to notes."""
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancelled_by_id = cancelled_by_id
        self.cancellation_reason = reason
        self.notes = f"{self.notes}\n\n{audit_note}" if self.notes else audit_note

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id} {self.lesson_date} {self.start_time}-{self.end_time} "
            f"{self.status}>"
        )


class BookingDateLock(Base):
    """
    One row per lesson date, bumped as the first write of every booking transaction.

    The upsert takes the row lock on PostgreSQL and the database write lock on
    SQLite, so bookings for the same date recheck and insert one at a time.
    """

    __tablename__ = "booking_date_locks"

    lesson_date = Column(Date, primary_key=True)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<BookingDateLock {self.lesson_date} v{self.version}>"
