# backend/drivebook/models/calendar_settings.py
"""
Calendar settings models.

The business has exactly one CalendarSettings row. Working hours are kept
one row per weekday (0 = Sunday) so that each day is an explicit, typed
record rather than an opaque JSON blob. Vacation days block whole dates.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class CalendarSettings(Base):
    """Singleton scheduling configuration read by the slot generator."""

    __tablename__ = "calendar_settings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    timezone = Column(String(64), nullable=False)
    slot_duration_minutes = Column(Integer, nullable=False, default=60)
    buffer_minutes = Column(Integer, nullable=False, default=30)
    max_bookings_per_day = Column(Integer, nullable=False, default=8)
    min_notice_minutes = Column(Integer, nullable=False, default=120)
    block_day_on_external_event = Column(Boolean, nullable=False, default=True)
    max_advance_booking_days = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    working_hours = relationship(
        "WorkingHours",
        back_populates="settings",
        cascade="all, delete-orphan",
        order_by="WorkingHours.weekday",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("slot_duration_minutes > 0", name="ck_calendar_settings_slot_positive"),
        CheckConstraint("buffer_minutes >= 0", name="ck_calendar_settings_buffer_non_negative"),
        CheckConstraint("min_notice_minutes >= 0", name="ck_calendar_settings_notice_non_negative"),
        CheckConstraint(
            "max_advance_booking_days > 0", name="ck_calendar_settings_advance_window_positive"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<CalendarSettings tz={self.timezone} slot={self.slot_duration_minutes} "
            f"buffer={self.buffer_minutes}>"
        )


class WorkingHours(Base):
    """Local wall-clock working window for one weekday."""

    __tablename__ = "calendar_working_hours"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    settings_id = Column(
        String(26), ForeignKey("calendar_settings.id", ondelete="CASCADE"), nullable=False
    )
    weekday = Column(Integer, nullable=False)  # 0 = Sunday
    enabled = Column(Boolean, nullable=False, default=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    settings = relationship("CalendarSettings", back_populates="working_hours")

    __table_args__ = (
        UniqueConstraint("settings_id", "weekday", name="uq_working_hours_settings_weekday"),
        CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_working_hours_weekday"),
        CheckConstraint("start_time < end_time", name="ck_working_hours_start_before_end"),
    )


class VacationDay(Base):
    """A local date on which no lessons can be booked."""

    __tablename__ = "vacation_days"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    vacation_date = Column(Date, nullable=False, unique=True, index=True)
    reason = Column(String(200), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
