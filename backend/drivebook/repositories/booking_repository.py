# backend/drivebook/repositories/booking_repository.py
"""
Booking Repository

Queries used by the availability path (confirmed bookings as busy intervals)
and by the two coordinators.
"""

from datetime import date, datetime
import logging
from typing import List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import Booking, BookingDateLock, BookingStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_confirmed_overlapping(self, range_start: datetime, range_end: datetime) -> List[Booking]:
        """Confirmed bookings whose [starts_at, ends_at) intersects the range."""
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.starts_at < range_end,
                    Booking.ends_at > range_start,
                )
                .order_by(Booking.starts_at.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading confirmed bookings: {str(e)}")
            raise RepositoryException(f"Failed to load confirmed bookings: {str(e)}")

    def count_confirmed_on_date(self, lesson_date: date) -> int:
        return self.count(lesson_date=lesson_date, status=BookingStatus.CONFIRMED.value)

    def get_by_idempotency_key(self, user_id: str, idempotency_key: str) -> Optional[Booking]:
        return self.find_one_by(user_id=user_id, idempotency_key=idempotency_key)

    def lock_date(self, lesson_date: date) -> None:
        """
        Serialize booking writes for one lesson date until the transaction ends.

        Must be the first statement of the transaction so later reads see
        every booking committed by the previous holder.
        """
        insert_fn = pg_insert if self.dialect_name == "postgresql" else sqlite_insert
        stmt = insert_fn(BookingDateLock).values(lesson_date=lesson_date, version=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=["lesson_date"],
            set_={"version": BookingDateLock.version + 1},
        )
        try:
            self.db.execute(stmt)
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking lesson date {lesson_date}: {str(e)}")
            raise RepositoryException(f"Failed to lock lesson date: {str(e)}")

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Load a booking, taking a row lock where the dialect supports it."""
        try:
            query = self.db.query(Booking).filter(Booking.id == booking_id).populate_existing()
            if self.dialect_name == "postgresql":
                query = query.with_for_update()
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to load booking: {str(e)}")

    def list_for_user(
        self, user_id: str, status: Optional[str] = None, limit: int = 100
    ) -> List[Booking]:
        try:
            query = self.db.query(Booking).filter(Booking.user_id == user_id)
            if status:
                query = query.filter(Booking.status == status)
            return query.order_by(Booking.starts_at.desc()).limit(limit).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")
