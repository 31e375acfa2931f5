# backend/drivebook/repositories/quota_repository.py
"""
Quota Repository

Data access for the append-only quota_transactions log and the user_quotas
projection. The balance mutations are single conditional UPDATE statements
so that two concurrent debits can never both pass against the same balance.
"""

from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.quota import QuotaTransaction, UserQuota
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class QuotaRepository(BaseRepository[QuotaTransaction]):
    def __init__(self, db: Session):
        super().__init__(db, QuotaTransaction)

    def get_quota(self, user_id: str) -> Optional[UserQuota]:
        return self.db.get(UserQuota, user_id, populate_existing=True)

    def get_or_create_quota(self, user_id: str) -> UserQuota:
        quota = self.get_quota(user_id)
        if quota is None:
            quota = UserQuota(
                user_id=user_id,
                total_hours=Decimal("0"),
                used_hours=Decimal("0"),
                available_hours=Decimal("0"),
            )
            self.db.add(quota)
            self.db.flush()
        return quota

    def try_consume(self, user_id: str, hours: Decimal) -> bool:
        """
        Decrement available hours only if the balance covers them.

        Returns False (and changes nothing) when the balance is insufficient
        or the user has no quota row.
        """
        try:
            result = self.db.execute(
                update(UserQuota)
                .where(UserQuota.user_id == user_id, UserQuota.available_hours >= hours)
                .values(
                    available_hours=UserQuota.available_hours - hours,
                    used_hours=UserQuota.used_hours + hours,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            return bool(result.rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error consuming quota for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to consume quota: {str(e)}")

    def restore(self, user_id: str, hours: Decimal) -> None:
        """Return previously consumed hours to the balance."""
        self.get_or_create_quota(user_id)
        try:
            self.db.execute(
                update(UserQuota)
                .where(UserQuota.user_id == user_id)
                .values(
                    available_hours=UserQuota.available_hours + hours,
                    used_hours=UserQuota.used_hours - hours,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error restoring quota for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to restore quota: {str(e)}")

    def try_grant(self, user_id: str, hours: Decimal) -> bool:
        """
        Add (or, for negative adjustments, remove) purchased hours.

        Negative grants only apply when the balance stays non-negative.
        """
        self.get_or_create_quota(user_id)
        stmt = (
            update(UserQuota)
            .where(UserQuota.user_id == user_id)
            .values(
                available_hours=UserQuota.available_hours + hours,
                total_hours=UserQuota.total_hours + hours,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if hours < 0:
            stmt = stmt.where(UserQuota.available_hours >= -hours)
        try:
            return bool(self.db.execute(stmt).rowcount)
        except SQLAlchemyError as e:
            self.logger.error(f"Error granting quota for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to grant quota: {str(e)}")

    def append_transaction(
        self,
        *,
        user_id: str,
        transaction_type: str,
        hours_change: Decimal,
        description: Optional[str] = None,
        booking_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> QuotaTransaction:
        return self.create(
            user_id=user_id,
            transaction_type=transaction_type,
            hours_change=hours_change,
            description=description,
            booking_id=booking_id,
            created_by=created_by,
        )

    def list_transactions(self, user_id: str, limit: int = 200) -> List[QuotaTransaction]:
        try:
            return (
                self.db.query(QuotaTransaction)
                .filter(QuotaTransaction.user_id == user_id)
                .order_by(QuotaTransaction.created_at.desc(), QuotaTransaction.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing quota transactions for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list quota transactions: {str(e)}")

    def list_for_booking(self, booking_id: str) -> List[QuotaTransaction]:
        return self.find_by(booking_id=booking_id)

    def sum_hours(self, user_id: str) -> Decimal:
        total = (
            self.db.query(func.coalesce(func.sum(QuotaTransaction.hours_change), 0))
            .filter(QuotaTransaction.user_id == user_id)
            .scalar()
        )
        return Decimal(str(total))
