# backend/drivebook/services/quota_ledger_service.py
"""Quota ledger: append-only lesson-hour entries plus the balance projection."""

from __future__ import annotations

from decimal import Decimal
import logging
import math
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    BusinessRuleException,
    InsufficientQuotaException,
    NotFoundException,
    ValidationException,
)
from ..models.quota import QuotaTransaction, QuotaTransactionType
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

CREDIT_TYPES = frozenset(
    {
        QuotaTransactionType.PURCHASE.value,
        QuotaTransactionType.FREE_CREDIT.value,
        QuotaTransactionType.ADJUSTMENT.value,
    }
)


def hours_required(duration_minutes: int) -> Decimal:
    """Whole lesson hours charged for a duration, rounded up."""
    return Decimal(math.ceil(duration_minutes / 60))


class QuotaLedgerService(BaseService):
    """Manages lesson-hour balances for users."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.quota_repository = RepositoryFactory.create_quota_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)

    def _available(self, user_id: str) -> Decimal:
        quota = self.quota_repository.get_quota(user_id)
        return Decimal(str(quota.available_hours)) if quota else Decimal("0")

    @BaseService.measure_operation("get_balance")
    def get_balance(self, user_id: str) -> Dict[str, Decimal]:
        quota = self.quota_repository.get_quota(user_id)
        if quota is None:
            zero = Decimal("0")
            return {"available_hours": zero, "total_hours": zero, "used_hours": zero}
        return {
            "available_hours": Decimal(str(quota.available_hours)),
            "total_hours": Decimal(str(quota.total_hours)),
            "used_hours": Decimal(str(quota.used_hours)),
        }

    def get_available_hours(self, user_id: str) -> Decimal:
        return self._available(user_id)

    @BaseService.measure_operation("list_transactions")
    def list_transactions(self, user_id: str, limit: int = 200) -> List[QuotaTransaction]:
        return self.quota_repository.list_transactions(user_id, limit=limit)

    def ensure_sufficient(self, user_id: str, hours: Decimal) -> None:
        """Fast read-only pre-check; the conditional debit remains authoritative."""
        available = self._available(user_id)
        if available < hours:
            raise InsufficientQuotaException(available_hours=available, required_hours=hours)

    def debit_for_booking(
        self,
        *,
        user_id: str,
        booking_id: str,
        hours: Decimal,
        description: Optional[str] = None,
    ) -> QuotaTransaction:
        """
        Consume hours for a booking inside the caller's transaction.

        Raises:
            InsufficientQuotaException: The balance does not cover the hours
        """
        if not self.quota_repository.try_consume(user_id, hours):
            available = self._available(user_id)
            raise InsufficientQuotaException(available_hours=available, required_hours=hours)
        return self.quota_repository.append_transaction(
            user_id=user_id,
            transaction_type=QuotaTransactionType.BOOKING.value,
            hours_change=-hours,
            description=description,
            booking_id=booking_id,
            created_by=user_id,
        )

    def refund_for_booking(
        self,
        *,
        user_id: str,
        booking_id: str,
        hours: Decimal,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> QuotaTransaction:
        """Return a booking's hours inside the caller's transaction."""
        self.quota_repository.restore(user_id, hours)
        return self.quota_repository.append_transaction(
            user_id=user_id,
            transaction_type=QuotaTransactionType.REFUND.value,
            hours_change=hours,
            description=description,
            booking_id=booking_id,
            created_by=created_by,
        )

    @BaseService.measure_operation("credit_quota")
    def credit(
        self,
        *,
        user_id: str,
        hours: Decimal,
        transaction_type: str = QuotaTransactionType.PURCHASE.value,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
        use_transaction: bool = True,
    ) -> QuotaTransaction:
        """Grant (or, for adjustments, remove) hours outside of a booking."""
        if transaction_type not in CREDIT_TYPES:
            raise ValidationException(
                f"Unsupported credit type: {transaction_type}",
                code="INVALID_TRANSACTION_TYPE",
            )
        if hours == 0:
            raise ValidationException("Hours must be non-zero", code="INVALID_HOURS")
        if hours < 0 and transaction_type != QuotaTransactionType.ADJUSTMENT.value:
            raise ValidationException(
                "Only adjustments may remove hours", code="INVALID_HOURS"
            )
        if self.user_repository.get_by_id(user_id) is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")

        def _credit() -> QuotaTransaction:
            if not self.quota_repository.try_grant(user_id, hours):
                available = self._available(user_id)
                raise BusinessRuleException(
                    "Adjustment would make the balance negative",
                    code="NEGATIVE_BALANCE",
                    details={"available_hours": float(available), "hours_change": float(hours)},
                )
            return self.quota_repository.append_transaction(
                user_id=user_id,
                transaction_type=transaction_type,
                hours_change=hours,
                description=description,
                created_by=created_by,
            )

        if use_transaction:
            with self.transaction():
                entry = _credit()
        else:
            entry = _credit()

        logger.info(
            "quota_credited",
            extra={
                "user_id": user_id,
                "transaction_type": transaction_type,
                "hours_change": str(hours),
            },
        )
        return entry

    @BaseService.measure_operation("recompute_balance")
    def recompute_balance(self, user_id: str) -> Dict[str, object]:
        """Compare the projection with the ledger sum."""
        ledger_total = self.quota_repository.sum_hours(user_id)
        projected = self._available(user_id)
        consistent = ledger_total == projected
        if not consistent:
            logger.error(
                "quota_projection_mismatch",
                extra={
                    "user_id": user_id,
                    "ledger_total": str(ledger_total),
                    "projected": str(projected),
                },
            )
        return {
            "ledger_total": ledger_total,
            "available_hours": projected,
            "consistent": consistent,
        }
