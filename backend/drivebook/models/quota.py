# backend/drivebook/models/quota.py
"""
Quota ledger models.

QuotaTransaction is the append-only source of truth for lesson hours.
UserQuota is the materialized projection that the booking path reads and
conditionally decrements; its available_hours must always equal the sum of
the user's transactions.
"""

from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class QuotaTransactionType(str, Enum):
    PURCHASE = "purchase"
    BOOKING = "booking"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    FREE_CREDIT = "free_credit"


class UserQuota(Base):
    __tablename__ = "user_quotas"

    user_id = Column(String(26), ForeignKey("users.id"), primary_key=True)
    total_hours = Column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    used_hours = Column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    available_hours = Column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("available_hours >= 0", name="ck_user_quotas_available_non_negative"),
    )


class QuotaTransaction(Base):
    __tablename__ = "quota_transactions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    transaction_type = Column(String(20), nullable=False)
    hours_change = Column(Numeric(8, 2), nullable=False)
    description = Column(Text, nullable=True)
    booking_id = Column(String(26), ForeignKey("bookings.id"), nullable=True, index=True)
    created_by = Column(String(26), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "transaction_type IN ('purchase', 'booking', 'refund', 'adjustment', 'free_credit')",
            name="ck_quota_transactions_type",
        ),
    )
