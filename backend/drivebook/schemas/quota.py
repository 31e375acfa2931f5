# backend/drivebook/schemas/quota.py
"""Quota ledger schemas."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field, field_validator

from .base import Hours, StandardizedModel, StrictRequestModel


class QuotaBalanceResponse(StandardizedModel):
    available_hours: Hours
    total_hours: Hours
    used_hours: Hours


class QuotaTransactionResponse(StandardizedModel):
    id: str
    transaction_type: str
    hours_change: Hours
    description: Optional[str] = None
    booking_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class QuotaCreditRequest(StrictRequestModel):
    """Admin grant. Only adjustments may be negative."""

    hours: Decimal = Field(..., max_digits=8, decimal_places=2)
    transaction_type: Literal["purchase", "free_credit", "adjustment"] = "purchase"
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("hours")
    @classmethod
    def validate_hours(cls, v: Decimal) -> Decimal:
        if v == 0:
            raise ValueError("hours must be non-zero")
        return v


class QuotaCreditResponse(StandardizedModel):
    transaction: QuotaTransactionResponse
    balance: QuotaBalanceResponse
