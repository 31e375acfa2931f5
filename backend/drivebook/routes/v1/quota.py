# backend/drivebook/routes/v1/quota.py
"""
Quota routes - API v1

Endpoints:
    GET / - Caller's lesson-hour balance
    GET /transactions - Caller's ledger entries, newest first
    POST /{user_id}/credit - Grant or adjust hours (admin)
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Body, Depends, Query, status

from ...api.dependencies import get_current_user_id, get_quota_ledger_service, require_admin
from ...core.exceptions import DomainException
from ...schemas.quota import (
    QuotaBalanceResponse,
    QuotaCreditRequest,
    QuotaCreditResponse,
    QuotaTransactionResponse,
)
from ...services.quota_ledger_service import QuotaLedgerService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["quota-v1"])


@router.get("", response_model=QuotaBalanceResponse)
async def get_quota(
    user_id: str = Depends(get_current_user_id),
    quota_service: QuotaLedgerService = Depends(get_quota_ledger_service),
) -> QuotaBalanceResponse:
    balance = await asyncio.to_thread(quota_service.get_balance, user_id)
    return QuotaBalanceResponse(**balance)


@router.get("/transactions", response_model=List[QuotaTransactionResponse])
async def list_quota_transactions(
    limit: int = Query(200, ge=1, le=1000),
    user_id: str = Depends(get_current_user_id),
    quota_service: QuotaLedgerService = Depends(get_quota_ledger_service),
) -> List[QuotaTransactionResponse]:
    entries = await asyncio.to_thread(quota_service.list_transactions, user_id, limit)
    return [QuotaTransactionResponse.model_validate(entry) for entry in entries]


@router.post(
    "/{user_id}/credit",
    response_model=QuotaCreditResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"description": "Adjustment would make the balance negative"}},
)
async def credit_quota(
    user_id: str,
    credit_data: QuotaCreditRequest = Body(...),
    admin_id: str = Depends(require_admin),
    quota_service: QuotaLedgerService = Depends(get_quota_ledger_service),
) -> QuotaCreditResponse:
    try:
        entry = await asyncio.to_thread(
            lambda: quota_service.credit(
                user_id=user_id,
                hours=credit_data.hours,
                transaction_type=credit_data.transaction_type,
                description=credit_data.description,
                created_by=admin_id,
            )
        )
        balance = await asyncio.to_thread(quota_service.get_balance, user_id)
    except DomainException as e:
        handle_domain_exception(e)
    return QuotaCreditResponse(
        transaction=QuotaTransactionResponse.model_validate(entry),
        balance=QuotaBalanceResponse(**balance),
    )
