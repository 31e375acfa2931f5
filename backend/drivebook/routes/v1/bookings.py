# backend/drivebook/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService and CancellationService.

Endpoints:
    GET /pending-sync - Bookings waiting on calendar reconciliation (admin)
    GET / - List the caller's bookings
    POST / - Book a lesson
    GET /{booking_id} - Booking details
    POST /{booking_id}/cancel - Cancel a booking (admin)
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, status

from ...api.dependencies import (
    get_booking_service,
    get_cancellation_service,
    get_current_user_id,
    get_current_user_is_admin,
    require_admin,
)
from ...core.exceptions import DomainException
from ...schemas.booking import (
    BookingCancel,
    BookingCreate,
    BookingResponse,
    CancellationResponse,
    PendingSyncResponse,
)
from ...services.booking_service import BookingService
from ...services.cancellation_service import CancellationService
from .errors import handle_domain_exception

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/pending-sync", response_model=List[PendingSyncResponse])
async def list_pending_sync(
    _: str = Depends(require_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[PendingSyncResponse]:
    rows = await asyncio.to_thread(booking_service.list_pending_sync)
    return [PendingSyncResponse.model_validate(row) for row in rows]


@router.get("", response_model=List[BookingResponse])
async def list_bookings(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> List[BookingResponse]:
    try:
        bookings = await asyncio.to_thread(
            booking_service.list_bookings, user_id, status_filter, limit
        )
    except DomainException as e:
        handle_domain_exception(e)
    return [BookingResponse.model_validate(booking) for booking in bookings]


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid request or insufficient quota"},
        404: {"description": "User not found"},
        409: {"description": "Time slot not available"},
        422: {"description": "Business rule violation (e.g., daily limit)"},
        503: {"description": "Calendar provider unavailable"},
    },
)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=255),
    user_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Book a lesson.

    Retrying with the same Idempotency-Key returns the original booking
    without charging quota again.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.create_booking, user_id, booking_data, idempotency_key
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


# ============================================================================
# SECTION 2: Dynamic routes (with path parameters - placed last)
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    is_admin: bool = Depends(get_current_user_is_admin),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.get_booking, booking_id, user_id, is_admin
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=CancellationResponse,
    responses={
        404: {"description": "Booking not found"},
        409: {"description": "Booking already cancelled"},
    },
)
async def cancel_booking(
    booking_id: str,
    cancel_data: BookingCancel = Body(...),
    admin_id: str = Depends(require_admin),
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> CancellationResponse:
    """Cancel a confirmed booking and refund its hours."""
    try:
        result = await asyncio.to_thread(
            cancellation_service.cancel_booking,
            booking_id,
            cancel_data.cancellation_reason,
            admin_id,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CancellationResponse(
        booking_id=booking_id,
        hours_refunded=result["hours_refunded"],
        new_balance=result["new_balance"],
    )
