# backend/drivebook/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from decimal import Decimal
from typing import Any, Dict, Optional, Union

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class ServiceUnavailableException(DomainException):
    """Raised when an upstream dependency cannot be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# Specific business exceptions


class SlotUnavailableException(ConflictException):
    """Raised when the requested slot is no longer bookable."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The requested time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class AlreadyCancelledException(ConflictException):
    """Raised when cancelling a booking that is already cancelled."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking is already cancelled",
            code="ALREADY_CANCELLED",
            details={"booking_id": booking_id},
        )


class InsufficientQuotaException(ValidationException):
    """Raised when a user does not hold enough lesson hours."""

    def __init__(
        self,
        available_hours: Union[Decimal, int, float],
        required_hours: Union[Decimal, int, float],
    ):
        super().__init__(
            message="Insufficient quota hours",
            code="INSUFFICIENT_QUOTA",
            details={
                "available_hours": float(available_hours),
                "required_hours": float(required_hours),
            },
        )


class DailyBookingLimitException(BusinessRuleException):
    """Raised when the instructor's daily booking cap is reached."""

    def __init__(self, lesson_date: str, max_bookings: int):
        super().__init__(
            message="Maximum bookings per day exceeded",
            code="DAILY_LIMIT_REACHED",
            details={"date": lesson_date, "max_bookings_per_day": max_bookings},
        )


class CalendarUnavailableException(ServiceUnavailableException):
    """Raised when the external calendar cannot be read."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message=message or "Calendar provider is unavailable",
            code="CALENDAR_UNAVAILABLE",
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
