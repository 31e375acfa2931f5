# backend/drivebook/routes/v1/errors.py
"""Shared helpers for mapping domain errors onto HTTP responses."""

from datetime import date
from typing import NoReturn

from fastapi import HTTPException, status

from ...core.exceptions import DomainException, ValidationException
from ...schemas.base import ensure_date_only


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def parse_date_param(value: str, field_name: str = "date") -> date:
    """Parse a YYYY-MM-DD query or path value into a calendar date."""
    try:
        return date.fromisoformat(str(ensure_date_only(value, field_name)))
    except ValueError as e:
        handle_domain_exception(
            ValidationException(str(e), code="INVALID_DATE", details={"field": field_name})
        )
