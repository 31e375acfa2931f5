"""
Base schemas with standardized field types for consistent API responses.
"""

from decimal import Decimal
import re
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from pydantic_core import core_schema

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def ensure_date_only(value: object, field_name: str) -> object:
    """Reject datetime-shaped strings so a date can never carry a UTC offset."""
    if isinstance(value, str):
        candidate = value.strip()
        if not DATE_ONLY_REGEX.fullmatch(candidate):
            raise ValueError(f"{field_name} must be a YYYY-MM-DD date-only string")
        return candidate
    return value


class StandardizedModel(BaseModel):
    """Response base: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        use_enum_values=True,
        populate_by_name=True,
        alias_generator=to_camel,
        from_attributes=True,
    )


class StrictRequestModel(BaseModel):
    """Request base: forbid unknown fields, accept camelCase or snake_case."""

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Hours(Decimal):
    """Lesson-hour quantity that always serializes as float."""

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def validate_hours(value: Any) -> Decimal:
            if isinstance(value, (int, float)):
                return Decimal(str(value))
            if isinstance(value, str):
                return Decimal(value)
            if isinstance(value, Decimal):
                return value
            raise ValueError(f"Cannot convert {type(value)} to Hours")

        return core_schema.no_info_after_validator_function(
            validate_hours,
            core_schema.union_schema(
                [
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                    core_schema.is_instance_schema(Decimal),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float,
                info_arg=False,
                return_schema=core_schema.float_schema(),
            ),
        )
