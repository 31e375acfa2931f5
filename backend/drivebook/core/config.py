# backend/drivebook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional, Set

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import pytz

from .constants import BRAND_NAME, DEFAULT_BUSINESS_TIMEZONE


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")

    database_url: str = Field(
        default="sqlite:///./drivebook.db",
        description="SQLAlchemy database URL",
    )

    # Redis-backed booking locks; empty disables locking (store constraints still apply)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    lock_namespace: str = Field(default="drivebook", description="Prefix for Redis lock keys")
    booking_lock_ttl_seconds: int = Field(default=30, ge=1, le=600)

    business_timezone_default: str = Field(
        default=DEFAULT_BUSINESS_TIMEZONE,
        description="Timezone used when calendar settings are first created",
    )

    # Google Calendar
    google_calendar_enabled: bool = Field(default=False)
    google_service_account_json: Optional[str] = Field(
        default=None, description="Service account credentials as a JSON string"
    )
    google_calendar_id: str = Field(default="primary")
    google_calendar_timeout_seconds: float = Field(default=5.0, gt=0)
    calendar_fail_closed: bool = Field(
        default=True,
        description="Treat an unreachable calendar as busy when computing availability",
    )

    # Email
    email_provider: Literal["console", "resend"] = Field(
        default="console",
        alias="EMAIL_PROVIDER",
        description="Email provider name",
    )
    resend_api_key: Optional[str] = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (optional)",
    )
    from_email: str = f"{BRAND_NAME} <bookings@drivebook.local>"
    admin_notification_email: Optional[str] = Field(
        default=None, description="Recipient for admin booking notifications"
    )

    admin_user_ids_csv: str = Field(default="", alias="ADMIN_USER_IDS")
    next_slot_horizon_days: int = Field(default=30, ge=1, le=365)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("business_timezone_default")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @property
    def admin_user_ids(self) -> Set[str]:
        return {part.strip() for part in self.admin_user_ids_csv.split(",") if part.strip()}


settings = Settings()
