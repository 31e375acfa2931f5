# backend/tests/conftest.py
"""
Pytest configuration for the booking engine.

Every test gets its own in-memory SQLite database. Services commit for real,
so fixtures never wrap the session in an outer transaction.
"""

import os

# Set BEFORE any drivebook imports so Settings picks them up
os.environ["REDIS_URL"] = ""
os.environ["EMAIL_PROVIDER"] = "console"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GOOGLE_CALENDAR_ENABLED"] = "false"
os.environ["ADMIN_USER_IDS"] = ""
os.environ.pop("RESEND_API_KEY", None)

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from drivebook.api.dependencies.database import get_db
from drivebook.api.dependencies.services import get_calendar_client, get_notification_service
from drivebook.core.exceptions import ServiceException
from drivebook.database import Base
from drivebook.integrations.google_calendar import CalendarProviderError
from drivebook.main import app
import drivebook.models  # noqa: F401
from drivebook.models.user import User
from drivebook.repositories.user_repository import UserRepository
from drivebook.schemas.booking import BookingCreate
from drivebook.services.notification_service import NotificationService
from drivebook.services.quota_ledger_service import QuotaLedgerService

# Thursday 2025-11-20 in Australia/Brisbane (UTC+10, no DST)
LESSON_DATE = "2025-11-20"
NOW = datetime(2025, 11, 19, 0, 0, tzinfo=timezone.utc)
ADMIN_EMAIL = "admin@drivebook.test"


class FakeCalendarClient:
    """In-memory stand-in for GoogleCalendarClient."""

    def __init__(self, events: Optional[List[Dict[str, Any]]] = None):
        self.events = list(events or [])
        self.inserted: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.fail_list = False
        self.fail_insert = False
        self.fail_delete = False

    def list_events(self, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        if self.fail_list:
            raise CalendarProviderError("Calendar list failed: HTTP 503")
        return list(self.events)

    def insert_event(self, body: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail_insert:
            raise CalendarProviderError("Calendar insert failed: HTTP 503")
        self.inserted.append(body)
        return {"id": f"evt-{len(self.inserted)}", **body}

    def delete_event(self, event_id: str) -> bool:
        if self.fail_delete:
            raise CalendarProviderError("Calendar delete failed: HTTP 503")
        self.deleted.append(event_id)
        return True


class FakeEmailSender:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Dict[str, str]] = []

    def send_email(
        self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None
    ) -> Dict[str, Any]:
        if self.fail:
            raise ServiceException("Email sending failed: provider down")
        self.sent.append({"to": to_email, "subject": subject, "html": html_content})
        return {"id": f"email-{len(self.sent)}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    SessionLocal = sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False, future=True
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def calendar_client() -> FakeCalendarClient:
    return FakeCalendarClient()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def notification_service(email_sender) -> NotificationService:
    return NotificationService(email_sender=email_sender, admin_email=ADMIN_EMAIL)


@pytest.fixture
def create_user(db):
    """Factory for committed users."""

    counter = {"n": 0}

    def _create(email: Optional[str] = None, full_name: str = "Test Learner", is_admin: bool = False) -> User:
        counter["n"] += 1
        user = UserRepository(db).create(
            email=email or f"learner{counter['n']}@example.com",
            full_name=full_name,
            is_admin=is_admin,
        )
        db.commit()
        return user

    return _create


@pytest.fixture
def grant_hours(db):
    """Credit purchased hours to a user."""

    def _grant(user_id: str, hours: Any) -> None:
        QuotaLedgerService(db).credit(
            user_id=user_id,
            hours=Decimal(str(hours)),
            description="Lesson pack",
        )

    return _grant


@pytest.fixture
def learner(create_user, grant_hours) -> User:
    user = create_user(email="learner@example.com", full_name="Lee Learner")
    grant_hours(user.id, 5)
    return user


@pytest.fixture
def admin(create_user) -> User:
    return create_user(email="instructor@example.com", full_name="Ivy Instructor", is_admin=True)


@pytest.fixture
def client(db, calendar_client, notification_service):
    """Create a test client bound to the test database and fakes."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_calendar_client] = lambda: calendar_client
    app.dependency_overrides[get_notification_service] = lambda: notification_service

    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> Dict[str, str]:
        return {"X-User-Id": user.id}

    return _headers


@pytest.fixture
def lesson_date() -> date:
    return date.fromisoformat(LESSON_DATE)


@pytest.fixture
def booking_request():
    """Build a BookingCreate the way the API receives it."""

    def _build(start: str = "10:00", duration: int = 60, on: str = LESSON_DATE, **extra: Any) -> BookingCreate:
        payload = {"date": on, "time": start, "durationMinutes": duration, "lessonType": "Standard"}
        payload.update(extra)
        return BookingCreate.model_validate(payload)

    return _build
