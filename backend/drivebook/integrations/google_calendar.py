# backend/drivebook/integrations/google_calendar.py
"""
Google Calendar client.

Thin wrapper over the Calendar v3 API using service-account credentials.
Every HTTP call is bounded by a socket timeout; failures surface as
CalendarProviderError so callers can tell "unreachable" from "no events".
"""

from __future__ import annotations

from datetime import datetime
import json
import logging
import threading
from typing import Any, Dict, List, Optional

from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
import httplib2

from ..core.config import Settings

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]
BOOKING_EVENT_PROPERTY = "drivebook_booking_id"


class CalendarProviderError(Exception):
    """Raised when the calendar provider cannot complete a request."""


class GoogleCalendarClient:
    """Synchronous Calendar v3 client bound to one calendar id."""

    def __init__(
        self,
        calendar_id: str,
        service_account_info: Optional[Dict[str, Any]] = None,
        timeout_seconds: float = 5.0,
        service: Any = None,
    ) -> None:
        self.calendar_id = calendar_id
        self.timeout_seconds = timeout_seconds
        self._service_account_info = service_account_info
        self._injected_service = service
        self._local = threading.local()

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["GoogleCalendarClient"]:
        """Return a client, or None when the integration is disabled or unconfigured."""
        if not settings.google_calendar_enabled:
            logger.info("Google Calendar integration disabled via GOOGLE_CALENDAR_ENABLED")
            return None
        if not settings.google_service_account_json:
            logger.warning("GOOGLE_SERVICE_ACCOUNT_JSON not set, calendar integration disabled")
            return None
        try:
            info = json.loads(settings.google_service_account_json)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in GOOGLE_SERVICE_ACCOUNT_JSON: %s", e)
            return None
        return cls(
            calendar_id=settings.google_calendar_id,
            service_account_info=info,
            timeout_seconds=settings.google_calendar_timeout_seconds,
        )

    def _get_service(self) -> Any:
        """
        Calendar service for the calling thread.

        httplib2.Http is not thread-safe and routes reach this client from
        asyncio.to_thread workers, so each thread builds its own transport.
        """
        if self._injected_service is not None:
            return self._injected_service
        service = getattr(self._local, "service", None)
        if service is not None:
            return service
        try:
            credentials = service_account.Credentials.from_service_account_info(
                self._service_account_info or {}, scopes=CALENDAR_SCOPES
            )
            http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=self.timeout_seconds))
            service = build("calendar", "v3", http=http, cache_discovery=False)
        except Exception as e:
            raise CalendarProviderError(f"Failed to initialize Google Calendar service: {e}") from e
        self._local.service = service
        logger.info(
            "Google Calendar service initialized",
            extra={"thread": threading.current_thread().name},
        )
        return service

    def list_events(self, time_min: datetime, time_max: datetime) -> List[Dict[str, Any]]:
        """List single (expanded) events intersecting [time_min, time_max)."""
        service = self._get_service()
        events: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        try:
            while True:
                response = (
                    service.events()
                    .list(
                        calendarId=self.calendar_id,
                        timeMin=time_min.isoformat(),
                        timeMax=time_max.isoformat(),
                        singleEvents=True,
                        orderBy="startTime",
                        pageToken=page_token,
                    )
                    .execute()
                )
                events.extend(response.get("items", []))
                page_token = response.get("nextPageToken")
                if not page_token:
                    return events
        except HttpError as e:
            raise CalendarProviderError(f"Calendar list failed: HTTP {e.resp.status}") from e
        except Exception as e:
            raise CalendarProviderError(f"Calendar list failed: {e}") from e

    def insert_event(self, body: Dict[str, Any]) -> Dict[str, Any]:
        service = self._get_service()
        try:
            return service.events().insert(calendarId=self.calendar_id, body=body).execute()
        except HttpError as e:
            raise CalendarProviderError(f"Calendar insert failed: HTTP {e.resp.status}") from e
        except Exception as e:
            raise CalendarProviderError(f"Calendar insert failed: {e}") from e

    def delete_event(self, event_id: str) -> bool:
        """
        Delete an event.

        Returns False when the provider reports the event is already gone.
        """
        service = self._get_service()
        try:
            service.events().delete(calendarId=self.calendar_id, eventId=event_id).execute()
            return True
        except HttpError as e:
            if e.resp.status in (404, 410):
                logger.warning("Calendar event %s not found (may already be deleted)", event_id)
                return False
            raise CalendarProviderError(f"Calendar delete failed: HTTP {e.resp.status}") from e
        except Exception as e:
            raise CalendarProviderError(f"Calendar delete failed: {e}") from e
