# backend/drivebook/services/notification_service.py
"""
Booking notifications.

notify() is fire-and-forget for the caller: rendering or delivery failures
are logged and counted, never raised.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..core.config import settings
from ..monitoring.prometheus_metrics import prometheus_metrics
from .email import EmailSender, get_email_sender
from .template_service import TemplateService

logger = logging.getLogger(__name__)

BOOKING_CONFIRMED = "booking_confirmed"
BOOKING_CANCELLED = "booking_cancelled"

# kind -> (customer template, admin template, customer subject, admin subject)
_KINDS: Dict[str, Tuple[str, str, str, str]] = {
    BOOKING_CONFIRMED: (
        "email/booking_confirmed.html",
        "email/admin_booking_confirmed.html",
        "Your driving lesson is confirmed",
        "New booking: {lesson_date} {start_time}",
    ),
    BOOKING_CANCELLED: (
        "email/booking_cancelled.html",
        "email/admin_booking_cancelled.html",
        "Your driving lesson has been cancelled",
        "Booking cancelled: {lesson_date} {start_time}",
    ),
}


class NotificationService:
    """Render and send booking emails to the customer and the admin."""

    def __init__(
        self,
        email_sender: Optional[EmailSender] = None,
        template_service: Optional[TemplateService] = None,
        admin_email: Optional[str] = None,
    ):
        self._email_sender = email_sender
        self.template_service = template_service or TemplateService()
        self.admin_email = admin_email if admin_email is not None else settings.admin_notification_email

    @property
    def email_sender(self) -> EmailSender:
        if self._email_sender is None:
            self._email_sender = get_email_sender()
        return self._email_sender

    def _recipients(self, kind: str, payload: Dict[str, Any]) -> List[Tuple[str, str, str]]:
        customer_template, admin_template, customer_subject, admin_subject = _KINDS[kind]
        recipients = []
        if payload.get("customer_email"):
            recipients.append((payload["customer_email"], customer_template, customer_subject))
        if self.admin_email:
            recipients.append((self.admin_email, admin_template, admin_subject.format(**payload)))
        return recipients

    def notify(self, kind: str, payload: Dict[str, Any]) -> int:
        """
        Send the emails for a booking event.

        Returns the number of emails delivered.
        """
        if kind not in _KINDS:
            logger.error("notification_unknown_kind", extra={"kind": kind})
            prometheus_metrics.record_notification(kind, "unknown_kind")
            return 0

        try:
            recipients = self._recipients(kind, payload)
        except KeyError as e:
            logger.error("notification_payload_incomplete", extra={"kind": kind, "missing": str(e)})
            prometheus_metrics.record_notification(kind, "failed")
            return 0

        sent = 0
        for to_email, template_name, subject in recipients:
            try:
                html = self.template_service.render_template(template_name, payload)
                self.email_sender.send_email(to_email, subject, html)
            except Exception as e:
                logger.warning(
                    "notification_send_failed",
                    extra={
                        "kind": kind,
                        "to_email": to_email,
                        "booking_id": payload.get("booking_id"),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                prometheus_metrics.record_notification(kind, "failed")
                continue
            sent += 1
            prometheus_metrics.record_notification(kind, "sent")
        return sent
