# backend/tests/unit/test_notification_service.py
from unittest.mock import Mock, patch

import pytest

from drivebook.core.exceptions import ServiceException
from drivebook.services.email import ConsoleEmailService, EmailService, get_email_sender
from drivebook.services.notification_service import (
    BOOKING_CANCELLED,
    BOOKING_CONFIRMED,
    NotificationService,
)
from drivebook.services.template_service import TemplateService


@pytest.fixture
def payload():
    return {
        "booking_id": "01BOOKING00000000000000000",
        "customer_email": "learner@example.com",
        "customer_name": "Lee Learner",
        "lesson_type": "Highway",
        "lesson_date": "2025-11-20",
        "start_time": "10:00",
        "end_time": "11:00",
        "timezone": "Australia/Brisbane",
        "hours": 1.0,
        "notes": None,
        "needs_calendar_sync": False,
    }


class TestNotify:
    def test_confirmation_sent_to_customer_and_admin(self, notification_service, email_sender, payload):
        sent = notification_service.notify(BOOKING_CONFIRMED, payload)

        assert sent == 2
        by_recipient = {m["to"]: m for m in email_sender.sent}
        assert by_recipient["learner@example.com"]["subject"] == "Your driving lesson is confirmed"
        assert by_recipient["admin@drivebook.test"]["subject"] == "New booking: 2025-11-20 10:00"
        assert "Highway" in by_recipient["learner@example.com"]["html"]
        assert "1 hour" in by_recipient["learner@example.com"]["html"]

    def test_no_admin_configured(self, email_sender, payload):
        service = NotificationService(email_sender=email_sender, admin_email="")

        assert service.notify(BOOKING_CONFIRMED, payload) == 1

    def test_delivery_failure_is_swallowed(self, notification_service, email_sender, payload):
        email_sender.fail = True

        assert notification_service.notify(BOOKING_CONFIRMED, payload) == 0

    def test_missing_payload_field_is_swallowed(self, notification_service, payload):
        del payload["start_time"]

        assert notification_service.notify(BOOKING_CANCELLED, payload) == 0

    def test_unknown_kind(self, notification_service, payload):
        assert notification_service.notify("booking_teleported", payload) == 0


class TestTemplates:
    def test_format_hours_filter(self):
        env = TemplateService().env

        assert env.filters["format_hours"](1) == "1 hour"
        assert env.filters["format_hours"](2.5) == "2.5 hours"

    def test_user_content_is_escaped(self, payload):
        payload["customer_name"] = "<script>alert(1)</script>"

        html = TemplateService().render_template("email/booking_confirmed.html", payload)

        assert "<script>" not in html
        assert "DriveBook" in html


class TestEmailSenders:
    def test_console_sender_is_default(self):
        assert isinstance(get_email_sender(), ConsoleEmailService)

    def test_resend_requires_api_key(self):
        with pytest.raises(ServiceException):
            EmailService(api_key="")

    @patch("drivebook.services.email.resend")
    def test_resend_failure_raises_service_exception(self, mock_resend):
        mock_resend.Emails.send = Mock(side_effect=RuntimeError("401 unauthorized"))
        sender = EmailService(api_key="re_test")

        with pytest.raises(ServiceException, match="401 unauthorized"):
            sender.send_email("learner@example.com", "Hi", "<p>Hello</p>")

    @patch("drivebook.services.email.resend")
    def test_resend_sends_text_alternative(self, mock_resend):
        mock_resend.Emails.send = Mock(return_value={"id": "email-1"})
        sender = EmailService(api_key="re_test")

        sender.send_email("learner@example.com", "Hi", "<p>Hello <b>there</b></p>")

        sent = mock_resend.Emails.send.call_args[0][0]
        assert sent["text"] == "Hello there"
        assert sent["to"] == "learner@example.com"
