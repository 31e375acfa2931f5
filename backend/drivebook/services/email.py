# backend/drivebook/services/email.py
"""
Email senders.

EmailService delivers through the Resend API. ConsoleEmailService logs the
message instead and is used in development and tests. get_email_sender()
picks one based on EMAIL_PROVIDER.
"""

import logging
import re
from typing import Any, Dict, Optional, Union

import resend

from ..core.config import settings
from ..core.exceptions import ServiceException

logger = logging.getLogger(__name__)


def _html_to_text(html_content: str) -> str:
    """Convert HTML content to plain text for better deliverability"""
    text = re.sub(r"<[^>]+>", "", html_content)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


class EmailService:
    """Send email through Resend."""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        api_key = api_key or settings.resend_api_key
        if not api_key:
            raise ServiceException("Resend API key not configured")
        resend.api_key = api_key
        self.from_email = from_email or settings.from_email
        logger.info("EmailService initialized successfully")

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one email.

        Raises:
            ServiceException: If the provider rejects or cannot be reached
        """
        email_data = {
            "from": self.from_email,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content or _html_to_text(html_content),
        }
        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            error_msg = str(e) or "Unknown error"
            logger.error(
                "email_send_failed",
                extra={"to_email": to_email, "subject": subject, "error": error_msg},
            )
            raise ServiceException(f"Email sending failed: {error_msg}")
        logger.info("email_sent", extra={"to_email": to_email, "subject": subject})
        return response


class ConsoleEmailService:
    """Log emails instead of sending them."""

    def __init__(self, from_email: Optional[str] = None):
        self.from_email = from_email or settings.from_email

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info(
            "email_console_send",
            extra={
                "to_email": to_email,
                "subject": subject,
                "body": text_content or _html_to_text(html_content),
            },
        )
        return {"id": None, "provider": "console"}


EmailSender = Union[EmailService, ConsoleEmailService]


def get_email_sender() -> EmailSender:
    if settings.email_provider == "resend":
        return EmailService()
    return ConsoleEmailService()
