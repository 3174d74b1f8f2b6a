"""
Outbound email delivery.

Three modes, picked from settings in this order:
- email_function_url set: POST the rendered email to that HTTP endpoint
- email_enabled: send over SMTP
- otherwise: log the email and report it as not sent (development)
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

import httpx

from paperflow.config import Settings
from paperflow.kernel.errors import NotificationDispatchError
from paperflow.kernel.notifications.email_templates import RenderedEmail
from paperflow.logging_config import get_logger

logger = get_logger(__name__)


class EmailSender:
    """Delivers a RenderedEmail to one address."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    async def send(self, to_email: str, email: RenderedEmail) -> bool:
        """
        Returns True when the email was handed to a delivery channel.

        Raises:
            NotificationDispatchError: the delivery channel refused or failed
        """
        if self.settings.email_function_url:
            await self._send_via_function(to_email, email)
            return True
        if self.settings.email_enabled:
            await asyncio.to_thread(self._send_via_smtp, to_email, email)
            return True

        logger.info(
            "Email notification (dev mode)",
            extra={"to": to_email, "subject": email.subject},
        )
        return False

    async def _send_via_function(self, to_email: str, email: RenderedEmail) -> None:
        payload = {
            "to": to_email,
            "subject": email.subject,
            "htmlBody": email.html,
            "textBody": email.text,
        }
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.settings.email_function_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await client.post(self.settings.email_function_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationDispatchError(f"Email function call failed: {e}") from e

    def _send_via_smtp(self, to_email: str, email: RenderedEmail) -> None:
        msg = EmailMessage()
        msg["Subject"] = email.subject
        msg["From"] = self.settings.smtp_from_email
        msg["To"] = to_email
        msg.set_content(email.text)
        msg.add_alternative(email.html, subtype="html")

        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
                if self.settings.smtp_user:
                    smtp.starttls()
                    smtp.login(self.settings.smtp_user, self.settings.smtp_password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDispatchError(f"SMTP delivery failed: {e}") from e
