"""
"Your turn" notifications.

The queue core only decides *when* to notify; these notifiers compose the
message and deliver it.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from ..config import get_settings
from ..models.ticket import Ticket

logger = logging.getLogger(__name__)

ALERT_SUBJECT = "Queue Alert! Your Turn"


def compose_alert_message(ticket: Ticket, business_name: str) -> str:
    """Plain-text body of the alert email."""
    return (
        f"Hello {ticket.form_details.full_name},\n\n"
        f"It's your turn to be served at {business_name}.\n"
        f"Your queue number is {ticket.ticket_number}"
        + (f" ({ticket.queue_point_name})" if ticket.queue_point_name else "")
        + ".\n\nPlease proceed to the service point.\n"
    )


class LoggingNotifier:
    """Records alerts in the application log instead of delivering them."""

    async def send(self, ticket: Ticket, business_name: str) -> None:
        logger.info(
            "Alert notification",
            extra={
                "ticket_id": ticket.id,
                "ticket_number": ticket.ticket_number,
                "email": ticket.form_details.email,
                "business": business_name,
            },
        )


class SmtpNotifier:
    """Sends the alert by email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send(self, ticket: Ticket, business_name: str) -> None:
        message = EmailMessage()
        message["Subject"] = ALERT_SUBJECT
        message["From"] = self.sender
        message["To"] = ticket.form_details.email
        message.set_content(compose_alert_message(ticket, business_name))

        # smtplib blocks; keep it off the event loop
        await asyncio.to_thread(self._deliver, message)


def build_notifier():
    """Notifier selected by the NOTIFIER setting."""
    settings = get_settings()
    if settings.NOTIFIER == "smtp":
        return SmtpNotifier(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.SMTP_SENDER,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            timeout=settings.DEPENDENCY_TIMEOUT_SECONDS,
        )
    return LoggingNotifier()
