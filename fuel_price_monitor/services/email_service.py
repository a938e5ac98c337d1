"""
Outbound email delivery for price digests.
"""

import re
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from fuel_price_monitor.utils.errors import NotificationError
from fuel_price_monitor.utils.logging import get_business_logger
from config import NotificationConfig


class EmailSender(ABC):
    """Fire-and-forget email transport."""

    @abstractmethod
    def send(self, to: str, subject: str, html_body: str) -> bool:
        """Deliver one HTML email; True if it was accepted."""


class SMTPEmailSender(EmailSender):
    """Sends HTML emails through an SMTP server using STARTTLS."""

    def __init__(self, config: NotificationConfig):
        """
        Args:
            config: Notification configuration
        """
        self.config = config
        self.logger = get_business_logger('email_service')

    def send(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send one email. Failures are logged, never raised.

        Returns:
            True if the SMTP server accepted the message
        """
        try:
            self._validate_email_config()
        except NotificationError as e:
            self.logger.error("Email not sent to %s: %s", to, e.message)
            return False

        msg = self._build_message(to, subject, html_body)

        try:
            with smtplib.SMTP(self.config.email_smtp_host, self.config.email_smtp_port) as server:
                server.starttls()
                server.login(self.config.email_username, self.config.email_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            self.logger.error("Failed to send email to %s: %s", to, e)
            return False

        self.logger.info("Email sent to %s: %s", to, subject)
        return True

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['From'] = self.config.email_sender or self.config.email_username
        msg['To'] = to
        msg['Subject'] = subject

        msg.attach(MIMEText(_html_to_text(html_body), 'plain', 'utf-8'))
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))
        return msg

    def _validate_email_config(self) -> None:
        missing: List[str] = []
        if not self.config.email_username:
            missing.append("email_username")
        if not self.config.email_password:
            missing.append("email_password")
        if not self.config.email_smtp_host:
            missing.append("email_smtp_host")
        if not self.config.email_smtp_port:
            missing.append("email_smtp_port")

        if missing:
            raise NotificationError(
                "SMTP configuration is incomplete",
                {"missing": missing}
            )


class RecordingEmailSender(EmailSender):
    """Keeps sent emails in memory instead of delivering them (dry runs)."""

    def __init__(self):
        self.sent: List[dict] = []

    def send(self, to: str, subject: str, html_body: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "html_body": html_body})
        return True


def _html_to_text(html_body: str) -> str:
    text = re.sub(r"<br\s*/?>|</tr>|</h[23]>", "\n", html_body)
    text = re.sub(r"</t[dh]>", "\t", text)
    text = re.sub(r"<[^>]+>", "", text)
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)
