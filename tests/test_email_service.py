"""
Tests for SMTP delivery with the SMTP client patched out.
"""

import smtplib
from unittest.mock import patch

import pytest

from config import NotificationConfig
from fuel_price_monitor.services.email_service import (
    EmailSender, RecordingEmailSender, SMTPEmailSender, _html_to_text
)


BODY = """
    <h2>Summary</h2>
    U91@VIC has ↗️ by $1.20 at $172.90
    <br>
    <h3>Latest Best Price</h3>
    <table><tr><th>Suburb</th><th>State</th><th>Price</th></tr>
    <tr><td>Epping</td><td>VIC</td><td>$172.90</td></tr></table>
"""


@pytest.fixture
def notification_config():
    return NotificationConfig(
        email_smtp_host="smtp.example.com",
        email_smtp_port=587,
        email_username="bot@example.com",
        email_password="app-password",
    )


class TestSMTPEmailSender:

    @patch("fuel_price_monitor.services.email_service.smtplib.SMTP")
    def test_send_uses_starttls_and_login(self, mock_smtp, notification_config):
        server = mock_smtp.return_value.__enter__.return_value

        sent = SMTPEmailSender(notification_config).send("driver@example.com", "Prices moved", BODY)

        assert sent is True
        mock_smtp.assert_called_once_with("smtp.example.com", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "app-password")

        message = server.send_message.call_args[0][0]
        assert message["To"] == "driver@example.com"
        assert message["From"] == "bot@example.com"
        assert message["Subject"] == "Prices moved"
        content_types = [part.get_content_type() for part in message.get_payload()]
        assert content_types == ["text/plain", "text/html"]

    @patch("fuel_price_monitor.services.email_service.smtplib.SMTP")
    def test_explicit_sender_address(self, mock_smtp, notification_config):
        notification_config.email_sender = "Fuel Alerts <alerts@example.com>"
        server = mock_smtp.return_value.__enter__.return_value

        SMTPEmailSender(notification_config).send("driver@example.com", "Prices moved", BODY)

        assert server.send_message.call_args[0][0]["From"] == "Fuel Alerts <alerts@example.com>"

    @patch("fuel_price_monitor.services.email_service.smtplib.SMTP")
    def test_smtp_failure_is_logged_not_raised(self, mock_smtp, notification_config):
        server = mock_smtp.return_value.__enter__.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        assert SMTPEmailSender(notification_config).send("driver@example.com", "Prices moved", BODY) is False

    @patch("fuel_price_monitor.services.email_service.smtplib.SMTP")
    def test_connection_failure_is_logged_not_raised(self, mock_smtp, notification_config):
        mock_smtp.side_effect = ConnectionRefusedError("refused")

        assert SMTPEmailSender(notification_config).send("driver@example.com", "Prices moved", BODY) is False

    @patch("fuel_price_monitor.services.email_service.smtplib.SMTP")
    def test_incomplete_config_skips_smtp(self, mock_smtp):
        sender = SMTPEmailSender(NotificationConfig(email_username="bot@example.com"))

        assert sender.send("driver@example.com", "Prices moved", BODY) is False
        mock_smtp.assert_not_called()


def test_recording_sender_keeps_messages():
    sender = RecordingEmailSender()

    assert sender.send("driver@example.com", "Prices moved", BODY) is True
    assert sender.sent == [{"to": "driver@example.com", "subject": "Prices moved", "html_body": BODY}]


def test_plain_text_alternative():
    text = _html_to_text(BODY)

    assert "<" not in text
    assert "Summary" in text
    assert "U91@VIC has ↗️ by $1.20 at $172.90" in text
    assert "Epping\tVIC\t$172.90" in text


def test_sender_interface_requires_send():
    class Incomplete(EmailSender):
        pass

    with pytest.raises(TypeError):
        Incomplete()
