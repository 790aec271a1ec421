"""Tests for the MailAPI implementations.

SMTP is never contacted: smtplib.SMTP is patched, and time.sleep is patched
so retry backoff does not slow the suite.
"""

from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from wekan_rules.actions.mail import LoggingMailer, SentMail, SmtpMailer, mailer_from_config
from wekan_rules.models.config import RulesConfig


@pytest.fixture
def smtp():
    with patch("smtplib.SMTP") as smtp_cls:
        server = MagicMock()
        smtp_cls.return_value.__enter__.return_value = server
        yield smtp_cls, server


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("time.sleep"):
        yield


class TestSmtpMailer:
    def test_sends_message(self, smtp):
        smtp_cls, server = smtp
        mailer = SmtpMailer("mail.example.com", 587, username="bot", password="pw", from_addr="bot@example.com")

        mailer.send_mail("a@example.com; b@example.com", "Card moved", "c1 moved to Done")

        smtp_cls.assert_called_once_with("mail.example.com", 587, timeout=30.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "pw")
        msg = server.send_message.call_args.args[0]
        assert msg["To"] == "a@example.com, b@example.com"
        assert msg["From"] == "bot@example.com"
        assert msg["Subject"] == "Card moved"
        assert "c1 moved to Done" in msg.get_content()

    def test_no_login_without_credentials(self, smtp):
        _, server = smtp
        SmtpMailer("mail.example.com", starttls=False).send_mail("a@example.com", "s", "")
        server.starttls.assert_not_called()
        server.login.assert_not_called()
        assert server.send_message.call_args.args[0]["From"] == "wekan-rules@mail.example.com"

    def test_no_recipients(self, smtp):
        smtp_cls, _ = smtp
        with pytest.raises(ValueError):
            SmtpMailer("mail.example.com").send_mail(" , ;", "s", "b")
        smtp_cls.assert_not_called()

    def test_retry_on_disconnect_then_success(self, smtp):
        _, server = smtp
        server.send_message.side_effect = [smtplib.SMTPServerDisconnected("gone"), None]

        SmtpMailer("mail.example.com", max_retries=3).send_mail("a@example.com", "s", "b")

        assert server.send_message.call_count == 2

    def test_retry_on_4xx(self, smtp):
        _, server = smtp
        server.send_message.side_effect = [
            smtplib.SMTPDataError(451, b"try later"),
            smtplib.SMTPDataError(451, b"try later"),
            None,
        ]
        SmtpMailer("mail.example.com", max_retries=3).send_mail("a@example.com", "s", "b")
        assert server.send_message.call_count == 3

    def test_gives_up_after_max_retries(self, smtp):
        _, server = smtp
        server.send_message.side_effect = smtplib.SMTPServerDisconnected("gone")

        with pytest.raises(smtplib.SMTPServerDisconnected):
            SmtpMailer("mail.example.com", max_retries=2).send_mail("a@example.com", "s", "b")
        assert server.send_message.call_count == 2

    def test_no_retry_on_5xx(self, smtp):
        _, server = smtp
        server.send_message.side_effect = smtplib.SMTPDataError(550, b"rejected")

        with pytest.raises(smtplib.SMTPDataError):
            SmtpMailer("mail.example.com", max_retries=3).send_mail("a@example.com", "s", "b")
        assert server.send_message.call_count == 1

    def test_no_retry_on_auth_error(self, smtp):
        _, server = smtp
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        with pytest.raises(smtplib.SMTPAuthenticationError):
            SmtpMailer("mail.example.com", username="u", password="p").send_mail("a@example.com", "s", "b")
        assert server.login.call_count == 1
        server.send_message.assert_not_called()

    def test_from_config(self):
        config = RulesConfig(
            smtp_host="relay.local",
            smtp_port=2525,
            smtp_user="u",
            smtp_password="p",
            smtp_from="rules@local",
            smtp_starttls=False,
            smtp_max_retries=5,
        )
        mailer = SmtpMailer.from_config(config)
        assert (mailer.host, mailer.port, mailer.from_addr) == ("relay.local", 2525, "rules@local")
        assert mailer.starttls is False
        assert mailer.max_retries == 5

    def test_from_config_requires_host(self):
        with pytest.raises(ValueError):
            SmtpMailer.from_config(RulesConfig())


class TestLoggingMailer:
    def test_records_and_logs(self, caplog):
        mailer = LoggingMailer()
        with caplog.at_level("INFO", logger="wekan_rules.actions.mail"):
            mailer.send_mail("ops@example.com", "Hello", "Body")
        assert mailer.sent == [SentMail("ops@example.com", "Hello", "Body")]
        assert "ops@example.com" in caplog.text


def test_mailer_from_config():
    assert isinstance(mailer_from_config(RulesConfig()), LoggingMailer)
    assert isinstance(mailer_from_config(RulesConfig(smtp_host="relay.local")), SmtpMailer)
