"""MailAPI implementations.

SmtpMailer sends through an SMTP relay configured on RulesConfig.
LoggingMailer only records what would have been sent; it is the default
when no SMTP host is configured.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING

import tenacity

if TYPE_CHECKING:
    from wekan_rules.models.config import RulesConfig

logger = logging.getLogger(__name__)


def _recipients(to: str) -> list[str]:
    return [addr.strip() for addr in to.replace(";", ",").split(",") if addr.strip()]


def _is_retryable(exc: BaseException) -> bool:
    """Transient relay failures: dropped connections and 4xx replies.

    Authentication failures and permanent 5xx rejections are not retried.
    """
    if isinstance(exc, smtplib.SMTPAuthenticationError):
        return False
    if isinstance(exc, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError)):
        return True
    if isinstance(exc, smtplib.SMTPResponseException):
        return 400 <= exc.smtp_code < 500
    return isinstance(exc, (ConnectionError, TimeoutError))


class SmtpMailer:
    """Send rule mail over SMTP.

    Transient relay errors are retried with exponential backoff; any error
    left after the last attempt propagates so the dispatcher records the
    action as failed.
    """

    def __init__(
        self,
        host: str,
        port: int = 25,
        *,
        username: str | None = None,
        password: str | None = None,
        from_addr: str | None = None,
        starttls: bool = True,
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_addr = from_addr or f"wekan-rules@{host}"
        self.starttls = starttls
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

    @classmethod
    def from_config(cls, config: RulesConfig) -> SmtpMailer:
        if not config.smtp_host:
            raise ValueError("smtp_host is not configured")
        return cls(
            config.smtp_host,
            config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            from_addr=config.smtp_from,
            starttls=config.smtp_starttls,
            max_retries=config.smtp_max_retries,
        )

    def send_mail(self, to: str, subject: str, body: str) -> None:
        recipients = _recipients(to)
        if not recipients:
            raise ValueError(f"No valid recipient in {to!r}")

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_addr
        msg["To"] = ", ".join(recipients)
        msg.set_content(body or "")

        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=tenacity.wait_exponential(multiplier=1, min=1, max=30),
            stop=tenacity.stop_after_attempt(self.max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        retryer(self._deliver, msg)
        logger.info("Sent rule mail %r to %s", subject, ", ".join(recipients))

    def _deliver(self, msg: EmailMessage) -> None:
        """One delivery attempt (no retry)."""
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.starttls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)


@dataclass(frozen=True)
class SentMail:
    to: str
    subject: str
    body: str


class LoggingMailer:
    """Log mail instead of sending it; keeps the messages in ``sent``."""

    def __init__(self) -> None:
        self.sent: list[SentMail] = []

    def send_mail(self, to: str, subject: str, body: str) -> None:
        self.sent.append(SentMail(to, subject, body))
        logger.info("Rule mail (not sent) to %s: %s", to, subject)


def mailer_from_config(config: RulesConfig) -> SmtpMailer | LoggingMailer:
    """SmtpMailer when an SMTP host is configured, LoggingMailer otherwise."""
    if config.smtp_host:
        return SmtpMailer.from_config(config)
    return LoggingMailer()
