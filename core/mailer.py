"""
core/mailer.py -- Outbound email over SMTP.

Services depend on the Mailer interface (a single send() method), never on
smtplib directly. That keeps the transport swappable:

  SMTPMailer    -- real delivery. STARTTLS (port 587) or implicit SSL (465).
  ConsoleMailer -- logs the message instead of sending. Used in DEBUG mode
                   when SMTP_HOST is not configured, so local registration
                   works without a mail server.

Failure policy: send() logs and raises MailDeliveryError. Callers decide
whether a failed email is fatal for the request -- the auth service turns it
into a 500 rather than swallowing it.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

from core.config import Settings

logger = logging.getLogger("authstarter.mail")


class MailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail transport."""


class Mailer(ABC):
    """Interface for sending a single email to a single recipient."""

    @abstractmethod
    def send(self, to: str, subject: str, text: str | None = None, html: str | None = None) -> None:
        """Deliver one message. Raise MailDeliveryError on failure."""


class SMTPMailer(Mailer):
    """Deliver mail through an SMTP relay.

    A fresh connection is opened per message. Auth traffic is low-volume and
    a long-lived SMTP connection would need keepalive and reconnect handling.
    """

    def __init__(
        self,
        host: str,
        port: int,
        from_email: str,
        username: str = "",
        password: str = "",
        use_ssl: bool = False,
        use_starttls: bool = True,
        timeout: float = 30,
    ) -> None:
        self.host = host
        self.port = port
        self.from_email = from_email
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.use_starttls = use_starttls
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.use_ssl:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        if self.use_starttls:
            try:
                server.starttls()
            except (smtplib.SMTPException, OSError):
                server.close()
                raise
        return server

    def _build_message(self, to: str, subject: str, text: str | None, html: str | None) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text or "")
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, subject: str, text: str | None = None, html: str | None = None) -> None:
        msg = self._build_message(to, subject, text, html)
        try:
            server = self._connect()
            try:
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
            finally:
                server.quit()
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending email to %s: %s", to, exc)
            raise MailDeliveryError(str(exc)) from exc
        logger.info("Email sent to %s", to)


class ConsoleMailer(Mailer):
    """Log messages instead of sending them (development only)."""

    def send(self, to: str, subject: str, text: str | None = None, html: str | None = None) -> None:
        logger.info("Email (not sent, SMTP not configured) to=%s subject=%r\n%s", to, subject, text or html or "")


def build_mailer(settings: Settings) -> Mailer:
    """Return the mail transport for the given settings.

    Production without SMTP_HOST still gets an SMTPMailer pointed at nothing:
    the first send fails loudly instead of silently dropping reset emails.
    """
    if not settings.mail_configured and settings.debug:
        logger.warning("SMTP_HOST not set -- emails will be logged, not sent")
        return ConsoleMailer()
    return SMTPMailer(
        host=settings.smtp_host,
        port=settings.smtp_port,
        from_email=settings.smtp_from,
        username=settings.smtp_user,
        password=settings.smtp_pass,
        use_ssl=settings.smtp_secure,
        use_starttls=settings.smtp_starttls,
    )
