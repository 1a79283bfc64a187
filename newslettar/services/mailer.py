"""Send the rendered newsletter over authenticated SMTP."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from ..config import Settings
from ..exceptions import ConfigurationError, DispatchError

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


def build_message(subject: str, html: str, settings: Settings) -> EmailMessage:
    """Build a single HTML message addressed to every recipient."""

    sender = settings.from_email
    if settings.from_name:
        sender = formataddr((settings.from_name, settings.from_email))

    message = EmailMessage()
    message["From"] = sender
    message["To"] = ", ".join(settings.recipients)
    message["Subject"] = subject
    message.set_content(html, subtype="html", charset="utf-8")
    return message


def send_newsletter(subject: str, html: str, settings: Settings) -> None:
    """Submit the newsletter once to all recipients.

    Raises ``ConfigurationError`` before any network I/O when the sender or
    recipients are missing, and ``DispatchError`` when submission fails.
    """

    recipients = settings.recipients
    if not settings.from_email or not recipients:
        raise ConfigurationError("email configuration incomplete (FROM_EMAIL and TO_EMAILS are required)")

    message = build_message(subject, html, settings)
    try:
        with smtplib.SMTP(
            settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT_SECONDS
        ) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(message, from_addr=settings.from_email, to_addrs=recipients)
    except smtplib.SMTPException as exc:
        raise DispatchError(f"SMTP error: {exc}") from exc
    except OSError as exc:
        raise DispatchError(f"connection to {settings.smtp_host}:{settings.smtp_port} failed: {exc}") from exc

    logger.info("Newsletter sent to %d recipient(s)", len(recipients))


def check_smtp_connection(host: str, port: int, user: str, password: str) -> tuple[bool, str]:
    """Connect and authenticate without sending, for the console check."""

    if not (user and password):
        return False, "SMTP credentials missing"
    try:
        with smtplib.SMTP(host, port, timeout=SMTP_TIMEOUT_SECONDS) as server:
            server.ehlo()
            secured = False
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
                secured = True
            server.login(user, password)
    except smtplib.SMTPAuthenticationError as exc:
        return False, f"Authentication failed: {exc}"
    except (smtplib.SMTPException, OSError) as exc:
        return False, f"Connection failed: {exc}"
    if secured:
        return True, "SMTP authentication successful (with STARTTLS)"
    return True, "SMTP authentication successful"
