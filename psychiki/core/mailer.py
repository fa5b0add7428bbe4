"""
Email adapter for the Psychiki backend.

The default implementation uses SMTP, reading credentials from Settings.
"""

from __future__ import annotations

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging
import smtplib
import ssl
from typing import Protocol

from .config import Settings

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> bool: ...


class SMTPMailer:
    """Sends mail through the configured SMTP relay. Never raises."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def configured(self) -> bool:
        s = self.settings
        return bool(s.smtp_host and s.smtp_user and s.smtp_password and s.smtp_from and s.smtp_port)

    def _message(self, to: str, subject: str, body: str, html_body: str | None) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.smtp_from
        msg["To"] = to
        msg.attach(MIMEText(body, "plain", "utf-8"))
        if html_body:
            msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> bool:
        if not self.configured:
            logger.warning("SMTP configuration missing; skipping delivery")
            return False
        s = self.settings
        msg = self._message(to, subject, body, html_body)
        timeout = s.smtp_timeout_seconds
        try:
            if s.smtp_port == 465:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, context=context, timeout=timeout) as server:
                    server.login(s.smtp_user, s.smtp_password)
                    server.sendmail(s.smtp_from, [to], msg.as_string())
            else:
                with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=timeout) as server:
                    server.ehlo()
                    server.starttls(context=ssl.create_default_context())
                    server.login(s.smtp_user, s.smtp_password)
                    server.sendmail(s.smtp_from, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email delivery to %s failed: %s", to, exc)
            return False
        logger.info("Email sent to %s", to)
        return True
