from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from leather_portal.config import settings
from leather_portal.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class SmtpMailTransport:
    def __init__(self) -> None:
        if not settings.smtp_host:
            raise RuntimeError('SMTP_HOST is required when MAIL_TRANSPORT=smtp')
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.timeout = settings.smtp_timeout_seconds

    def send(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise ExternalServiceError('Email delivery failed', detail=str(exc)) from exc
        logger.info('Email sent via SMTP to %s: %s', message['To'], message['Subject'])
