from __future__ import annotations

import logging
from email.message import EmailMessage

logger = logging.getLogger(__name__)


class ConsoleMailTransport:
    """Logs outgoing mail instead of delivering it."""

    def send(self, message: EmailMessage) -> None:
        attachments = [part.get_filename() for part in message.iter_attachments()]
        logger.info(
            'Email (console transport) to=%s subject=%r attachments=%s',
            message['To'],
            message['Subject'],
            attachments,
        )


class InMemoryMailTransport:
    def __init__(self, *, fail_with: Exception | None = None) -> None:
        self.outbox: list[EmailMessage] = []
        self.fail_with = fail_with

    def send(self, message: EmailMessage) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.outbox.append(message)

    def sent_to(self, address: str) -> list[EmailMessage]:
        return [message for message in self.outbox if message['To'] == address]
