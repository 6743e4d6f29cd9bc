from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage
from typing import Protocol


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    mime_type: str = 'application/pdf'

    @property
    def maintype(self) -> str:
        return self.mime_type.split('/', 1)[0]

    @property
    def subtype(self) -> str:
        return self.mime_type.split('/', 1)[1]


class MailTransport(Protocol):
    def send(self, message: EmailMessage) -> None: ...
