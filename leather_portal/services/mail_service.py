from __future__ import annotations

import logging
from collections.abc import Sequence
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from leather_portal.config import settings
from leather_portal.errors import ExternalServiceError, ValidationFailed
from leather_portal.services.mail_transport import Attachment, MailTransport
from leather_portal.services.provider_factory import get_mail_transport

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / 'templates' / 'emails'


def format_status(value: object) -> str:
    raw = getattr(value, 'value', value)
    return ' '.join(word.capitalize() for word in str(raw or '').replace('_', ' ').split())


def format_money(value: object) -> str:
    return f'{value:,.2f}' if value is not None else '0.00'


def _build_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(['html']),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters['status_label'] = format_status
    env.filters['money'] = format_money
    env.globals['company_name'] = settings.company_name
    env.globals['public_base_url'] = settings.public_base_url.rstrip('/')
    return env


_environment = _build_environment()


def render_email(template: str, **context) -> tuple[str, str]:
    """Render ``<template>.txt`` and ``<template>.html``; returns (text, html)."""
    text = _environment.get_template(f'{template}.txt').render(**context)
    html = _environment.get_template(f'{template}.html').render(**context)
    return text, html


def build_message(
    *,
    to: str,
    subject: str,
    text: str,
    html: str | None = None,
    attachments: Sequence[Attachment] = (),
) -> EmailMessage:
    if not to or not subject or not text:
        raise ValidationFailed('Email recipient, subject and text are required')
    message = EmailMessage()
    message['Subject'] = subject
    message['From'] = settings.sender_address
    message['To'] = to
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype='html')
    for attachment in attachments:
        message.add_attachment(
            attachment.content,
            maintype=attachment.maintype,
            subtype=attachment.subtype,
            filename=attachment.filename,
        )
    return message


def send_email(
    *,
    to: str,
    subject: str,
    text: str,
    html: str | None = None,
    attachments: Sequence[Attachment] = (),
    transport: MailTransport | None = None,
) -> None:
    message = build_message(to=to, subject=subject, text=text, html=html, attachments=attachments)
    if transport is None:
        transport = get_mail_transport()
    try:
        transport.send(message)
    except ExternalServiceError:
        raise
    except Exception as exc:
        raise ExternalServiceError('Email delivery failed', detail=str(exc)) from exc
    logger.info('Email queued for %s: %s', to, subject)
