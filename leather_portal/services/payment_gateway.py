from __future__ import annotations

import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Protocol

from leather_portal.errors import SignatureError

SIGNATURE_SCHEME = 'v1'


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str
    amount: int
    currency: str
    status: str = 'requires_payment_method'
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    type: str
    data_object: dict

    @property
    def intent_id(self) -> str | None:
        return self.data_object.get('id')

    @property
    def last_payment_error(self) -> dict:
        return self.data_object.get('last_payment_error') or {}


class PaymentGateway(Protocol):
    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
    ) -> PaymentIntent: ...


def compute_signature(payload: bytes, timestamp: int | str, secret: str) -> str:
    signed = f'{timestamp}.'.encode('utf-8') + payload
    return hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()


def signature_header(payload: bytes, secret: str, *, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f't={timestamp},{SIGNATURE_SCHEME}={compute_signature(payload, timestamp, secret)}'


def _parse_signature_header(header: str) -> tuple[int, list[str]]:
    timestamp: int | None = None
    signatures: list[str] = []
    for item in header.split(','):
        key, _, value = item.strip().partition('=')
        if key == 't':
            try:
                timestamp = int(value)
            except ValueError as exc:
                raise SignatureError('Invalid signature timestamp') from exc
        elif key == SIGNATURE_SCHEME and value:
            signatures.append(value)
    if timestamp is None or not signatures:
        raise SignatureError('Malformed signature header')
    return timestamp, signatures


def verify_webhook_signature(
    payload: bytes,
    header: str | None,
    secret: str | None,
    *,
    tolerance: int = 300,
    now: float | None = None,
) -> None:
    """Check a ``t=<ts>,v1=<hex>`` header against an HMAC-SHA256 of ``<ts>.<body>``."""
    if not secret:
        raise SignatureError('Webhook secret is not configured')
    if not header:
        raise SignatureError('Missing signature header')

    timestamp, signatures = _parse_signature_header(header)
    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
        raise SignatureError('No signatures found matching the expected signature for payload')

    current = time.time() if now is None else now
    if tolerance > 0 and abs(current - timestamp) > tolerance:
        raise SignatureError('Timestamp outside the tolerance zone')


def construct_event(
    payload: bytes,
    header: str | None,
    secret: str | None,
    *,
    tolerance: int = 300,
    now: float | None = None,
) -> WebhookEvent:
    verify_webhook_signature(payload, header, secret, tolerance=tolerance, now=now)
    try:
        body = json.loads(payload.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SignatureError('Webhook payload is not valid JSON') from exc
    if not isinstance(body, dict) or not body.get('type'):
        raise SignatureError('Webhook payload has no event type')
    data = body.get('data') or {}
    data_object = (data.get('object') or {}) if isinstance(data, dict) else None
    if not isinstance(data_object, dict):
        raise SignatureError('Webhook payload has no event object')
    return WebhookEvent(id=str(body.get('id') or ''), type=str(body['type']), data_object=data_object)
