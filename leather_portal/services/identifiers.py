from __future__ import annotations

import re
import secrets
import string
from collections.abc import Callable

from leather_portal.errors import ValidationFailed

OBJECT_ID_PATTERN = re.compile(r'^[0-9a-fA-F]{24}$')
REQUEST_NUMBER_ALPHABET = string.digits + string.ascii_uppercase
REQUEST_NUMBER_LENGTH = 8
MAX_NUMBER_ATTEMPTS = 20


def is_object_id(value: object) -> bool:
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def require_object_id(value: str, *, field: str = 'id') -> str:
    if not is_object_id(value):
        raise ValidationFailed.for_field(field, f'Invalid {field} format')
    return value.lower()


def random_request_number() -> str:
    return ''.join(secrets.choice(REQUEST_NUMBER_ALPHABET) for _ in range(REQUEST_NUMBER_LENGTH))


def unique_request_number(exists: Callable[[str], bool]) -> str:
    """Draw request numbers until ``exists`` reports a free one."""
    for _ in range(MAX_NUMBER_ATTEMPTS):
        candidate = random_request_number()
        if not exists(candidate):
            return candidate
    raise RuntimeError('Could not allocate a unique request number')


def invoice_number(epoch_ms: int) -> str:
    return f'INV-{epoch_ms}-{10000 + secrets.randbelow(90000)}'
