"""Decode flat admin form submissions into the nested shape the schemas expect.

Browser forms send every value as a string. Values are kept as strings and the
schemas convert them per field, so ``"true"`` becomes a bool only where the
field is one. Repeated values use a ``key[]`` suffix, and nested objects use
either ``parent.child`` or ``parent[child]`` keys.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from fastapi import Request

from leather_portal.errors import ValidationFailed

_BRACKET_KEY = re.compile(r'^([^\[\]]+)\[([^\[\]]+)\]$')
FORM_CONTENT_TYPES = ('application/x-www-form-urlencoded', 'multipart/form-data')


def _split_key(key: str) -> list[str]:
    match = _BRACKET_KEY.match(key)
    if match:
        return [match.group(1), match.group(2)]
    return key.split('.')


def decode_form(items: Iterable[tuple[str, object]]) -> dict:
    decoded: dict = {}
    for raw_key, raw_value in items:
        if not isinstance(raw_value, str):
            # Uploaded files are not accepted on these endpoints.
            raise ValidationFailed.for_field(raw_key, 'File uploads are not supported here')

        if raw_key.endswith('[]'):
            decoded.setdefault(raw_key[:-2], []).append(raw_value)
            continue

        parts = _split_key(raw_key)
        target = decoded
        for part in parts[:-1]:
            child = target.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValidationFailed.for_field(raw_key, f'Conflicting form keys for {part}')
            target = child
        target[parts[-1]] = raw_value
    return decoded


def is_form_request(request: Request) -> bool:
    content_type = request.headers.get('content-type', '').lower()
    return content_type.startswith(FORM_CONTENT_TYPES)


async def read_body(request: Request) -> dict:
    """Return the request body as a dict, decoding JSON or flat form data."""
    if is_form_request(request):
        form = await request.form()
        return decode_form(form.multi_items())
    try:
        body = await request.json()
    except ValueError as exc:
        raise ValidationFailed('Invalid request body', errors=[{'path': '', 'message': 'Body must be valid JSON'}]) from exc
    if not isinstance(body, dict):
        raise ValidationFailed('Invalid request body', errors=[{'path': '', 'message': 'Body must be a JSON object'}])
    return body
