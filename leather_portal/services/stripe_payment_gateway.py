from __future__ import annotations

import json
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from leather_portal.config import settings
from leather_portal.errors import ExternalServiceError
from leather_portal.services.payment_gateway import PaymentIntent

logger = logging.getLogger(__name__)


class StripePaymentGateway:
    def __init__(self) -> None:
        if not settings.stripe_secret_key:
            raise RuntimeError('STRIPE_SECRET_KEY is required when PAYMENT_GATEWAY=stripe')
        self.base_url = settings.stripe_api_base_url.rstrip('/')
        self.headers = {
            'Authorization': f'Bearer {settings.stripe_secret_key}',
            'Content-Type': 'application/x-www-form-urlencoded',
        }

    def _post(self, path: str, fields: list[tuple[str, str]]) -> dict:
        req = Request(
            url=f'{self.base_url}{path}',
            data=urlencode(fields).encode('utf-8'),
            headers=self.headers,
            method='POST',
        )
        try:
            with urlopen(req, timeout=settings.stripe_timeout_seconds) as response:
                return json.loads(response.read().decode('utf-8'))
        except HTTPError as exc:
            body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
            raise ExternalServiceError('Payment service temporarily unavailable', detail=f'Stripe API error {exc.code}: {body}') from exc
        except URLError as exc:
            raise ExternalServiceError('Payment service temporarily unavailable', detail=f'Stripe API network error: {exc.reason}') from exc

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
    ) -> PaymentIntent:
        fields = [
            ('amount', str(amount)),
            ('currency', currency),
            ('payment_method_types[]', 'card'),
            ('description', description),
        ]
        fields.extend((f'metadata[{key}]', str(value)) for key, value in metadata.items())
        parsed = self._post('/v1/payment_intents', fields)
        if not parsed.get('id') or not parsed.get('client_secret'):
            raise ExternalServiceError('Payment service returned an incomplete intent', detail=str(parsed))

        logger.info('Stripe payment intent created: %s (%s %s)', parsed['id'], parsed.get('amount'), parsed.get('currency'))
        return PaymentIntent(
            id=parsed['id'],
            client_secret=parsed['client_secret'],
            amount=int(parsed.get('amount', amount)),
            currency=parsed.get('currency', currency),
            status=parsed.get('status', 'requires_payment_method'),
            metadata=dict(parsed.get('metadata') or metadata),
        )
