from __future__ import annotations

import secrets

from leather_portal.errors import ExternalServiceError
from leather_portal.services.payment_gateway import PaymentIntent


class MockPaymentGateway:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.created: list[PaymentIntent] = []

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
    ) -> PaymentIntent:
        if self.fail:
            raise ExternalServiceError('Payment service temporarily unavailable', detail='mock gateway configured to fail')
        intent_id = f'pi_mock_{secrets.token_hex(12)}'
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f'{intent_id}_secret_{secrets.token_hex(8)}',
            amount=amount,
            currency=currency,
            metadata=dict(metadata),
        )
        self.created.append(intent)
        return intent
