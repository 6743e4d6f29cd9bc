from __future__ import annotations

from functools import lru_cache

from leather_portal.config import settings
from leather_portal.services.mock_mail_transport import ConsoleMailTransport
from leather_portal.services.mock_payment_gateway import MockPaymentGateway
from leather_portal.services.smtp_mail_transport import SmtpMailTransport
from leather_portal.services.stripe_payment_gateway import StripePaymentGateway


@lru_cache(maxsize=1)
def get_payment_gateway():
    gateway = settings.payment_gateway.strip().lower()
    if gateway == 'stripe':
        return StripePaymentGateway()
    return MockPaymentGateway()


@lru_cache(maxsize=1)
def get_mail_transport():
    transport = settings.mail_transport.strip().lower()
    if transport == 'smtp':
        return SmtpMailTransport()
    return ConsoleMailTransport()
