"""Bank-transfer rail for sample shipping fees (Wise).

Test mode never touches the network: a token starting with ``test-`` or a
transfer id starting with ``test-transfer-`` yields synthetic responses.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

from leather_portal.config import settings
from leather_portal.errors import ExternalServiceError, ValidationFailed
from leather_portal.services.shipping_service import DEFAULT_SHIPPING_TABLE, ShippingFeeTable, compute_shipping_fee

logger = logging.getLogger(__name__)

TEST_TOKEN_PREFIX = 'test-'
TEST_TRANSFER_PREFIX = 'test-transfer-'


@dataclass(frozen=True)
class TransferStatus:
    transfer_id: str
    status: str
    current_state: str | None = None
    test_mode: bool = False


@dataclass(frozen=True)
class BankTransfer:
    transfer_id: str
    quote_id: str | None
    amount: str
    currency: str
    status: str | None
    recipient_id: str | None = None
    payment_instructions: dict | None = None
    test_mode: bool = False
    metadata: dict = field(default_factory=dict)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _require_token() -> str:
    if not settings.wise_api_token:
        logger.error('WISE_API_TOKEN is not configured')
        raise ExternalServiceError('Payment configuration error', detail='WISE_API_TOKEN is not configured')
    return settings.wise_api_token


def is_test_mode(transfer_id: str | None = None) -> bool:
    token = settings.wise_api_token or ''
    if token.startswith(TEST_TOKEN_PREFIX):
        return True
    return bool(transfer_id and transfer_id.startswith(TEST_TRANSFER_PREFIX))


def _wise_request(method: str, path: str, payload: dict | None = None) -> dict:
    headers = {'Authorization': f'Bearer {_require_token()}'}
    data = None
    if payload is not None:
        headers['Content-Type'] = 'application/json'
        data = json.dumps(payload).encode('utf-8')

    req = Request(
        url=f"{settings.wise_api_base_url.rstrip('/')}{path}",
        data=data,
        headers=headers,
        method=method,
    )
    try:
        with urlopen(req, timeout=settings.wise_timeout_seconds) as response:
            return json.loads(response.read().decode('utf-8'))
    except HTTPError as exc:
        body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
        raise ExternalServiceError('Bank transfer service error', detail=f'Wise API error {exc.code}: {body}') from exc
    except URLError as exc:
        raise ExternalServiceError('Failed to connect to bank transfer service', detail=f'Wise API network error: {exc.reason}') from exc


def check_transfer_status(transfer_id: str) -> TransferStatus:
    if not transfer_id or not transfer_id.strip():
        raise ValidationFailed.for_field('transferId', 'Transfer ID is required')
    transfer_id = transfer_id.strip()
    _require_token()

    if is_test_mode(transfer_id):
        logger.info('Wise transfer status check in test mode for %s', transfer_id)
        return TransferStatus(transfer_id=transfer_id, status='funded', current_state='funded', test_mode=True)

    parsed = _wise_request('GET', f"/v1/transfers/{quote(transfer_id, safe='')}")
    logger.info('Wise transfer %s status: %s', parsed.get('id'), parsed.get('status'))
    return TransferStatus(
        transfer_id=str(parsed.get('id') or transfer_id),
        status=str(parsed.get('status') or 'unknown'),
        current_state=parsed.get('currentState'),
    )


def _create_recipient(*, profile: int, holder_name: str, email: str | None) -> str | None:
    try:
        parsed = _wise_request(
            'POST',
            '/v1/accounts',
            {
                'currency': 'USD',
                'type': 'email',
                'profile': profile,
                'accountHolderName': holder_name,
                'email': email,
                'legalType': 'PRIVATE',
            },
        )
    except ExternalServiceError as exc:
        logger.warning('Wise recipient creation failed, continuing without one: %s', exc.detail)
        return None
    return str(parsed['id']) if parsed.get('id') is not None else None


def _funding_instructions(transfer_id: str) -> dict | None:
    try:
        return _wise_request('GET', f"/v1/transfers/{quote(transfer_id, safe='')}/funding-instructions")
    except ExternalServiceError as exc:
        logger.warning('Could not fetch funding instructions for %s: %s', transfer_id, exc.detail)
        return None


def create_transfer(
    *,
    country: str,
    currency: str = 'usd',
    email: str | None = None,
    contact_person: str | None = None,
    company_name: str | None = None,
    metadata: dict | None = None,
    table: ShippingFeeTable = DEFAULT_SHIPPING_TABLE,
) -> BankTransfer:
    if not country or not country.strip():
        raise ValidationFailed.for_field('country', 'Valid country is required to calculate shipping.')
    if (currency or '').lower() != settings.sample_currency:
        raise ValidationFailed.for_field('currency', f'Only {settings.sample_currency.upper()} currency is supported currently.')
    currency = currency.lower()
    metadata = dict(metadata or {})

    fee = compute_shipping_fee(country, table)
    if fee <= 0:
        raise ValidationFailed.for_field('country', 'Unable to calculate shipping cost for this country.')
    amount = f'{fee / 100:.2f}'
    _require_token()

    if is_test_mode():
        stamp = _epoch_ms()
        logger.info('Wise transfer creation in test mode for %s', country)
        return BankTransfer(
            transfer_id=f'{TEST_TRANSFER_PREFIX}{stamp}',
            quote_id=f'test-quote-{stamp}',
            amount=amount,
            currency=currency,
            status='incoming_payment_waiting',
            recipient_id=f'test-recipient-{stamp}',
            payment_instructions={
                'account_details': {
                    'account_number': '1234567890',
                    'routing_number': '987654321',
                    'bank_name': 'Test Bank',
                    'swift_code': 'TESTUS33',
                    'iban': 'US64TEST1234567890123456',
                    'reference': f'TEST-REF-{stamp}',
                }
            },
            test_mode=True,
            metadata=metadata,
        )

    if not settings.wise_profile_id:
        raise ExternalServiceError('Payment configuration error', detail='WISE_PROFILE_ID is not configured')
    profile = int(settings.wise_profile_id)

    wise_quote = _wise_request(
        'POST',
        '/v3/quotes',
        {'sourceCurrency': 'USD', 'targetCurrency': 'USD', 'sourceAmount': float(amount), 'profile': profile},
    )
    logger.info('Wise quote created: %s', wise_quote.get('id'))

    recipient_id = _create_recipient(
        profile=profile,
        holder_name=company_name or contact_person or 'Sample Request Customer',
        email=email,
    )

    transfer_payload: dict = {
        'quoteUuid': wise_quote.get('id'),
        'customerTransactionId': f"sample-request-{_epoch_ms()}-{metadata.get('productId') or 'unknown'}",
        'details': {
            'reference': f"Sample Request Shipping - {company_name or 'Customer'}",
            'transferPurpose': 'verification.transfers.purpose.pay.bills',
            'sourceOfFunds': 'verification.source.of.funds.other',
        },
    }
    if recipient_id:
        transfer_payload['targetAccount'] = recipient_id
    transfer = _wise_request('POST', '/v1/transfers', transfer_payload)
    if transfer.get('id') is None:
        raise ExternalServiceError('Failed to create transfer', detail=str(transfer))
    transfer_id = str(transfer['id'])
    logger.info('Wise transfer created: %s (%s)', transfer_id, transfer.get('status'))

    return BankTransfer(
        transfer_id=transfer_id,
        quote_id=str(wise_quote.get('id')) if wise_quote.get('id') is not None else None,
        amount=amount,
        currency=currency,
        status=transfer.get('status'),
        recipient_id=recipient_id,
        payment_instructions=_funding_instructions(transfer_id),
        metadata=metadata,
    )
