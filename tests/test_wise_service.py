from __future__ import annotations

import unittest
from unittest.mock import patch

from leather_portal.config import settings
from leather_portal.errors import ExternalServiceError, ValidationFailed
from leather_portal.services.wise_service import check_transfer_status, create_transfer, is_test_mode


class WiseServiceTests(unittest.TestCase):
    def _token(self, value: str | None):
        token_patch = patch.object(settings, 'wise_api_token', value)
        token_patch.start()
        self.addCleanup(token_patch.stop)

    def test_test_token_short_circuits_status_check(self) -> None:
        self._token('test-sandbox-token')
        with patch('leather_portal.services.wise_service._wise_request') as request_mock:
            status = check_transfer_status('12345')
        request_mock.assert_not_called()
        self.assertEqual(status.status, 'funded')
        self.assertTrue(status.test_mode)

    def test_test_transfer_id_short_circuits_status_check(self) -> None:
        self._token('live-token')
        self.assertTrue(is_test_mode('test-transfer-1700000000000'))
        status = check_transfer_status('test-transfer-1700000000000')
        self.assertEqual(status.status, 'funded')

    def test_live_status_is_read_from_provider(self) -> None:
        self._token('live-token')
        with patch(
            'leather_portal.services.wise_service._wise_request',
            return_value={'id': 987, 'status': 'outgoing_payment_sent', 'currentState': 'outgoing_payment_sent'},
        ) as request_mock:
            status = check_transfer_status('987')
        request_mock.assert_called_once_with('GET', '/v1/transfers/987')
        self.assertEqual(status.transfer_id, '987')
        self.assertEqual(status.status, 'outgoing_payment_sent')
        self.assertFalse(status.test_mode)

    def test_missing_transfer_id_is_rejected(self) -> None:
        self._token('test-sandbox-token')
        with self.assertRaises(ValidationFailed):
            check_transfer_status('  ')

    def test_missing_token_is_a_configuration_error(self) -> None:
        self._token(None)
        with self.assertRaises(ExternalServiceError) as ctx:
            check_transfer_status('987')
        self.assertEqual(ctx.exception.message, 'Payment configuration error')

    def test_create_transfer_in_test_mode(self) -> None:
        self._token('test-sandbox-token')
        transfer = create_transfer(country='Canada', currency='USD', company_name='Sample Co')
        self.assertTrue(transfer.transfer_id.startswith('test-transfer-'))
        self.assertEqual(transfer.amount, '20.00')
        self.assertEqual(transfer.currency, 'usd')
        self.assertTrue(transfer.test_mode)
        self.assertIn('account_details', transfer.payment_instructions)

    def test_create_transfer_rejects_other_currencies(self) -> None:
        self._token('test-sandbox-token')
        with self.assertRaises(ValidationFailed):
            create_transfer(country='Canada', currency='gbp')

    def test_live_transfer_continues_without_recipient(self) -> None:
        self._token('live-token')
        profile_patch = patch.object(settings, 'wise_profile_id', '42')
        profile_patch.start()
        self.addCleanup(profile_patch.stop)

        responses = {
            ('POST', '/v3/quotes'): {'id': 'quote-1'},
            ('POST', '/v1/transfers'): {'id': 555, 'status': 'incoming_payment_waiting'},
            ('GET', '/v1/transfers/555/funding-instructions'): {'reference': 'REF-1'},
        }

        def fake_request(method, path, payload=None):
            if path == '/v1/accounts':
                raise ExternalServiceError('Bank transfer service error', detail='recipient rejected')
            return responses[(method, path)]

        with patch('leather_portal.services.wise_service._wise_request', side_effect=fake_request):
            transfer = create_transfer(country='Japan', currency='usd', email='buyer@example.com')

        self.assertEqual(transfer.transfer_id, '555')
        self.assertIsNone(transfer.recipient_id)
        self.assertEqual(transfer.amount, '30.00')
        self.assertEqual(transfer.payment_instructions, {'reference': 'REF-1'})


if __name__ == '__main__':
    unittest.main()
