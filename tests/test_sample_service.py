from __future__ import annotations

import unittest

from sqlalchemy import func, select

from leather_portal.errors import ExternalServiceError, NotFoundError, ValidationFailed
from leather_portal.models import Notification, NotificationType, PaymentStatus, SampleRequest
from leather_portal.schemas import SampleRequestCreate, SampleRequestUpdate
from leather_portal.services.mock_payment_gateway import MockPaymentGateway
from leather_portal.services.sample_service import (
    announce_sample_request,
    announce_sample_update,
    create_payment_intent,
    create_sample_request,
    delete_sample_request,
    list_sample_requests,
    update_sample_request,
)
from support import add_sample, captured_mail, make_session_factory


def _create_payload(**overrides) -> SampleRequestCreate:
    values = {
        'companyName': 'Sample Co',
        'contactPerson': 'Sam Ple',
        'email': 'sam@example.com',
        'country': 'Germany',
        'address': '1 Hauptstrasse, Berlin',
        'sampleType': 'raw-leather',
        'paymentMethod': 'card',
        'stripePaymentIntentId': 'pi_abc',
        'phone': '',
    }
    values.update(overrides)
    return SampleRequestCreate.model_validate(values)


class PaymentIntentTests(unittest.TestCase):
    def test_intent_amount_is_computed_server_side(self) -> None:
        gateway = MockPaymentGateway()
        intent = create_payment_intent(gateway, country='Germany', currency='usd', metadata={'productId': 'p1'})

        self.assertEqual(intent.amount, 2500)
        self.assertEqual(intent.currency, 'usd')
        self.assertTrue(intent.id.startswith('pi_mock_'))
        self.assertEqual(intent.metadata['shippingAmount'], '25.00')
        self.assertEqual(intent.metadata['source'], 'sample_request')
        self.assertEqual(intent.metadata['productId'], 'p1')

    def test_other_currencies_are_rejected_before_calling_provider(self) -> None:
        gateway = MockPaymentGateway()
        with self.assertRaises(ValidationFailed):
            create_payment_intent(gateway, country='Germany', currency='eur')
        self.assertEqual(gateway.created, [])

    def test_provider_failure_surfaces_as_unavailable(self) -> None:
        with self.assertRaises(ExternalServiceError) as ctx:
            create_payment_intent(MockPaymentGateway(fail=True), country='Canada', currency='usd')
        self.assertEqual(ctx.exception.status_code, 503)

    def test_blank_country_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailed):
            create_payment_intent(MockPaymentGateway(), country='  ', currency='usd')


class SampleRequestServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()

    def tearDown(self) -> None:
        self.db.close()

    def test_create_stores_pending_request_with_server_fee(self) -> None:
        creation = create_sample_request(self.db, data=_create_payload())
        self.db.commit()

        sample = creation.sample
        self.assertTrue(creation.created)
        self.assertEqual(sample.payment_status, PaymentStatus.PENDING)
        self.assertEqual(sample.shipping_fee, 2500)
        self.assertEqual(len(sample.request_number), 8)
        self.assertIsNone(sample.phone)

    def test_repeated_create_returns_existing_request(self) -> None:
        first = create_sample_request(self.db, data=_create_payload())
        self.db.commit()
        second = create_sample_request(self.db, data=_create_payload(companyName='Other Co'))

        self.assertFalse(second.created)
        self.assertEqual(second.sample.id, first.sample.id)
        self.assertEqual(self.db.scalar(select(func.count()).select_from(SampleRequest)), 1)

    def test_bank_transfer_request_links_transfer_id(self) -> None:
        payload = _create_payload(paymentMethod='bank_transfer', stripePaymentIntentId='', wiseTransferId='test-transfer-1')
        creation = create_sample_request(self.db, data=payload)
        self.assertEqual(creation.sample.wise_transfer_id, 'test-transfer-1')
        self.assertIsNone(creation.sample.stripe_payment_intent_id)

    def test_card_request_requires_intent_id(self) -> None:
        with self.assertRaises(ValueError):
            _create_payload(stripePaymentIntentId='')

    def test_new_request_is_announced(self) -> None:
        creation = create_sample_request(self.db, data=_create_payload())
        self.db.commit()
        with captured_mail() as transport:
            report = announce_sample_request(self.db, creation.sample)

        self.assertEqual(report.failed, [])
        self.assertEqual(len(transport.sent_to('sam@example.com')), 1)
        notification = self.db.execute(select(Notification)).scalar_one()
        self.assertEqual(notification.type, NotificationType.NEW_SAMPLE_REQUEST)

    def test_shipping_stamps_and_clears_shipped_at(self) -> None:
        sample = add_sample(self.db, status=PaymentStatus.PAID)

        shipped = update_sample_request(self.db, sample_id=sample.id, changes={'status': 'shipped'})
        self.assertIsNotNone(shipped.sample.shipped_at)
        self.assertTrue(shipped.status_changed)

        reverted = update_sample_request(self.db, sample_id=sample.id, changes={'status': 'processing'})
        self.assertIsNone(reverted.sample.shipped_at)
        self.assertEqual(reverted.previous_status, PaymentStatus.SHIPPED)

    def test_shipping_with_tracking_link_sends_status_and_tracking_emails(self) -> None:
        sample = add_sample(self.db, status=PaymentStatus.PAID)
        changes = SampleRequestUpdate.model_validate(
            {'paymentStatus': 'shipped', 'shippingTrackingLink': 'https://track.example.com/123'}
        ).changes()
        update = update_sample_request(self.db, sample_id=sample.id, changes=changes)
        self.db.commit()

        with captured_mail() as transport:
            report = announce_sample_update(self.db, update)

        self.assertEqual(sorted(report.delivered), ['email', 'notification', 'tracking_email'])
        self.assertEqual(len(transport.outbox), 2)
        self.assertEqual(update.sample.shipping_tracking_link, 'https://track.example.com/123')

    def test_list_filters_by_status(self) -> None:
        add_sample(self.db, intent_id='pi_1', request_number='SR000001')
        add_sample(self.db, intent_id='pi_2', request_number='SR000002', status=PaymentStatus.PAID)

        page = list_sample_requests(self.db, status='paid')
        self.assertEqual(page.total, 1)
        self.assertEqual(page.rows[0].stripe_payment_intent_id, 'pi_2')

    def test_list_rejects_unknown_status(self) -> None:
        with self.assertRaises(ValidationFailed):
            list_sample_requests(self.db, status='teleported')

    def test_delete_then_fetch_is_not_found(self) -> None:
        sample = add_sample(self.db)
        delete_sample_request(self.db, sample_id=sample.id)
        self.db.commit()
        with self.assertRaises(NotFoundError):
            update_sample_request(self.db, sample_id=sample.id, changes={'status': 'paid'})


if __name__ == '__main__':
    unittest.main()
