from __future__ import annotations

import unittest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy import func, select

from leather_portal.errors import ConflictError, ExternalServiceError, NotFoundError, ValidationFailed
from leather_portal.models import Invoice, InvoiceStatus, Notification, NotificationType, QuotePaymentMethod, QuoteStatus
from leather_portal.schemas import InvoiceGenerate
from leather_portal.services.invoice_service import (
    compute_invoice_totals,
    generate_invoice,
    get_invoice_for_quote,
    issue_invoice,
    update_invoice_status,
)
from support import add_quote, captured_mail, make_session_factory


def _options(**overrides) -> InvoiceGenerate:
    values = {'proposedPricePerUnit': '5.00', 'paymentTerms': '100_advance'}
    values.update(overrides)
    return InvoiceGenerate.model_validate(values)


class InvoiceTotalsTests(unittest.TestCase):
    def test_total_is_sum_of_components(self) -> None:
        totals = compute_invoice_totals(100, Decimal('5.00'), Decimal('0.05'), Decimal('50'))
        self.assertEqual(totals.subtotal, Decimal('500.00'))
        self.assertEqual(totals.tax_amount, Decimal('25.00'))
        self.assertEqual(totals.shipping_cost, Decimal('50.00'))
        self.assertEqual(totals.total_amount, Decimal('575.00'))

    def test_tax_and_shipping_default_to_zero(self) -> None:
        totals = compute_invoice_totals(3, '2.50')
        self.assertEqual(totals.tax_amount, Decimal('0.00'))
        self.assertEqual(totals.shipping_cost, Decimal('0.00'))
        self.assertEqual(totals.total_amount, Decimal('7.50'))

    def test_components_are_rounded_to_cents_before_summing(self) -> None:
        totals = compute_invoice_totals(3, '0.333', '0.0725')
        self.assertEqual(totals.subtotal, Decimal('1.00'))
        self.assertEqual(totals.tax_amount, Decimal('0.07'))
        self.assertEqual(totals.total_amount, totals.subtotal + totals.tax_amount + totals.shipping_cost)

    def test_non_positive_price_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailed):
            compute_invoice_totals(10, '0')


class GenerateInvoiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()

    def tearDown(self) -> None:
        self.db.close()

    def test_generated_invoice_updates_quote_but_keeps_it_approved(self) -> None:
        quote = add_quote(self.db)
        invoice = generate_invoice(self.db, quote_id=quote.id, options=_options(taxRate='0.05', shippingCost='50'))
        self.db.commit()

        self.assertEqual(invoice.status, InvoiceStatus.SENT)
        self.assertEqual(invoice.total_amount, Decimal('575.00'))
        self.assertEqual(invoice.invoice_number[:4], 'INV-')
        self.assertEqual((invoice.due_date - invoice.issue_date).days, 30)
        self.assertEqual(invoice.items[0]['quantity'], 100)

        self.db.refresh(quote)
        self.assertEqual(quote.status, QuoteStatus.APPROVED)
        self.assertEqual(quote.invoice_id, invoice.id)
        self.assertEqual(quote.proposed_total_price, Decimal('575.00'))
        self.assertEqual(quote.payment_method, QuotePaymentMethod.ADVANCE_BANK_TRANSFER)
        self.assertEqual(quote.payment_details['bank_name'], invoice.vendor_bank_details['bank_name'])
        self.assertIsNone(quote.lc_details)

    def test_letter_of_credit_terms_record_lc_details(self) -> None:
        quote = add_quote(self.db)
        generate_invoice(
            self.db,
            quote_id=quote.id,
            options=_options(paymentTerms='lc', lcBankName='Trade Bank', lcContactEmail='lc@tradebank.com'),
        )
        self.db.commit()

        self.db.refresh(quote)
        self.assertEqual(quote.payment_method, QuotePaymentMethod.LETTER_OF_CREDIT)
        self.assertEqual(quote.lc_details['bank_name'], 'Trade Bank')
        self.assertEqual(quote.lc_details['lc_status'], 'initiated')
        self.assertFalse(quote.lc_details['documents_uploaded'])

    def test_unapproved_quote_is_rejected_without_writes(self) -> None:
        quote = add_quote(self.db, status=QuoteStatus.REQUESTED)
        with self.assertRaises(ValidationFailed) as ctx:
            generate_invoice(self.db, quote_id=quote.id, options=_options())
        self.assertIn('Current status: requested', ctx.exception.message)
        self.assertEqual(self.db.scalar(select(func.count()).select_from(Invoice)), 0)

    def test_second_invoice_for_same_quote_conflicts(self) -> None:
        quote = add_quote(self.db)
        generate_invoice(self.db, quote_id=quote.id, options=_options())
        self.db.commit()

        with self.assertRaises(ConflictError):
            generate_invoice(self.db, quote_id=quote.id, options=_options(proposedPricePerUnit='6.00'))
        self.assertEqual(self.db.scalar(select(func.count()).select_from(Invoice)), 1)

    def test_concurrent_insert_loses_on_unique_constraint(self) -> None:
        quote = add_quote(self.db)
        generate_invoice(self.db, quote_id=quote.id, options=_options())
        self.db.commit()

        # Both requests passed the existence check before either inserted.
        with patch('leather_portal.services.invoice_service._existing_invoice_id', return_value=None):
            with self.assertRaises(ConflictError):
                generate_invoice(self.db, quote_id=quote.id, options=_options())
        self.assertEqual(self.db.scalar(select(func.count()).select_from(Invoice)), 1)

    def test_unknown_quote_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            generate_invoice(self.db, quote_id='a' * 24, options=_options())

    def test_lc_terms_require_bank_name(self) -> None:
        with self.assertRaises(ValueError):
            _options(paymentTerms='lc')


class IssueInvoiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()

    def tearDown(self) -> None:
        self.db.close()

    def test_invoice_is_emailed_with_pdf_and_announced(self) -> None:
        quote = add_quote(self.db)
        with captured_mail() as transport:
            outcome = issue_invoice(self.db, quote_id=quote.id, options=_options())

        self.assertEqual(outcome.side_effects.failed, [])
        sent = transport.sent_to('ada@example.com')
        self.assertEqual(len(sent), 1)
        attachments = list(sent[0].iter_attachments())
        self.assertEqual(attachments[0].get_content_type(), 'application/pdf')
        self.assertTrue(attachments[0].get_content().startswith(b'%PDF'))

        notification = self.db.execute(select(Notification)).scalar_one()
        self.assertEqual(notification.type, NotificationType.INVOICE_SENT)
        self.assertEqual(notification.related_id, outcome.value.id)

    def test_email_failure_does_not_roll_back_invoice(self) -> None:
        quote = add_quote(self.db)
        with captured_mail(fail_with=ExternalServiceError('Email service unavailable')):
            outcome = issue_invoice(self.db, quote_id=quote.id, options=_options())

        self.assertEqual(outcome.side_effects.failed, ['email'])
        self.assertTrue(outcome.side_effects.succeeded('notification'))

        with self.session_factory() as other:
            stored = get_invoice_for_quote(other, quote_id=quote.id)
            self.assertEqual(stored.id, outcome.value.id)

    def test_pdf_failure_skips_email_but_keeps_invoice(self) -> None:
        quote = add_quote(self.db)
        with captured_mail() as transport, patch(
            'leather_portal.services.invoice_service.render_invoice_pdf', side_effect=RuntimeError('font missing')
        ):
            outcome = issue_invoice(self.db, quote_id=quote.id, options=_options())

        self.assertEqual(outcome.side_effects.failed, ['pdf', 'email'])
        self.assertEqual(transport.outbox, [])
        self.assertEqual(self.db.scalar(select(func.count()).select_from(Invoice)), 1)

    def test_invoice_status_can_be_marked_paid(self) -> None:
        quote = add_quote(self.db)
        invoice = generate_invoice(self.db, quote_id=quote.id, options=_options())
        self.db.commit()

        updated = update_invoice_status(self.db, invoice_id=invoice.id, status=InvoiceStatus.PAID)
        self.assertEqual(updated.status, InvoiceStatus.PAID)


if __name__ == '__main__':
    unittest.main()
