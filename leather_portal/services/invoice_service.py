from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leather_portal.config import settings
from leather_portal.errors import ConflictError, NotFoundError, ValidationFailed
from leather_portal.models import (
    Invoice,
    InvoiceStatus,
    LcStatus,
    NotificationType,
    PaymentTerms,
    QuotePaymentMethod,
    QuoteRequest,
    QuoteStatus,
    utcnow,
)
from leather_portal.schemas import InvoiceGenerate
from leather_portal.services.identifiers import invoice_number, require_object_id
from leather_portal.services.invoice_pdf_service import render_invoice_pdf
from leather_portal.services.mail_service import render_email, send_email
from leather_portal.services.mail_transport import Attachment
from leather_portal.services.notification_service import create_notification
from leather_portal.services.quote_service import get_quote_request
from leather_portal.services.side_effects import Outcome, SideEffectReport, attempt_side_effect

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')
PAYMENT_DUE_DAYS = 30
ALREADY_INVOICED = 'An invoice already exists for this quote request. Please update the existing invoice instead.'

PAYMENT_METHOD_BY_TERMS = {
    PaymentTerms.ADVANCE_100: QuotePaymentMethod.ADVANCE_BANK_TRANSFER,
    PaymentTerms.SPLIT_30_70: QuotePaymentMethod.SPLIT_BANK_TRANSFER,
    PaymentTerms.LC: QuotePaymentMethod.LETTER_OF_CREDIT,
}


@dataclass(frozen=True)
class InvoiceTotals:
    unit_price: Decimal
    item_total: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_invoice_totals(
    quantity: int,
    unit_price: Decimal | str | int,
    tax_rate: Decimal | str | None = None,
    shipping_cost: Decimal | str | None = None,
) -> InvoiceTotals:
    """Single-line invoice arithmetic.

    Each component is rounded to cents before summing, so the stored total is
    always exactly ``subtotal + tax_amount + shipping_cost``.
    """
    if quantity < 1:
        raise ValidationFailed.for_field('quantity', 'Quantity must be at least 1.')
    unit_price = Decimal(str(unit_price))
    if unit_price <= 0:
        raise ValidationFailed.for_field('proposedPricePerUnit', 'Proposed price per unit must be greater than 0.')

    item_total = _cents(unit_price * quantity)
    subtotal = item_total
    tax_amount = _cents(subtotal * Decimal(str(tax_rate))) if tax_rate else Decimal('0.00')
    shipping = _cents(Decimal(str(shipping_cost))) if shipping_cost else Decimal('0.00')
    if tax_amount < 0 or shipping < 0:
        raise ValidationFailed('Tax rate and shipping cost must not be negative')
    return InvoiceTotals(
        unit_price=unit_price,
        item_total=item_total,
        subtotal=subtotal,
        tax_amount=tax_amount,
        shipping_cost=shipping,
        total_amount=subtotal + tax_amount + shipping,
    )


def vendor_bank_details() -> dict:
    return {
        'bank_name': settings.bank_name,
        'account_number': settings.bank_account_number,
        'swift_code': settings.bank_swift_code,
        'iban': settings.bank_iban,
    }


def _existing_invoice_id(db: Session, quote_id: str) -> str | None:
    return db.execute(select(Invoice.id).where(Invoice.quote_request_id == quote_id)).scalar_one_or_none()


def generate_invoice(db: Session, *, quote_id: str, options: InvoiceGenerate) -> Invoice:
    quote = get_quote_request(db, quote_id=quote_id)
    if quote.status != QuoteStatus.APPROVED:
        raise ValidationFailed(
            f'Invoice can only be generated for approved quotes. Current status: {quote.status.value}',
            errors=[{'path': 'status', 'message': 'Quote request must be approved'}],
        )
    if _existing_invoice_id(db, quote.id) is not None:
        raise ConflictError(ALREADY_INVOICED)

    totals = compute_invoice_totals(quote.quantity, options.proposed_price_per_unit, options.tax_rate, options.shipping_cost)
    terms = PaymentTerms(options.payment_terms)
    issue_date = utcnow()
    bank_details = vendor_bank_details()

    invoice = Invoice(
        quote_request_id=quote.id,
        invoice_number=invoice_number(int(time.time() * 1000)),
        issue_date=issue_date,
        due_date=issue_date + timedelta(days=PAYMENT_DUE_DAYS),
        status=InvoiceStatus.SENT,
        customer_name=quote.customer_name,
        customer_email=quote.customer_email,
        company_name=quote.company_name,
        customer_address=options.customer_address,
        customer_country=quote.destination_country,
        vendor_name=settings.company_name,
        vendor_address=settings.company_address,
        vendor_email=settings.company_email,
        vendor_phone=settings.company_phone,
        vendor_bank_details=bank_details,
        items=[
            {
                'item_name': quote.item_name,
                'quantity': quote.quantity,
                'quantity_unit': quote.quantity_unit,
                'unit_price': str(_cents(totals.unit_price)),
                'total_price': str(totals.item_total),
            }
        ],
        subtotal=totals.subtotal,
        tax_rate=options.tax_rate,
        tax_amount=totals.tax_amount,
        shipping_cost=totals.shipping_cost,
        total_amount=totals.total_amount,
        payment_terms=terms,
        payment_instructions=options.payment_instructions,
        notes=options.notes,
        lc_bank_name=options.lc_bank_name,
        lc_contact_person=options.lc_contact_person,
        lc_contact_email=str(options.lc_contact_email) if options.lc_contact_email else None,
    )
    db.add(invoice)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.warning('Invoice insert for quote %s lost a uniqueness race: %s', quote_id, exc.orig)
        raise ConflictError(ALREADY_INVOICED) from exc

    quote.invoice_id = invoice.id
    quote.proposed_price_per_unit = totals.unit_price
    quote.proposed_total_price = totals.total_amount
    quote.payment_method = PAYMENT_METHOD_BY_TERMS[terms]
    quote.payment_details = {**(quote.payment_details or {}), **bank_details}
    if terms == PaymentTerms.LC:
        quote.lc_details = {
            'bank_name': options.lc_bank_name,
            'contact_person': options.lc_contact_person,
            'contact_email': invoice.lc_contact_email,
            'documents_uploaded': False,
            'lc_status': LcStatus.INITIATED.value,
        }
    quote.updated_at = utcnow()
    db.flush()

    logger.info('Invoice %s generated and linked to quote request %s', invoice.invoice_number, quote.id)
    return invoice


def payment_link(invoice: Invoice) -> str:
    return f"{settings.public_base_url.rstrip('/')}/customer/payment/{invoice.id}"


def _send_invoice_email(quote: QuoteRequest, invoice: Invoice, pdf: bytes) -> None:
    text, html = render_email('invoice_sent', quote=quote, invoice=invoice, portal_link=payment_link(invoice))
    send_email(
        to=quote.customer_email,
        subject=f'{settings.company_name}: Invoice {invoice.invoice_number} for Your Quote Request',
        text=text,
        html=html,
        attachments=[Attachment(filename=f'Invoice_{invoice.invoice_number}.pdf', content=pdf)],
    )


def issue_invoice(db: Session, *, quote_id: str, options: InvoiceGenerate) -> Outcome[Invoice]:
    """Generate and commit the invoice, then deliver it on a best-effort basis.

    A failure to render, email or notify is reported on the outcome and logged;
    the committed invoice and quote update stay in place.
    """
    invoice = generate_invoice(db, quote_id=quote_id, options=options)
    db.commit()
    quote = get_quote_request(db, quote_id=quote_id)

    report = SideEffectReport()
    rendered: dict[str, bytes] = {}
    attempt_side_effect(report, 'pdf', lambda: rendered.setdefault('pdf', render_invoice_pdf(invoice)))
    if 'pdf' in rendered:
        attempt_side_effect(report, 'email', lambda: _send_invoice_email(quote, invoice, rendered['pdf']))
    else:
        report.record('email', False, 'Invoice PDF could not be rendered')
    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=f'Invoice Sent: {invoice.invoice_number}',
            message=f'Invoice #{invoice.invoice_number} for quote {quote.request_number} has been sent to {quote.company_name}.',
            type=NotificationType.INVOICE_SENT,
            link=f'/admin/quotes/{quote.id}',
            related_id=invoice.id,
        ),
        db=db,
    )
    return Outcome(value=invoice, side_effects=report)


def get_invoice(db: Session, *, invoice_id: str) -> Invoice:
    invoice = db.get(Invoice, require_object_id(invoice_id))
    if invoice is None:
        raise NotFoundError('Invoice not found.')
    return invoice


def get_invoice_for_quote(db: Session, *, quote_id: str) -> Invoice:
    quote = get_quote_request(db, quote_id=quote_id)
    invoice = db.execute(select(Invoice).where(Invoice.quote_request_id == quote.id)).scalar_one_or_none()
    if invoice is None:
        raise NotFoundError('No invoice has been generated for this quote request.')
    return invoice


def update_invoice_status(db: Session, *, invoice_id: str, status: InvoiceStatus) -> Invoice:
    invoice = get_invoice(db, invoice_id=invoice_id)
    invoice.status = InvoiceStatus(status)
    invoice.updated_at = utcnow()
    db.flush()
    logger.info('Invoice %s status updated to %s', invoice.invoice_number, invoice.status.value)
    return invoice
