from __future__ import annotations

import html
import io
from datetime import datetime
from decimal import Decimal

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from leather_portal.models import Invoice

TERMS_LABELS = {
    '100_advance': '100% Advance Payment',
    '30_70_split': '30% Advance, 70% Before Dispatch',
    'lc': 'Letter of Credit',
}


def _amount(value: Decimal | str | int | float | None) -> str:
    return f'{Decimal(str(value or 0)):,.2f}'


def _date(value: datetime | None) -> str:
    return value.strftime('%b %d, %Y') if value else ''


def _block(*lines: str | None) -> str:
    return '<br/>'.join(html.escape(str(line)) for line in lines if line)


def render_invoice_pdf(invoice: Invoice) -> bytes:
    """Render the fixed A4 invoice layout and return the PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=20 * mm,
        bottomMargin=20 * mm,
        title=f'Invoice {invoice.invoice_number}',
    )
    styles = getSampleStyleSheet()
    normal = styles['BodyText'].clone('InvoiceBody')
    normal.leading = 14
    heading = styles['Heading1'].clone('InvoiceHeading')
    heading.textColor = colors.HexColor('#5a3a1a')
    section = styles['Heading4'].clone('InvoiceSection')
    section.spaceBefore = 10
    section.spaceAfter = 4

    elements: list = []
    elements.append(Paragraph(html.escape(invoice.vendor_name), heading))
    elements.append(Paragraph(_block(invoice.vendor_address, invoice.vendor_email, invoice.vendor_phone), normal))
    elements.append(Spacer(1, 8 * mm))

    bill_to = _block(invoice.customer_name, invoice.company_name, invoice.customer_address, invoice.customer_country, invoice.customer_email)
    details = _block(
        f'Invoice #: {invoice.invoice_number}',
        f'Issue Date: {_date(invoice.issue_date)}',
        f'Due Date: {_date(invoice.due_date)}',
        f'Status: {invoice.status.value.upper()}',
    )
    header_table = Table(
        [[Paragraph('<b>Bill To</b><br/>' + bill_to, normal), Paragraph('<b>Invoice Details</b><br/>' + details, normal)]],
        colWidths=[85 * mm, 85 * mm],
    )
    header_table.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    elements.append(header_table)
    elements.append(Spacer(1, 8 * mm))

    rows = [['Item', 'Quantity', 'Unit Price', 'Total']]
    for item in invoice.items:
        rows.append(
            [
                Paragraph(html.escape(str(item.get('item_name', ''))), normal),
                f"{item.get('quantity', '')} {item.get('quantity_unit', '')}".strip(),
                f"${_amount(item.get('unit_price'))}",
                f"${_amount(item.get('total_price'))}",
            ]
        )
    item_table = Table(rows, colWidths=[80 * mm, 30 * mm, 30 * mm, 30 * mm], repeatRows=1)
    item_table.setStyle(
        TableStyle(
            [
                ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#efe4d6')),
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('GRID', (0, 0), (-1, -1), 0.25, colors.grey),
                ('ALIGN', (1, 1), (-1, -1), 'RIGHT'),
                ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ]
        )
    )
    elements.append(item_table)
    elements.append(Spacer(1, 4 * mm))

    tax_label = 'Tax'
    if invoice.tax_rate:
        tax_label = f'Tax ({Decimal(str(invoice.tax_rate)) * 100:.2f}%)'
    totals = Table(
        [
            ['Subtotal', f'${_amount(invoice.subtotal)}'],
            [tax_label, f'${_amount(invoice.tax_amount)}'],
            ['Shipping', f'${_amount(invoice.shipping_cost)}'],
            ['Total Amount', f'${_amount(invoice.total_amount)}'],
        ],
        colWidths=[140 * mm, 30 * mm],
    )
    totals.setStyle(
        TableStyle(
            [
                ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
                ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
                ('LINEABOVE', (0, -1), (-1, -1), 0.5, colors.black),
            ]
        )
    )
    elements.append(totals)

    terms = getattr(invoice.payment_terms, 'value', invoice.payment_terms)
    elements.append(Paragraph('Payment Terms', section))
    elements.append(Paragraph(html.escape(TERMS_LABELS.get(terms, terms)), normal))
    if invoice.payment_instructions:
        elements.append(Paragraph(_block(invoice.payment_instructions), normal))
    if terms == 'lc':
        elements.append(
            Paragraph(
                _block(
                    f'LC Bank: {invoice.lc_bank_name}' if invoice.lc_bank_name else None,
                    f'LC Contact: {invoice.lc_contact_person}' if invoice.lc_contact_person else None,
                    f'LC Contact Email: {invoice.lc_contact_email}' if invoice.lc_contact_email else None,
                ),
                normal,
            )
        )

    bank = invoice.vendor_bank_details or {}
    elements.append(Paragraph('Bank Details', section))
    elements.append(
        Paragraph(
            _block(
                f"Bank: {bank.get('bank_name', '')}",
                f"Account Number: {bank.get('account_number', '')}",
                f"SWIFT: {bank.get('swift_code', '')}",
                f"IBAN: {bank.get('iban', '')}",
            ),
            normal,
        )
    )

    if invoice.notes:
        elements.append(Paragraph('Notes', section))
        elements.append(Paragraph(_block(*invoice.notes.splitlines()), normal))

    doc.build(elements)
    return buffer.getvalue()
