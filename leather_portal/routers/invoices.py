from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from leather_portal.db import get_db
from leather_portal.forms import read_body
from leather_portal.schemas import InvoiceStatusUpdate
from leather_portal.serializers import envelope, serialize_invoice
from leather_portal.services.invoice_pdf_service import render_invoice_pdf
from leather_portal.services.invoice_service import get_invoice, update_invoice_status

router = APIRouter(prefix='/invoices', tags=['invoices'])


@router.get('/{invoice_id}')
def detail(invoice_id: str, db: Session = Depends(get_db)):
    invoice = get_invoice(db, invoice_id=invoice_id)
    return envelope('Invoice retrieved successfully.', serialize_invoice(invoice))


@router.get('/{invoice_id}/pdf')
def pdf(invoice_id: str, db: Session = Depends(get_db)):
    invoice = get_invoice(db, invoice_id=invoice_id)
    content = render_invoice_pdf(invoice)
    return Response(
        content=content,
        media_type='application/pdf',
        headers={'Content-Disposition': f'inline; filename="Invoice_{invoice.invoice_number}.pdf"'},
    )


@router.patch('/{invoice_id}')
async def update_status(invoice_id: str, request: Request, db: Session = Depends(get_db)):
    body = await read_body(request)
    payload = InvoiceStatusUpdate.model_validate(body)
    invoice = update_invoice_status(db, invoice_id=invoice_id, status=payload.status)
    db.commit()
    return envelope('Invoice status updated successfully.', serialize_invoice(invoice))
