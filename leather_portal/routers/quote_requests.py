from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from leather_portal.db import get_db
from leather_portal.forms import read_body
from leather_portal.schemas import InvoiceGenerate, QuoteRequestCreate, QuoteRequestUpdate
from leather_portal.serializers import envelope, serialize_invoice, serialize_quote_request
from leather_portal.services.invoice_service import get_invoice_for_quote, issue_invoice
from leather_portal.services.quote_service import (
    announce_quote_deleted,
    announce_quote_request,
    announce_quote_update,
    create_quote_request,
    delete_quote_request,
    get_quote_request,
    list_quote_requests,
    update_quote_request,
)

router = APIRouter(prefix='/quote-requests', tags=['quote-requests'])


@router.post('')
def create(payload: QuoteRequestCreate, db: Session = Depends(get_db)):
    quote = create_quote_request(db, data=payload)
    db.commit()
    report = announce_quote_request(db, quote)
    return JSONResponse(
        status_code=201,
        content=envelope(
            'Quote request submitted successfully.',
            serialize_quote_request(quote),
            side_effects=report.as_dict(),
        ),
    )


@router.get('')
def list_all(
    status: str | None = None,
    destination_country: str | None = Query(default=None, alias='destinationCountry'),
    item_type_category: str | None = Query(default=None, alias='itemTypeCategory'),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    sort_by: str | None = Query(default=None, alias='sortBy'),
    order: str | None = None,
    db: Session = Depends(get_db),
):
    result = list_quote_requests(
        db,
        status=status,
        destination_country=destination_country,
        item_type_category=item_type_category,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
    )
    return envelope(
        'Quote requests retrieved successfully.',
        [serialize_quote_request(quote) for quote in result.rows],
        pagination=result.pagination(),
    )


@router.get('/{quote_id}')
def detail(quote_id: str, db: Session = Depends(get_db)):
    quote = get_quote_request(db, quote_id=quote_id)
    return envelope('Quote request retrieved successfully.', serialize_quote_request(quote))


@router.patch('/{quote_id}')
async def update(quote_id: str, request: Request, db: Session = Depends(get_db)):
    body = await read_body(request)
    changes = QuoteRequestUpdate.model_validate(body).changes()
    result = update_quote_request(db, quote_id=quote_id, changes=changes)
    db.commit()
    report = announce_quote_update(db, result)
    return envelope(
        'Quote request updated successfully.',
        serialize_quote_request(result.quote),
        side_effects=report.as_dict(),
    )


@router.delete('/{quote_id}')
def delete(quote_id: str, db: Session = Depends(get_db)):
    quote = delete_quote_request(db, quote_id=quote_id)
    db.commit()
    announce_quote_deleted(db, quote)
    return envelope('Quote request deleted successfully.')


@router.patch('/{quote_id}/invoice')
async def generate_invoice(quote_id: str, request: Request, db: Session = Depends(get_db)):
    body = await read_body(request)
    options = InvoiceGenerate.model_validate(body)
    outcome = issue_invoice(db, quote_id=quote_id, options=options)
    quote = get_quote_request(db, quote_id=quote_id)
    message = 'Invoice generated and sent successfully.'
    if not outcome.side_effects.succeeded('email'):
        message = 'Invoice generated successfully, but the email could not be sent.'
    return envelope(
        message,
        {
            'invoice': serialize_invoice(outcome.value),
            'quote_request': serialize_quote_request(quote),
        },
        side_effects=outcome.side_effects.as_dict(),
    )


@router.get('/{quote_id}/invoice')
def invoice_for_quote(quote_id: str, db: Session = Depends(get_db)):
    invoice = get_invoice_for_quote(db, quote_id=quote_id)
    return envelope('Invoice retrieved successfully.', serialize_invoice(invoice))
