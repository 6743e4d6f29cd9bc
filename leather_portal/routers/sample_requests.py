from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from leather_portal.db import get_db
from leather_portal.errors import ValidationFailed
from leather_portal.forms import read_body
from leather_portal.schemas import BankTransferCreate, PaymentIntentCreate, SampleRequestCreate, SampleRequestUpdate
from leather_portal.serializers import envelope, serialize_sample_request
from leather_portal.services.provider_factory import get_payment_gateway
from leather_portal.services.sample_service import (
    announce_sample_deleted,
    announce_sample_request,
    announce_sample_update,
    create_payment_intent,
    create_sample_request,
    delete_sample_request,
    get_sample_request,
    list_sample_requests,
    update_sample_request,
)
from leather_portal.services.shipping_service import shipping_quote
from leather_portal.services.wise_service import check_transfer_status, create_transfer

router = APIRouter(prefix='/sample-requests', tags=['sample-requests'])


@router.get('/shipping-fee')
def shipping_fee(country: str = ''):
    if not country.strip():
        raise ValidationFailed.for_field('country', 'Valid country is required to calculate shipping.')
    return envelope('Shipping fee calculated successfully.', shipping_quote(country.strip()))


@router.post('/create-payment-intent')
def payment_intent(payload: PaymentIntentCreate):
    intent = create_payment_intent(
        get_payment_gateway(),
        country=payload.country,
        currency=payload.currency,
        metadata=payload.metadata,
    )
    return envelope(
        'Payment intent created successfully.',
        {
            'client_secret': intent.client_secret,
            'payment_intent_id': intent.id,
            'amount': intent.amount,
            'currency': intent.currency,
        },
    )


@router.post('/create-wise-transfer')
def wise_transfer(payload: BankTransferCreate):
    transfer = create_transfer(
        country=payload.country,
        currency=payload.currency,
        email=str(payload.email) if payload.email else None,
        contact_person=payload.contact_person,
        company_name=payload.company_name,
        metadata=payload.metadata,
    )
    return envelope('Bank transfer created successfully.', asdict(transfer))


@router.get('/check-wise-transfer')
def wise_transfer_status(transfer_id: str = Query(default='', alias='transferId')):
    status = check_transfer_status(transfer_id)
    return envelope('Transfer status retrieved successfully.', asdict(status))


@router.post('')
def create(payload: SampleRequestCreate, db: Session = Depends(get_db)):
    creation = create_sample_request(db, data=payload)
    if not creation.created:
        return envelope('Sample request already exists for this payment.', serialize_sample_request(creation.sample))

    db.commit()
    report = announce_sample_request(db, creation.sample)
    return JSONResponse(
        status_code=201,
        content=envelope(
            'Sample request submitted successfully.',
            serialize_sample_request(creation.sample),
            side_effects=report.as_dict(),
        ),
    )


@router.get('')
def list_all(
    status: str | None = None,
    sample_type: str | None = Query(default=None, alias='sampleType'),
    country: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    sort_by: str | None = Query(default=None, alias='sortBy'),
    order: str | None = None,
    db: Session = Depends(get_db),
):
    result = list_sample_requests(
        db,
        status=status,
        sample_type=sample_type,
        country=country,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
    )
    return envelope(
        'Sample requests retrieved successfully.',
        [serialize_sample_request(sample) for sample in result.rows],
        pagination=result.pagination(),
    )


@router.get('/{sample_id}')
def detail(sample_id: str, db: Session = Depends(get_db)):
    sample = get_sample_request(db, sample_id=sample_id)
    return envelope('Sample request retrieved successfully.', serialize_sample_request(sample))


@router.patch('/{sample_id}')
async def update(sample_id: str, request: Request, db: Session = Depends(get_db)):
    body = await read_body(request)
    changes = SampleRequestUpdate.model_validate(body).changes()
    result = update_sample_request(db, sample_id=sample_id, changes=changes)
    db.commit()
    report = announce_sample_update(db, result)
    return envelope(
        'Sample request updated successfully.',
        serialize_sample_request(result.sample),
        side_effects=report.as_dict(),
    )


@router.delete('/{sample_id}')
def delete(sample_id: str, db: Session = Depends(get_db)):
    sample = delete_sample_request(db, sample_id=sample_id)
    db.commit()
    announce_sample_deleted(db, sample)
    return envelope('Sample request deleted successfully.')
