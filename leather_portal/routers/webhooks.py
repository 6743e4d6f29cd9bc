from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from leather_portal.db import get_db
from leather_portal.serializers import envelope
from leather_portal.services.sample_service import announce_payment_result, handle_payment_webhook

router = APIRouter(tags=['webhooks'])


@router.post('/stripe-webhooks')
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    # The signature covers the exact bytes received, so read before any parsing.
    payload = await request.body()
    result = handle_payment_webhook(db, payload=payload, signature=request.headers.get('stripe-signature'))
    announce_payment_result(db, result)
    return envelope(
        'Webhook received.',
        {'received': True, 'event_type': result.event_type, 'applied': result.applied},
    )
