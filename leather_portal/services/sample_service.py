from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from leather_portal.config import settings
from leather_portal.errors import NotFoundError, StoreError, ValidationFailed
from leather_portal.models import (
    NotificationType,
    PaymentStatus,
    SamplePaymentMethod,
    SampleRequest,
    SampleType,
    Urgency,
    utcnow,
)
from leather_portal.schemas import SampleRequestCreate
from leather_portal.services.identifiers import is_object_id, require_object_id, unique_request_number
from leather_portal.services.listing import Page, contains, paginate, resolve_sort
from leather_portal.services.mail_service import render_email, send_email
from leather_portal.services.notification_service import create_notification
from leather_portal.services.payment_gateway import PaymentGateway, PaymentIntent, construct_event
from leather_portal.services.shipping_service import DEFAULT_SHIPPING_TABLE, ShippingFeeTable, compute_shipping_fee
from leather_portal.services.side_effects import SideEffectReport, attempt_side_effect

logger = logging.getLogger(__name__)

SAMPLE_SORT_FIELDS = {
    'createdAt': SampleRequest.created_at,
    'updatedAt': SampleRequest.updated_at,
    'paymentStatus': SampleRequest.payment_status,
    'companyName': SampleRequest.company_name,
    'contactPerson': SampleRequest.contact_person,
    'country': SampleRequest.country,
    'requestNumber': SampleRequest.request_number,
    'shippingFee': SampleRequest.shipping_fee,
}

PAYMENT_SUCCEEDED = 'payment_intent.succeeded'
PAYMENT_FAILED = 'payment_intent.payment_failed'
WEBHOOK_UPDATABLE = frozenset({PaymentStatus.PENDING, PaymentStatus.FAILED})


@dataclass(frozen=True)
class SampleCreation:
    sample: SampleRequest
    created: bool


@dataclass(frozen=True)
class SampleUpdate:
    sample: SampleRequest
    previous_status: PaymentStatus
    previous_tracking_link: str | None

    @property
    def status_changed(self) -> bool:
        return self.sample.payment_status != self.previous_status

    @property
    def tracking_changed(self) -> bool:
        return self.sample.shipping_tracking_link != self.previous_tracking_link


@dataclass(frozen=True)
class WebhookResult:
    event_type: str
    intent_id: str | None = None
    handled: bool = False
    matched: bool = False
    applied: bool = False
    sample: SampleRequest | None = None


def portal_link(sample: SampleRequest) -> str:
    return f"{settings.public_base_url.rstrip('/')}/customer/samples/{sample.id}"


def request_title(sample: SampleRequest) -> str:
    if sample.product_name:
        return sample.product_name
    return sample.sample_type.value if sample.sample_type else 'your sample request'


def _validate_currency(currency: str) -> str:
    currency = (currency or '').lower()
    if currency != settings.sample_currency:
        raise ValidationFailed.for_field('currency', f'Only {settings.sample_currency.upper()} currency is supported currently.')
    return currency


def create_payment_intent(
    gateway: PaymentGateway,
    *,
    country: str,
    currency: str = 'usd',
    metadata: dict | None = None,
    table: ShippingFeeTable = DEFAULT_SHIPPING_TABLE,
) -> PaymentIntent:
    if not country or not country.strip():
        raise ValidationFailed.for_field('country', 'Valid country is required to calculate shipping.')
    currency = _validate_currency(currency)

    amount = compute_shipping_fee(country, table)
    if amount <= 0:
        logger.warning('Invalid shipping amount calculated for country %s: %s', country, amount)
        raise ValidationFailed.for_field('country', 'Unable to calculate shipping cost for this country.')

    intent_metadata = {str(key): str(value) for key, value in (metadata or {}).items()}
    intent_metadata.update(
        {
            'country': country,
            'shippingAmount': f'{amount / 100:.2f}',
            'source': 'sample_request',
            'created_at': utcnow().isoformat(),
        }
    )
    intent = gateway.create_payment_intent(
        amount=amount,
        currency=currency,
        metadata=intent_metadata,
        description=f'Sample request shipping fee for {country}',
    )
    logger.info('Payment intent %s created for %s (%s %s)', intent.id, country, intent.amount, intent.currency)
    return intent


def _find_by_payment_reference(db: Session, data: SampleRequestCreate) -> SampleRequest | None:
    clauses = []
    if data.stripe_payment_intent_id:
        clauses.append(SampleRequest.stripe_payment_intent_id == data.stripe_payment_intent_id)
    if data.wise_transfer_id:
        clauses.append(SampleRequest.wise_transfer_id == data.wise_transfer_id)
    if not clauses:
        return None
    return db.execute(select(SampleRequest).where(or_(*clauses))).scalars().first()


def _request_number_taken(db: Session, candidate: str) -> bool:
    return db.execute(select(SampleRequest.id).where(SampleRequest.request_number == candidate)).first() is not None


def create_sample_request(
    db: Session,
    *,
    data: SampleRequestCreate,
    table: ShippingFeeTable = DEFAULT_SHIPPING_TABLE,
) -> SampleCreation:
    """Persist a pending sample request linked to its payment reference.

    Submitting the same intent or transfer id again returns the stored request.
    """
    existing = _find_by_payment_reference(db, data)
    if existing is not None:
        logger.info('Sample request for payment reference already exists: %s', existing.id)
        return SampleCreation(sample=existing, created=False)

    fee = compute_shipping_fee(data.country, table)
    sample = SampleRequest(
        request_number=unique_request_number(lambda candidate: _request_number_taken(db, candidate)),
        company_name=data.company_name,
        contact_person=data.contact_person,
        email=str(data.email),
        phone=data.phone,
        country=data.country,
        address=data.address,
        urgency=Urgency(data.urgency),
        sample_type=SampleType(data.sample_type),
        quantity_samples=data.quantity_samples,
        material_preference=data.material_preference,
        finish_type=data.finish_type,
        color_preferences=data.color_preferences,
        specific_requests=data.specific_requests,
        business_type=data.business_type,
        intended_use=data.intended_use,
        future_volume=data.future_volume,
        product_id=data.product_id.lower() if data.product_id else None,
        product_name=data.product_name,
        product_type_category=data.product_type_category,
        shipping_fee=fee,
        payment_method=SamplePaymentMethod(data.payment_method),
        payment_status=PaymentStatus.PENDING,
        stripe_payment_intent_id=data.stripe_payment_intent_id,
        wise_transfer_id=data.wise_transfer_id,
    )
    db.add(sample)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = _find_by_payment_reference(db, data)
        if existing is None:
            raise
        logger.info('Concurrent submission for payment reference resolved to %s', existing.id)
        return SampleCreation(sample=existing, created=False)

    logger.info('Sample request created: %s (Req# %s) fee=%s', sample.id, sample.request_number, fee)
    return SampleCreation(sample=sample, created=True)


def list_sample_requests(
    db: Session,
    *,
    status: str | None = None,
    sample_type: str | None = None,
    country: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str | None = None,
    order: str | None = None,
) -> Page:
    stmt = select(SampleRequest)
    try:
        if status and status != 'all':
            stmt = stmt.where(SampleRequest.payment_status == PaymentStatus(status))
        if sample_type and sample_type != 'all':
            stmt = stmt.where(SampleRequest.sample_type == SampleType(sample_type))
    except ValueError as exc:
        raise ValidationFailed('Validation Error', errors=[{'path': 'query', 'message': str(exc)}]) from exc
    if country:
        stmt = stmt.where(SampleRequest.country == country)
    if search:
        terms = [
            contains(SampleRequest.company_name, search),
            contains(SampleRequest.contact_person, search),
            contains(SampleRequest.email, search),
            contains(SampleRequest.request_number, search),
        ]
        if is_object_id(search):
            terms.append(SampleRequest.id == search.lower())
        stmt = stmt.where(or_(*terms))

    order_by = resolve_sort(sort_by, order, SAMPLE_SORT_FIELDS, entity='sample requests')
    result = paginate(db, stmt, page=page, limit=limit, order_by=order_by)
    logger.info('Retrieved %s sample requests (total: %s)', len(result.rows), result.total)
    return result


def get_sample_request(db: Session, *, sample_id: str) -> SampleRequest:
    sample = db.get(SampleRequest, require_object_id(sample_id))
    if sample is None:
        raise NotFoundError('Sample request not found.')
    return sample


def update_sample_request(db: Session, *, sample_id: str, changes: dict) -> SampleUpdate:
    sample = get_sample_request(db, sample_id=sample_id)
    previous_status = sample.payment_status
    previous_tracking_link = sample.shipping_tracking_link

    if changes.get('status') is not None:
        new_status = PaymentStatus(changes['status'])
        sample.payment_status = new_status
        if new_status == PaymentStatus.SHIPPED and sample.shipped_at is None:
            sample.shipped_at = utcnow()
        elif new_status != PaymentStatus.SHIPPED and sample.shipped_at is not None:
            sample.shipped_at = None
    if 'shipping_tracking_link' in changes:
        sample.shipping_tracking_link = changes['shipping_tracking_link']

    sample.updated_at = utcnow()
    db.flush()
    logger.info(
        'Sample request updated: %s (Req# %s) - Status: %s',
        sample.id,
        sample.request_number,
        sample.payment_status.value,
    )
    return SampleUpdate(sample=sample, previous_status=previous_status, previous_tracking_link=previous_tracking_link)


def delete_sample_request(db: Session, *, sample_id: str) -> SampleRequest:
    sample = get_sample_request(db, sample_id=sample_id)
    db.delete(sample)
    db.flush()
    logger.info('Sample request deleted: %s (Req# %s)', sample.id, sample.request_number)
    return sample


def _apply_payment_status(db: Session, sample: SampleRequest, values: dict) -> bool:
    result = db.execute(
        update(SampleRequest)
        .where(
            SampleRequest.id == sample.id,
            SampleRequest.payment_status == sample.payment_status,
        )
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount > 0


def handle_payment_webhook(
    db: Session,
    *,
    payload: bytes,
    signature: str | None,
    secret: str | None = None,
    now: float | None = None,
) -> WebhookResult:
    """Verify a card-provider webhook and record the payment outcome.

    Verification happens before anything is parsed or written. Unknown intents
    are acknowledged; a failed write raises ``StoreError`` so the provider
    retries. Redelivered events change nothing and notify nobody.
    """
    event = construct_event(
        payload,
        signature,
        secret if secret is not None else settings.stripe_webhook_secret,
        tolerance=settings.webhook_tolerance_seconds,
        now=now,
    )
    logger.info('Webhook event received: type=%s id=%s', event.type, event.id)

    if event.type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
        logger.warning('Unhandled webhook event type: %s', event.type)
        return WebhookResult(event_type=event.type)

    intent_id = event.intent_id
    if not intent_id:
        logger.warning('Webhook %s carries no payment intent id', event.id)
        return WebhookResult(event_type=event.type, handled=True)

    if event.type == PAYMENT_SUCCEEDED:
        target = PaymentStatus.PAID
        values = {'payment_status': target, 'payment_error_code': None, 'payment_error_message': None}
    else:
        target = PaymentStatus.FAILED
        error = event.last_payment_error
        values = {
            'payment_status': target,
            'payment_error_code': error.get('code'),
            'payment_error_message': error.get('message'),
        }

    try:
        sample = db.execute(
            select(SampleRequest).where(SampleRequest.stripe_payment_intent_id == intent_id)
        ).scalar_one_or_none()
        if sample is None:
            logger.warning('Sample request not found for payment intent %s', intent_id)
            return WebhookResult(event_type=event.type, intent_id=intent_id, handled=True)

        redelivery = sample.payment_status == target and (
            target == PaymentStatus.PAID
            or (
                sample.payment_error_code == values['payment_error_code']
                and sample.payment_error_message == values['payment_error_message']
            )
        )
        if redelivery or sample.payment_status not in WEBHOOK_UPDATABLE:
            logger.info(
                'Payment intent %s event %s ignored; sample %s is %s',
                intent_id,
                event.type,
                sample.id,
                sample.payment_status.value,
            )
            return WebhookResult(event_type=event.type, intent_id=intent_id, handled=True, matched=True, sample=sample)

        applied = _apply_payment_status(db, sample, values)
        db.refresh(sample)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error('Database update failed for %s on intent %s: %s', event.type, intent_id, exc)
        raise StoreError('Failed to record payment status') from exc

    if applied:
        logger.info('Sample request %s payment status set to %s via webhook', sample.id, target.value)
    return WebhookResult(
        event_type=event.type,
        intent_id=intent_id,
        handled=True,
        matched=True,
        applied=applied,
        sample=sample,
    )


def _send_sample_email(sample: SampleRequest, kind: str, previous_status: PaymentStatus | None = None) -> None:
    subjects = {
        'received': f'Your Sample Request Has Been Received (Ref: {sample.request_number})',
        'payment_confirmed': f'Your Sample Request Payment Confirmed & Order Placed (Ref: {sample.request_number})!',
        'status_change': f'Status Update for Your Sample Request (Ref: {sample.request_number})',
        'tracking_update': f'Your Sample Order for "{request_title(sample)}" Has Been Shipped! (Ref: {sample.request_number})',
    }
    text, html = render_email(
        'sample_status',
        sample=sample,
        kind=kind,
        previous_status=previous_status,
        request_title=request_title(sample),
        portal_link=portal_link(sample),
    )
    send_email(to=sample.email, subject=f'{settings.company_name}: {subjects[kind]}', text=text, html=html)


def announce_sample_request(db: Session, sample: SampleRequest) -> SideEffectReport:
    report = SideEffectReport()
    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=f'New Sample Request from {sample.company_name}',
            message=(
                f'A new sample request (Ref: {sample.request_number}) has been received from '
                f'{sample.contact_person} ({sample.email}).'
            ),
            type=NotificationType.NEW_SAMPLE_REQUEST,
            link=f'/admin/samples/{sample.id}',
            related_id=sample.id,
        ),
        db=db,
    )
    attempt_side_effect(report, 'email', lambda: _send_sample_email(sample, 'received'))
    return report


def announce_payment_result(db: Session, result: WebhookResult) -> SideEffectReport:
    report = SideEffectReport()
    sample = result.sample
    if not result.applied or sample is None:
        return report

    if sample.payment_status == PaymentStatus.PAID:
        title = 'Payment Confirmed for Sample Request'
        message = f'Sample request {sample.request_number} from {sample.company_name} is now paid.'
        kind = NotificationType.PAYMENT_CONFIRMED
    else:
        title = 'Payment Failed for Sample Request'
        message = (
            f'Sample request {sample.request_number} from {sample.company_name} failed. '
            f"Reason: {sample.payment_error_message or 'Unknown'}."
        )
        kind = NotificationType.PAYMENT_FAILED

    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=title,
            message=message,
            type=kind,
            link=f'/admin/samples/{sample.id}',
            related_id=sample.id,
        ),
        db=db,
    )
    if sample.payment_status == PaymentStatus.PAID:
        attempt_side_effect(report, 'email', lambda: _send_sample_email(sample, 'payment_confirmed'))
    return report


def announce_sample_update(db: Session, update: SampleUpdate) -> SideEffectReport:
    report = SideEffectReport()
    sample = update.sample
    if update.status_changed:
        attempt_side_effect(
            report,
            'notification',
            lambda: create_notification(
                db,
                title=f'Sample Status Update: {sample.request_number}',
                message=f'Sample request from {sample.company_name} status changed to {sample.payment_status.value}.',
                type=NotificationType.SAMPLE_STATUS_UPDATE,
                link=f'/admin/samples/{sample.id}',
                related_id=sample.id,
            ),
            db=db,
        )
        attempt_side_effect(report, 'email', lambda: _send_sample_email(sample, 'status_change', update.previous_status))
    if sample.payment_status == PaymentStatus.SHIPPED and update.tracking_changed:
        attempt_side_effect(report, 'tracking_email', lambda: _send_sample_email(sample, 'tracking_update'))
    return report


def announce_sample_deleted(db: Session, sample: SampleRequest) -> SideEffectReport:
    report = SideEffectReport()
    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=f'Sample Request Deleted: {sample.company_name}',
            message=f'Sample request (Ref: {sample.request_number}) from {sample.contact_person} was deleted.',
            type=NotificationType.INFO,
            related_id=sample.id,
        ),
        db=db,
    )
    return report
