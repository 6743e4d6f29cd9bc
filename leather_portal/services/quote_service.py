from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from leather_portal.config import settings
from leather_portal.errors import ConflictError, NotFoundError, ValidationFailed
from leather_portal.models import (
    Invoice,
    ItemTypeCategory,
    NotificationType,
    QuotePaymentMethod,
    QuoteRequest,
    QuoteStatus,
    utcnow,
)
from leather_portal.schemas import QuoteRequestCreate
from leather_portal.services.identifiers import is_object_id, require_object_id, unique_request_number
from leather_portal.services.listing import Page, contains, paginate, resolve_sort
from leather_portal.services.mail_service import render_email, send_email
from leather_portal.services.notification_service import create_notification
from leather_portal.services.side_effects import SideEffectReport, attempt_side_effect

logger = logging.getLogger(__name__)

QUOTE_SORT_FIELDS = {
    'createdAt': QuoteRequest.created_at,
    'updatedAt': QuoteRequest.updated_at,
    'status': QuoteRequest.status,
    'customerName': QuoteRequest.customer_name,
    'companyName': QuoteRequest.company_name,
    'itemName': QuoteRequest.item_name,
    'proposedTotalPrice': QuoteRequest.proposed_total_price,
    'requestNumber': QuoteRequest.request_number,
}

TERMINAL_STATUSES = frozenset({QuoteStatus.REJECTED, QuoteStatus.DISPATCHED, QuoteStatus.CANCELLED})

_TRANSITIONS: dict[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.REQUESTED: frozenset({QuoteStatus.APPROVED, QuoteStatus.REJECTED, QuoteStatus.CANCELLED}),
    QuoteStatus.APPROVED: frozenset({QuoteStatus.PAID, QuoteStatus.REJECTED, QuoteStatus.CANCELLED}),
    QuoteStatus.PAID: frozenset({QuoteStatus.DISPATCHED, QuoteStatus.CANCELLED}),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.DISPATCHED: frozenset(),
    QuoteStatus.CANCELLED: frozenset(),
}

_EDITABLE_FIELDS = (
    'status',
    'admin_comments',
    'proposed_price_per_unit',
    'proposed_total_price',
    'payment_method',
    'payment_details',
    'lc_details',
    'tracking_number',
    'tracking_link',
    'dispatched_at',
)


@dataclass(frozen=True)
class QuoteUpdate:
    quote: QuoteRequest
    previous_status: QuoteStatus

    @property
    def status_changed(self) -> bool:
        return self.quote.status != self.previous_status


def allowed_transitions(status: QuoteStatus) -> frozenset[QuoteStatus]:
    """Statuses reachable from ``status`` under the intended business flow."""
    return _TRANSITIONS[QuoteStatus(status)]


def check_transition(current: QuoteStatus, new: QuoteStatus) -> None:
    if current == new or not settings.enforce_quote_transitions:
        return
    if new not in allowed_transitions(current):
        raise ValidationFailed.for_field('status', f'Cannot change status from {current.value} to {new.value}')


def portal_link(quote: QuoteRequest) -> str:
    return f"{settings.public_base_url.rstrip('/')}/customer/quotes/{quote.id}"


def _request_number_taken(db: Session, candidate: str) -> bool:
    return db.execute(select(QuoteRequest.id).where(QuoteRequest.request_number == candidate)).first() is not None


def create_quote_request(db: Session, *, data: QuoteRequestCreate) -> QuoteRequest:
    if data.quantity < 1:
        raise ValidationFailed.for_field('quantity', 'Quantity must be at least 1.')

    quote = QuoteRequest(
        request_number=unique_request_number(lambda candidate: _request_number_taken(db, candidate)),
        item_name=data.item_name,
        item_id=data.item_id.lower() if data.item_id else None,
        item_type_category=ItemTypeCategory(data.item_type_category),
        customer_name=data.customer_name,
        customer_email=str(data.customer_email),
        company_name=data.company_name,
        customer_phone=data.customer_phone,
        destination_country=data.destination_country,
        quantity=data.quantity,
        quantity_unit=data.quantity_unit,
        additional_comments=data.additional_comments,
        status=QuoteStatus.REQUESTED,
    )
    db.add(quote)
    db.flush()
    logger.info('Quote request created: %s (Ref: %s) from %s', quote.id, quote.request_number, quote.company_name)
    return quote


def list_quote_requests(
    db: Session,
    *,
    status: str | None = None,
    destination_country: str | None = None,
    item_type_category: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str | None = None,
    order: str | None = None,
) -> Page:
    stmt = select(QuoteRequest)
    try:
        if status and status != 'all':
            stmt = stmt.where(QuoteRequest.status == QuoteStatus(status))
        if item_type_category and item_type_category != 'all':
            stmt = stmt.where(QuoteRequest.item_type_category == ItemTypeCategory(item_type_category))
    except ValueError as exc:
        raise ValidationFailed('Validation Error', errors=[{'path': 'query', 'message': str(exc)}]) from exc
    if destination_country:
        stmt = stmt.where(QuoteRequest.destination_country == destination_country)
    if search:
        terms = [
            contains(QuoteRequest.customer_name, search),
            contains(QuoteRequest.company_name, search),
            contains(QuoteRequest.item_name, search),
            contains(QuoteRequest.request_number, search),
        ]
        if is_object_id(search):
            terms.append(QuoteRequest.id == search.lower())
        stmt = stmt.where(or_(*terms))

    order_by = resolve_sort(sort_by, order, QUOTE_SORT_FIELDS, entity='quote requests')
    result = paginate(db, stmt, page=page, limit=limit, order_by=order_by)
    logger.info('Retrieved %s quote requests (total: %s)', len(result.rows), result.total)
    return result


def get_quote_request(db: Session, *, quote_id: str) -> QuoteRequest:
    quote = db.get(QuoteRequest, require_object_id(quote_id))
    if quote is None:
        raise NotFoundError('Quote request not found.')
    return quote


def update_quote_request(db: Session, *, quote_id: str, changes: dict) -> QuoteUpdate:
    quote = get_quote_request(db, quote_id=quote_id)
    previous_status = quote.status

    unknown = sorted(set(changes) - set(_EDITABLE_FIELDS))
    if unknown:
        raise ValidationFailed(
            'Validation Error',
            errors=[{'path': key, 'message': 'Field cannot be updated'} for key in unknown],
        )

    if changes.get('status') is not None:
        new_status = QuoteStatus(changes['status'])
        check_transition(previous_status, new_status)
        changes['status'] = new_status
    if changes.get('payment_method') is not None:
        changes['payment_method'] = QuotePaymentMethod(changes['payment_method'])

    for key, value in changes.items():
        setattr(quote, key, value)

    if quote.status == QuoteStatus.DISPATCHED and quote.dispatched_at is None:
        quote.dispatched_at = utcnow()
    quote.updated_at = utcnow()
    db.flush()

    logger.info('Quote request updated: %s (Ref: %s) - Status: %s', quote.id, quote.request_number, quote.status.value)
    return QuoteUpdate(quote=quote, previous_status=previous_status)


def delete_quote_request(db: Session, *, quote_id: str) -> QuoteRequest:
    quote = get_quote_request(db, quote_id=quote_id)
    has_invoice = db.execute(select(Invoice.id).where(Invoice.quote_request_id == quote.id)).first() is not None
    if has_invoice:
        raise ConflictError('Quote request has an invoice and cannot be deleted.')
    db.delete(quote)
    db.flush()
    logger.info('Quote request deleted: %s (Ref: %s)', quote.id, quote.request_number)
    return quote


def _send_received_email(quote: QuoteRequest) -> None:
    text, html = render_email('quote_received', quote=quote, portal_link=portal_link(quote))
    send_email(
        to=quote.customer_email,
        subject=f'{settings.company_name}: Your Quote Request (Ref: {quote.request_number}) Received',
        text=text,
        html=html,
    )


def _status_subject(quote: QuoteRequest) -> str:
    ref = quote.request_number
    subjects = {
        QuoteStatus.APPROVED: f'Your Quote for "{quote.item_name}" Has Been Approved! (Ref: {ref})',
        QuoteStatus.REJECTED: f'Update on Your Quote Request for "{quote.item_name}" (Ref: {ref})',
        QuoteStatus.PAID: f'Payment Confirmation for Your Quote Request (Ref: {ref})',
        QuoteStatus.DISPATCHED: f'Your Order for "{quote.item_name}" Has Been Dispatched! (Ref: {ref})',
        QuoteStatus.CANCELLED: f'Your Quote Request for "{quote.item_name}" Has Been Cancelled (Ref: {ref})',
    }
    default = f'Quote Request Status Update for "{quote.item_name}" (Ref: {ref})'
    return f'{settings.company_name}: {subjects.get(quote.status, default)}'


def _send_status_email(update: QuoteUpdate) -> None:
    quote = update.quote
    text, html = render_email(
        'quote_status',
        quote=quote,
        previous_status=update.previous_status,
        portal_link=portal_link(quote),
    )
    send_email(to=quote.customer_email, subject=_status_subject(quote), text=text, html=html)


def announce_quote_request(db: Session, quote: QuoteRequest) -> SideEffectReport:
    report = SideEffectReport()
    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=f'New Quote Request: {quote.company_name}',
            message=(
                f'Quote for {quote.item_name} (Qty: {quote.quantity} {quote.quantity_unit}) from '
                f'{quote.customer_name} (Ref: {quote.request_number}) has been submitted.'
            ),
            type=NotificationType.NEW_QUOTE_REQUEST,
            link=f'/admin/quotes/{quote.id}',
            related_id=quote.id,
        ),
        db=db,
    )
    attempt_side_effect(report, 'email', lambda: _send_received_email(quote))
    return report


def announce_quote_update(db: Session, update: QuoteUpdate) -> SideEffectReport:
    report = SideEffectReport()
    if not update.status_changed:
        return report
    quote = update.quote
    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=f'Quote Status Update: {quote.request_number}',
            message=(
                f'Quote for {quote.item_name} from {quote.company_name} (Ref: {quote.request_number}) '
                f'status changed to {quote.status.value}.'
            ),
            type=NotificationType.QUOTE_STATUS_UPDATE,
            link=f'/admin/quotes/{quote.id}',
            related_id=quote.id,
        ),
        db=db,
    )
    attempt_side_effect(report, 'email', lambda: _send_status_email(update))
    return report


def announce_quote_deleted(db: Session, quote: QuoteRequest) -> SideEffectReport:
    report = SideEffectReport()
    attempt_side_effect(
        report,
        'notification',
        lambda: create_notification(
            db,
            title=f'Quote Request Deleted: {quote.request_number}',
            message=f'Quote request (Ref: {quote.request_number}) from {quote.company_name} was deleted.',
            type=NotificationType.INFO,
            related_id=quote.id,
        ),
        db=db,
    )
    return report
