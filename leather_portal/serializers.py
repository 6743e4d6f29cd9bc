from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum

from leather_portal.models import Invoice, Notification, QuoteRequest, SampleRequest


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def _enum_value(value: Enum | str | None) -> str | None:
    return getattr(value, 'value', value)


def serialize_quote_request(quote: QuoteRequest) -> dict:
    return {
        'id': quote.id,
        'request_number': quote.request_number,
        'item_name': quote.item_name,
        'item_id': quote.item_id,
        'item_type_category': _enum_value(quote.item_type_category),
        'customer_name': quote.customer_name,
        'customer_email': quote.customer_email,
        'company_name': quote.company_name,
        'customer_phone': quote.customer_phone,
        'destination_country': quote.destination_country,
        'quantity': quote.quantity,
        'quantity_unit': quote.quantity_unit,
        'additional_comments': quote.additional_comments,
        'status': _enum_value(quote.status),
        'admin_comments': quote.admin_comments,
        'invoice_id': quote.invoice_id,
        'proposed_price_per_unit': _money(quote.proposed_price_per_unit),
        'proposed_total_price': _money(quote.proposed_total_price),
        'payment_method': _enum_value(quote.payment_method),
        'payment_details': quote.payment_details,
        'lc_details': quote.lc_details,
        'tracking_number': quote.tracking_number,
        'tracking_link': quote.tracking_link,
        'dispatched_at': _iso(quote.dispatched_at),
        'created_at': _iso(quote.created_at),
        'updated_at': _iso(quote.updated_at),
    }


def serialize_invoice(invoice: Invoice) -> dict:
    return {
        'id': invoice.id,
        'quote_request_id': invoice.quote_request_id,
        'invoice_number': invoice.invoice_number,
        'issue_date': _iso(invoice.issue_date),
        'due_date': _iso(invoice.due_date),
        'status': _enum_value(invoice.status),
        'customer_name': invoice.customer_name,
        'customer_email': invoice.customer_email,
        'company_name': invoice.company_name,
        'customer_address': invoice.customer_address,
        'customer_country': invoice.customer_country,
        'vendor_name': invoice.vendor_name,
        'vendor_address': invoice.vendor_address,
        'vendor_email': invoice.vendor_email,
        'vendor_phone': invoice.vendor_phone,
        'vendor_bank_details': invoice.vendor_bank_details,
        'items': invoice.items,
        'subtotal': _money(invoice.subtotal),
        'tax_rate': _money(invoice.tax_rate),
        'tax_amount': _money(invoice.tax_amount),
        'shipping_cost': _money(invoice.shipping_cost),
        'total_amount': _money(invoice.total_amount),
        'payment_terms': _enum_value(invoice.payment_terms),
        'payment_instructions': invoice.payment_instructions,
        'notes': invoice.notes,
        'lc_bank_name': invoice.lc_bank_name,
        'lc_contact_person': invoice.lc_contact_person,
        'lc_contact_email': invoice.lc_contact_email,
        'created_at': _iso(invoice.created_at),
        'updated_at': _iso(invoice.updated_at),
    }


def serialize_sample_request(sample: SampleRequest) -> dict:
    return {
        'id': sample.id,
        'request_number': sample.request_number,
        'company_name': sample.company_name,
        'contact_person': sample.contact_person,
        'email': sample.email,
        'phone': sample.phone,
        'country': sample.country,
        'address': sample.address,
        'urgency': _enum_value(sample.urgency),
        'sample_type': _enum_value(sample.sample_type),
        'quantity_samples': sample.quantity_samples,
        'material_preference': sample.material_preference,
        'finish_type': sample.finish_type,
        'color_preferences': sample.color_preferences,
        'specific_requests': sample.specific_requests,
        'business_type': sample.business_type,
        'intended_use': sample.intended_use,
        'future_volume': sample.future_volume,
        'product_id': sample.product_id,
        'product_name': sample.product_name,
        'product_type_category': sample.product_type_category,
        'shipping_fee': sample.shipping_fee,
        'payment_method': _enum_value(sample.payment_method),
        'payment_status': _enum_value(sample.payment_status),
        'stripe_payment_intent_id': sample.stripe_payment_intent_id,
        'wise_transfer_id': sample.wise_transfer_id,
        'payment_error': (
            {'code': sample.payment_error_code, 'message': sample.payment_error_message}
            if sample.payment_error_code or sample.payment_error_message
            else None
        ),
        'shipping_tracking_link': sample.shipping_tracking_link,
        'shipped_at': _iso(sample.shipped_at),
        'created_at': _iso(sample.created_at),
        'updated_at': _iso(sample.updated_at),
    }


def serialize_notification(notification: Notification) -> dict:
    return {
        'id': notification.id,
        'title': notification.title,
        'message': notification.message,
        'type': _enum_value(notification.type),
        'read': notification.read,
        'link': notification.link,
        'related_id': notification.related_id,
        'created_at': _iso(notification.created_at),
        'updated_at': _iso(notification.updated_at),
    }


def envelope(message: str, data=None, *, pagination: dict | None = None, **extra) -> dict:
    body: dict = {'success': True, 'message': message}
    if data is not None:
        body['data'] = data
    if pagination is not None:
        body['pagination'] = pagination
    body.update(extra)
    return body
