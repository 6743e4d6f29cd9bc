from __future__ import annotations

import secrets
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

OBJECT_ID_LENGTH = 24


def new_object_id() -> str:
    return secrets.token_hex(OBJECT_ID_LENGTH // 2)


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _enum(enum_cls: type[Enum], name: str) -> SQLEnum:
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Base(DeclarativeBase):
    pass


class QuoteStatus(str, Enum):
    REQUESTED = 'requested'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    PAID = 'paid'
    DISPATCHED = 'dispatched'
    CANCELLED = 'cancelled'


class ItemTypeCategory(str, Enum):
    FINISHED_PRODUCT = 'finished-product'
    RAW_LEATHER = 'raw-leather'
    CUSTOM = 'custom'


class QuotePaymentMethod(str, Enum):
    ADVANCE_BANK_TRANSFER = '100_advance_bank_transfer'
    SPLIT_BANK_TRANSFER = '30_70_split_bank_transfer'
    LETTER_OF_CREDIT = 'letter_of_credit'


class LcStatus(str, Enum):
    INITIATED = 'initiated'
    CONFIRMED = 'confirmed'
    REJECTED = 'rejected'
    COMPLETED = 'completed'


class PaymentTerms(str, Enum):
    ADVANCE_100 = '100_advance'
    SPLIT_30_70 = '30_70_split'
    LC = 'lc'


class InvoiceStatus(str, Enum):
    DRAFT = 'draft'
    SENT = 'sent'
    PAID = 'paid'
    CANCELLED = 'cancelled'


class SampleType(str, Enum):
    RAW_LEATHER = 'raw-leather'
    FINISHED_PRODUCTS = 'finished-products'
    BOTH = 'both'


class Urgency(str, Enum):
    STANDARD = 'standard'
    EXPRESS = 'express'
    RUSH = 'rush'


class SamplePaymentMethod(str, Enum):
    CARD = 'card'
    BANK_TRANSFER = 'bank_transfer'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'paid'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'
    FAILED = 'failed'
    REFUNDED = 'refunded'


class NotificationType(str, Enum):
    INFO = 'info'
    WARNING = 'warning'
    ERROR = 'error'
    SUCCESS = 'success'
    NEW_MESSAGE = 'new_message'
    NEW_SAMPLE_REQUEST = 'new_sample_request'
    NEW_CUSTOM_REQUEST = 'new_custom_request'
    SAMPLE_STATUS_UPDATE = 'sample_status_update'
    PAYMENT_CONFIRMED = 'payment_confirmed'
    PAYMENT_FAILED = 'payment_failed'
    NEW_QUOTE_REQUEST = 'new_quote_request'
    QUOTE_STATUS_UPDATE = 'quote_status_update'
    INVOICE_SENT = 'invoice_sent'
    PAYMENT_RECEIVED = 'payment_received'


class QuoteRequest(Base):
    __tablename__ = 'quote_requests'
    __table_args__ = (CheckConstraint('quantity >= 1', name='ck_quote_requests_quantity_positive'),)

    id: Mapped[str] = mapped_column(String(OBJECT_ID_LENGTH), primary_key=True, default=new_object_id)
    request_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str | None] = mapped_column(String(OBJECT_ID_LENGTH))
    item_type_category: Mapped[ItemTypeCategory] = mapped_column(_enum(ItemTypeCategory, 'item_type_category'), nullable=False)

    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str] = mapped_column(Text, nullable=False)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(Text)
    destination_country: Mapped[str] = mapped_column(Text, nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_unit: Mapped[str] = mapped_column(Text, nullable=False)
    additional_comments: Mapped[str | None] = mapped_column(Text)

    status: Mapped[QuoteStatus] = mapped_column(
        _enum(QuoteStatus, 'quote_status'), nullable=False, default=QuoteStatus.REQUESTED, server_default='requested'
    )
    admin_comments: Mapped[str | None] = mapped_column(Text)

    invoice_id: Mapped[str | None] = mapped_column(String(OBJECT_ID_LENGTH))
    proposed_price_per_unit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    proposed_total_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    payment_method: Mapped[QuotePaymentMethod | None] = mapped_column(_enum(QuotePaymentMethod, 'quote_payment_method'))
    payment_details: Mapped[dict | None] = mapped_column(JSON)
    lc_details: Mapped[dict | None] = mapped_column(JSON)

    tracking_number: Mapped[str | None] = mapped_column(Text)
    tracking_link: Mapped[str | None] = mapped_column(Text)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class Invoice(Base):
    __tablename__ = 'invoices'

    id: Mapped[str] = mapped_column(String(OBJECT_ID_LENGTH), primary_key=True, default=new_object_id)
    quote_request_id: Mapped[str] = mapped_column(
        String(OBJECT_ID_LENGTH), ForeignKey('quote_requests.id'), nullable=False, unique=True
    )
    invoice_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    issue_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[InvoiceStatus] = mapped_column(
        _enum(InvoiceStatus, 'invoice_status'), nullable=False, default=InvoiceStatus.DRAFT, server_default='draft'
    )

    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str] = mapped_column(Text, nullable=False)
    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    customer_address: Mapped[str | None] = mapped_column(Text)
    customer_country: Mapped[str | None] = mapped_column(Text)

    vendor_name: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_address: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_email: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_phone: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_bank_details: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    items: Mapped[list] = mapped_column(JSON, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(6, 4))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal('0'))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    payment_terms: Mapped[PaymentTerms] = mapped_column(_enum(PaymentTerms, 'payment_terms'), nullable=False)
    payment_instructions: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    lc_bank_name: Mapped[str | None] = mapped_column(Text)
    lc_contact_person: Mapped[str | None] = mapped_column(Text)
    lc_contact_email: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class SampleRequest(Base):
    __tablename__ = 'sample_requests'
    __table_args__ = (CheckConstraint('shipping_fee >= 0', name='ck_sample_requests_fee_non_negative'),)

    id: Mapped[str] = mapped_column(String(OBJECT_ID_LENGTH), primary_key=True, default=new_object_id)
    request_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)

    company_name: Mapped[str] = mapped_column(Text, nullable=False)
    contact_person: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text)
    country: Mapped[str] = mapped_column(Text, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[Urgency] = mapped_column(
        _enum(Urgency, 'sample_urgency'), nullable=False, default=Urgency.STANDARD, server_default='standard'
    )

    sample_type: Mapped[SampleType] = mapped_column(_enum(SampleType, 'sample_type'), nullable=False)
    quantity_samples: Mapped[str | None] = mapped_column(Text)
    material_preference: Mapped[str | None] = mapped_column(Text)
    finish_type: Mapped[str | None] = mapped_column(Text)
    color_preferences: Mapped[str | None] = mapped_column(Text)
    specific_requests: Mapped[str | None] = mapped_column(Text)
    business_type: Mapped[str | None] = mapped_column(Text)
    intended_use: Mapped[str | None] = mapped_column(Text)
    future_volume: Mapped[str | None] = mapped_column(Text)

    product_id: Mapped[str | None] = mapped_column(String(OBJECT_ID_LENGTH))
    product_name: Mapped[str | None] = mapped_column(Text)
    product_type_category: Mapped[str | None] = mapped_column(Text)

    shipping_fee: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_method: Mapped[SamplePaymentMethod] = mapped_column(
        _enum(SamplePaymentMethod, 'sample_payment_method'), nullable=False, default=SamplePaymentMethod.CARD, server_default='card'
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum(PaymentStatus, 'payment_status'), nullable=False, default=PaymentStatus.PENDING, server_default='pending'
    )
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    wise_transfer_id: Mapped[str | None] = mapped_column(String(255), unique=True)
    payment_error_code: Mapped[str | None] = mapped_column(Text)
    payment_error_message: Mapped[str | None] = mapped_column(Text)

    shipping_tracking_link: Mapped[str | None] = mapped_column(Text)
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )


class Notification(Base):
    __tablename__ = 'notifications'

    id: Mapped[str] = mapped_column(String(OBJECT_ID_LENGTH), primary_key=True, default=new_object_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        _enum(NotificationType, 'notification_type'), nullable=False, default=NotificationType.INFO, server_default='info'
    )
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    link: Mapped[str | None] = mapped_column(Text)
    related_id: Mapped[str | None] = mapped_column(String(OBJECT_ID_LENGTH))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )
