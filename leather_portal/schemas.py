"""Request bodies accepted at the HTTP boundary.

Clients may send camelCase or snake_case keys. Empty strings are treated as
absent, matching what browser forms submit for untouched inputs.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator, model_validator
from pydantic.alias_generators import to_camel

from leather_portal.models import (
    InvoiceStatus,
    ItemTypeCategory,
    LcStatus,
    PaymentStatus,
    PaymentTerms,
    QuotePaymentMethod,
    QuoteStatus,
    SamplePaymentMethod,
    SampleType,
    Urgency,
)


ObjectId = Annotated[str, Field(pattern=r'^[0-9a-fA-F]{24}$')]
SortOrder = Literal['asc', 'desc']


class RequestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra='ignore',
    )

    _json_fields: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode='before')
    @classmethod
    def _blank_strings_are_absent(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value != '' and value is not None}
        return data

    def changes(self) -> dict:
        """Fields the client actually sent; URLs and nested objects as plain JSON values."""
        changes = self.model_dump(exclude_unset=True)
        json_values = self.model_dump(exclude_unset=True, mode='json')
        for key in self._json_fields:
            if changes.get(key) is not None:
                changes[key] = json_values[key]
        return changes


class QuoteRequestCreate(RequestModel):
    item_name: str = Field(min_length=1, max_length=200)
    item_id: ObjectId | None = None
    item_type_category: ItemTypeCategory
    customer_name: str = Field(min_length=1, max_length=100)
    customer_email: EmailStr
    company_name: str = Field(min_length=1, max_length=200)
    customer_phone: str | None = Field(default=None, max_length=20)
    destination_country: str = Field(min_length=1, max_length=100)
    quantity: int = Field(ge=1)
    quantity_unit: str = Field(min_length=1, max_length=50)
    additional_comments: str | None = Field(default=None, max_length=1000)


class PaymentDetailsIn(RequestModel):
    bank_name: str | None = None
    account_number: str | None = None
    swift_code: str | None = None
    iban: str | None = None
    custom_terms: str | None = Field(default=None, max_length=500)


class LcDetailsIn(RequestModel):
    bank_name: str = Field(min_length=1, max_length=100)
    contact_person: str | None = Field(default=None, max_length=100)
    contact_email: EmailStr | None = None
    documents_uploaded: bool | None = None
    documents: list[HttpUrl] | None = None
    lc_status: LcStatus | None = None


class QuoteRequestUpdate(RequestModel):
    status: QuoteStatus | None = None
    admin_comments: str | None = Field(default=None, max_length=1000)
    proposed_price_per_unit: Decimal | None = Field(default=None, ge=0)
    proposed_total_price: Decimal | None = Field(default=None, ge=0)
    payment_method: QuotePaymentMethod | None = None
    payment_details: PaymentDetailsIn | None = None
    lc_details: LcDetailsIn | None = None
    tracking_number: str | None = Field(default=None, max_length=100)
    tracking_link: HttpUrl | None = None
    dispatched_at: datetime | None = None

    _json_fields: ClassVar[tuple[str, ...]] = ('payment_details', 'lc_details', 'tracking_link')


class InvoiceGenerate(RequestModel):
    proposed_price_per_unit: Decimal = Field(gt=0)
    payment_terms: PaymentTerms
    tax_rate: Decimal | None = Field(default=None, ge=0, le=1)
    shipping_cost: Decimal | None = Field(default=None, ge=0)
    payment_instructions: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=1000)
    lc_bank_name: str | None = Field(default=None, max_length=100)
    lc_contact_person: str | None = Field(default=None, max_length=100)
    lc_contact_email: EmailStr | None = None
    customer_address: str | None = Field(default=None, max_length=500)

    @model_validator(mode='after')
    def _lc_terms_need_bank(self) -> InvoiceGenerate:
        if self.payment_terms == PaymentTerms.LC and not self.lc_bank_name:
            raise ValueError('lcBankName is required for letter of credit terms')
        return self


class InvoiceStatusUpdate(RequestModel):
    status: InvoiceStatus


class PaymentIntentCreate(RequestModel):
    country: str = Field(min_length=1, max_length=100)
    currency: str = 'usd'
    metadata: dict[str, str | int | float | bool] = Field(default_factory=dict)

    @field_validator('currency')
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()


class BankTransferCreate(PaymentIntentCreate):
    email: EmailStr | None = None
    contact_person: str | None = Field(default=None, max_length=100)
    company_name: str | None = Field(default=None, max_length=100)


class SampleRequestCreate(RequestModel):
    company_name: str = Field(min_length=1, max_length=100)
    contact_person: str = Field(min_length=1, max_length=100)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1, max_length=500)
    urgency: Urgency = Urgency.STANDARD
    sample_type: SampleType
    quantity_samples: str | None = None
    material_preference: str | None = Field(default=None, max_length=100)
    finish_type: str | None = Field(default=None, max_length=100)
    color_preferences: str | None = Field(default=None, max_length=200)
    specific_requests: str | None = Field(default=None, max_length=1000)
    business_type: str | None = None
    intended_use: str | None = None
    future_volume: str | None = None
    product_id: ObjectId | None = None
    product_name: str | None = None
    product_type_category: Literal['finished-product', 'raw-leather'] | None = None
    payment_method: SamplePaymentMethod = SamplePaymentMethod.CARD
    stripe_payment_intent_id: str | None = Field(default=None, max_length=255)
    wise_transfer_id: str | None = Field(default=None, max_length=255)

    @model_validator(mode='after')
    def _payment_reference_matches_method(self) -> SampleRequestCreate:
        if self.payment_method == SamplePaymentMethod.CARD and not self.stripe_payment_intent_id:
            raise ValueError('stripePaymentIntentId is required for card payments')
        if self.payment_method == SamplePaymentMethod.BANK_TRANSFER and not self.wise_transfer_id:
            raise ValueError('wiseTransferId is required for bank transfer payments')
        return self


class SampleRequestUpdate(RequestModel):
    status: PaymentStatus | None = None
    shipping_tracking_link: HttpUrl | None = None

    _json_fields: ClassVar[tuple[str, ...]] = ('shipping_tracking_link',)

    @model_validator(mode='before')
    @classmethod
    def _accept_payment_status_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'status' not in data and 'paymentStatus' in data:
            data = {**data, 'status': data['paymentStatus']}
        return data


class NotificationUpdate(RequestModel):
    read: bool = True
