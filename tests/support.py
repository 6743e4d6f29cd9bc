from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import patch

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from leather_portal.models import (
    Base,
    ItemTypeCategory,
    PaymentStatus,
    QuoteRequest,
    QuoteStatus,
    SamplePaymentMethod,
    SampleRequest,
    SampleType,
)
from leather_portal.services.mock_mail_transport import InMemoryMailTransport

WEBHOOK_SECRET = 'whsec_test_secret'


def make_session_factory() -> sessionmaker:
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def make_client(session_factory: sessionmaker):
    from fastapi.testclient import TestClient

    from leather_portal.db import get_db
    from leather_portal.main import app

    def override_get_db():
        with session_factory() as db:
            yield db

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@contextmanager
def captured_mail(*, fail_with: Exception | None = None):
    transport = InMemoryMailTransport(fail_with=fail_with)
    with patch('leather_portal.services.mail_service.get_mail_transport', return_value=transport):
        yield transport


def add_quote(db: Session, *, status: QuoteStatus = QuoteStatus.APPROVED, quantity: int = 100, **overrides) -> QuoteRequest:
    values = {
        'request_number': 'QR000001',
        'item_name': 'Full Grain Cowhide',
        'item_type_category': ItemTypeCategory.RAW_LEATHER,
        'customer_name': 'Ada Buyer',
        'customer_email': 'ada@example.com',
        'company_name': 'Buyer GmbH',
        'destination_country': 'Germany',
        'quantity': quantity,
        'quantity_unit': 'sq ft',
        'status': status,
    }
    values.update(overrides)
    quote = QuoteRequest(**values)
    db.add(quote)
    db.commit()
    return quote


def add_sample(db: Session, *, intent_id: str = 'pi_test_1', status: PaymentStatus = PaymentStatus.PENDING, **overrides) -> SampleRequest:
    values = {
        'request_number': 'SR000001',
        'company_name': 'Sample Co',
        'contact_person': 'Sam Ple',
        'email': 'sam@example.com',
        'country': 'Canada',
        'address': '1 Main St, Toronto',
        'sample_type': SampleType.RAW_LEATHER,
        'shipping_fee': 2000,
        'payment_method': SamplePaymentMethod.CARD,
        'payment_status': status,
        'stripe_payment_intent_id': intent_id,
    }
    values.update(overrides)
    sample = SampleRequest(**values)
    db.add(sample)
    db.commit()
    return sample
