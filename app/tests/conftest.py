import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# FORCE model registration
import app.models  # noqa

from app.db.base import Base
from app.models.enums import OfferingStatus, UserRole
from app.models.property import Property
from app.models.user_profile import UserProfile
from app.policies.rbac import Actor
from app.services.offering_service import OfferingService
from app.services.purchase_request_service import PurchaseRequestService


@pytest.fixture(scope="function")
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def db(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ─────────────────────────────────────────────
# Actors
# ─────────────────────────────────────────────

@pytest.fixture
def seller():
    return Actor(user_id="seller-1", role=UserRole.LANDLORD, email="owner@example.com")


@pytest.fixture
def buyer():
    return Actor(user_id="buyer-1", role=UserRole.BUYER, email="alice@example.com")


@pytest.fixture
def other_buyer():
    return Actor(user_id="buyer-2", role=UserRole.BUYER, email="bob@example.com")


@pytest.fixture
def profiles(db, seller, buyer, other_buyer):
    rows = [
        UserProfile(user_id=seller.user_id, role="landlord", name="Olivia Owner", email=seller.email),
        UserProfile(user_id=buyer.user_id, role="buyer", name="Alice Buyer", email=buyer.email,
                    phone_number="+66 555 0101"),
        UserProfile(user_id=other_buyer.user_id, role="buyer", name="Bob Buyer", email=other_buyer.email),
    ]
    db.add_all(rows)
    db.commit()
    return rows


# ─────────────────────────────────────────────
# Ledger builders
# ─────────────────────────────────────────────

@pytest.fixture
def make_property(db, seller):
    def _make(country="Thailand", owner_id=None, name="Sunset Villa", property_type="Villa"):
        prop = Property(
            name=name,
            owner_id=owner_id or seller.user_id,
            country=country,
            property_type=property_type,
            sale_price=Decimal("1000000.00"),
        )
        db.add(prop)
        db.commit()
        return prop

    return _make


@pytest.fixture
def offering_terms():
    def _terms(**overrides):
        now = datetime.now(timezone.utc)
        terms = dict(
            token_name="Sunset Villa Token",
            token_symbol="svt",
            total_tokens=100,
            token_price=Decimal("10.00"),
            min_purchase=1,
            max_purchase=None,
            property_value=Decimal("1000.00"),
            expected_return="8%",
            offering_start_date=now - timedelta(days=1),
            offering_end_date=now + timedelta(days=90),
            description="Fractional ownership of a beach villa.",
        )
        terms.update(overrides)
        return terms

    return _terms


@pytest.fixture
def issue(db, seller, make_property, offering_terms):
    """
    Creates a property and an offering for it; activates it unless told not to.
    """
    def _issue(activate=True, country="Thailand", **overrides):
        prop = make_property(country=country)
        svc = OfferingService()
        offering = svc.create_offering(db, seller, property_id=prop.id, **offering_terms(**overrides))
        if activate:
            offering = svc.update_offering_status(db, seller, offering.id, OfferingStatus.active.value)
        return offering

    return _issue


@pytest.fixture
def acquire(db, seller):
    """
    Runs a purchase request from submission up to payment confirmation,
    and through assignment unless assign=False.
    """
    def _acquire(actor, offering, tokens, assign=True, payment_method="Bank Transfer"):
        svc = PurchaseRequestService()
        req = svc.submit_request(
            db, actor, offering_id=offering.id, tokens_requested=tokens, payment_method=payment_method
        )
        svc.approve(db, seller, req.id, payment_instructions="IBAN TH00 0000")
        svc.upload_payment_proof(db, actor, req.id, payment_proof="https://files.example.com/proof.pdf")
        req = svc.confirm_payment(db, seller, req.id)
        if assign:
            req = svc.assign_tokens(db, seller, req.id)
        return req

    return _acquire
