import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.core.clock import utcnow
from app.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    TransactionError,
    ValidationError,
)
from app.models.enums import InvestmentStatus, LedgerAction
from app.models.investment import TokenInvestment
from app.models.listing import TokenListing
from app.models.notification import Notification
from app.services import listing_service as listing_module
from app.services.ledger_event_service import LedgerEventService
from app.services.listing_service import ListingService
from app.services.offering_service import OfferingService


@pytest.fixture
def holding(db, profiles, buyer, issue, acquire):
    """
    buyer owns 10 tokens of a 100-token offering.
    """
    offering = issue()
    acquire(buyer, offering, 10)
    inv = (
        db.execute(
            select(TokenInvestment).where(
                TokenInvestment.investor_id == buyer.user_id,
                TokenInvestment.token_id == offering.id,
            )
        )
        .scalars()
        .one()
    )
    return inv


def reload(db, model, pk):
    db.expire_all()
    return db.get(model, pk)


def holding_of(db, investor_id, offering_id):
    return (
        db.execute(
            select(TokenInvestment).where(
                TokenInvestment.investor_id == investor_id,
                TokenInvestment.token_id == offering_id,
                TokenInvestment.status == InvestmentStatus.active.value,
            )
        )
        .scalars()
        .one_or_none()
    )


# ─────────────────────────────────────────────
# Listing creation
# ─────────────────────────────────────────────

def test_create_listing_denormalises_offering_data(db, buyer, holding):
    listing = ListingService().create_listing(
        db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("5"),
        description="Quick sale", expires_in_days=7, tags=["villa", "beach"],
    )

    assert listing.status == "active"
    assert listing.total_price == Decimal("50.00")
    assert listing.currency == "THB"
    assert listing.token_symbol == "SVT"
    assert listing.property_name == "Sunset Villa"
    assert listing.seller_name == "Alice Buyer"
    assert listing.tags == ["villa", "beach"]
    assert listing.expires_at is not None


def test_overlisting_is_rejected(db, buyer, holding):
    svc = ListingService()
    svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=6, price_per_token=Decimal("5"))

    with pytest.raises(ConflictError):
        svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=5, price_per_token=Decimal("5"))

    rows = db.execute(select(TokenListing)).scalars().all()
    assert len(rows) == 1

    # the remaining 4 can still be listed
    svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=4, price_per_token=Decimal("6"))
    assert svc.listed_quantity(db, holding.id) == 10


def test_cancelled_listing_frees_tokens(db, buyer, holding):
    svc = ListingService()
    first = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("5"))
    svc.cancel_listing(db, buyer, first.id)

    again = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("4"))
    assert again.status == "active"


def test_listing_input_and_ownership_checks(db, seller, buyer, other_buyer, holding):
    svc = ListingService()

    with pytest.raises(ValidationError):
        svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=0, price_per_token=Decimal("5"))
    with pytest.raises(ValidationError):
        svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=1, price_per_token=Decimal("-1"))
    with pytest.raises(NotFoundError):
        svc.create_listing(db, buyer, investment_id=uuid.uuid4(), tokens_for_sale=1, price_per_token=Decimal("5"))
    with pytest.raises(AuthorizationError):
        svc.create_listing(db, other_buyer, investment_id=holding.id, tokens_for_sale=1, price_per_token=Decimal("5"))
    with pytest.raises(AuthorizationError):
        svc.create_listing(db, seller, investment_id=holding.id, tokens_for_sale=1, price_per_token=Decimal("5"))


# ─────────────────────────────────────────────
# Transfers
# ─────────────────────────────────────────────

def test_partial_purchase(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("5"))

    result = svc.purchase_from_listing(db, other_buyer, listing.id, tokens_to_purchase=4)

    assert result.tokens_purchased == 4
    assert result.total_amount == Decimal("20.00")
    assert result.currency == "THB"

    listing = reload(db, TokenListing, listing.id)
    assert listing.status == "active"
    assert listing.tokens_for_sale == 6
    assert listing.total_price == Decimal("30.00")
    assert listing.buyer_id is None

    bought = holding_of(db, other_buyer.user_id, holding.token_id)
    assert bought.tokens_owned == 4
    assert bought.total_investment == Decimal("20.00")
    assert bought.purchase_price == Decimal("5.00")
    assert bought.payment_method == "P2P Transfer"
    assert bought.ownership_percentage == Decimal("4.0000")

    source = reload(db, TokenInvestment, holding.id)
    assert source.tokens_owned == 6
    assert source.ownership_percentage == Decimal("6.0000")


def test_full_purchase(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("5"))

    result = svc.purchase_from_listing(db, other_buyer, listing.id)
    assert result.tokens_purchased == 10

    listing = reload(db, TokenListing, listing.id)
    assert listing.status == "sold"
    assert listing.sold_at is not None
    assert listing.buyer_id == other_buyer.user_id
    assert listing.buyer_name == "Bob Buyer"
    assert listing.tokens_for_sale == 10

    source = reload(db, TokenInvestment, holding.id)
    assert source.tokens_owned == 0
    assert source.status == InvestmentStatus.sold.value

    assert holding_of(db, other_buyer.user_id, holding.token_id).tokens_owned == 10

    notes = db.execute(select(Notification).where(Notification.user_id == buyer.user_id)).scalars().all()
    sold = [n for n in notes if n.title == "Token Sold!"]
    assert len(sold) == 1
    assert sold[0].message == "Bob Buyer purchased 10 SVT tokens from your listing for 50.00 THB"


def test_purchase_into_existing_holding_increments_it(db, buyer, other_buyer, issue, acquire, holding):
    offering = OfferingService().get(db, holding.token_id)
    acquire(other_buyer, offering, 3)

    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=5, price_per_token=Decimal("12"))
    result = svc.purchase_from_listing(db, other_buyer, listing.id)

    rows = (
        db.execute(
            select(TokenInvestment).where(
                TokenInvestment.investor_id == other_buyer.user_id,
                TokenInvestment.status == InvestmentStatus.active.value,
            )
        )
        .scalars()
        .all()
    )
    assert len(rows) == 1
    assert rows[0].id == result.buyer_investment.id
    assert rows[0].tokens_owned == 8
    assert rows[0].total_investment == Decimal("90.00")


def test_self_trade_is_rejected(db, buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=5, price_per_token=Decimal("5"))

    with pytest.raises(ValidationError):
        svc.purchase_from_listing(db, buyer, listing.id)

    assert reload(db, TokenListing, listing.id).tokens_for_sale == 5
    assert reload(db, TokenInvestment, holding.id).tokens_owned == 10


def test_purchase_quantity_bounds(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=5, price_per_token=Decimal("5"))

    with pytest.raises(ValidationError):
        svc.purchase_from_listing(db, other_buyer, listing.id, tokens_to_purchase=6)
    with pytest.raises(ValidationError):
        svc.purchase_from_listing(db, other_buyer, listing.id, tokens_to_purchase=0)


def test_purchase_from_inactive_listing_is_state_error(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=5, price_per_token=Decimal("5"))
    svc.cancel_listing(db, buyer, listing.id)

    with pytest.raises(StateError):
        svc.purchase_from_listing(db, other_buyer, listing.id)


def test_drained_seller_position_is_state_error(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=8, price_per_token=Decimal("5"))

    # position shrinks underneath the listing
    inv = db.get(TokenInvestment, holding.id)
    inv.tokens_owned = 3
    db.commit()

    with pytest.raises(StateError):
        svc.purchase_from_listing(db, other_buyer, listing.id)

    assert reload(db, TokenListing, listing.id).status == "active"
    assert holding_of(db, other_buyer.user_id, holding.token_id) is None


def test_failed_credit_rolls_back_the_debit(db, monkeypatch, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("5"))

    def broken_credit(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(listing_module, "find_or_create_active_investment", broken_credit)

    with pytest.raises(TransactionError):
        svc.purchase_from_listing(db, other_buyer, listing.id, tokens_to_purchase=4)

    source = reload(db, TokenInvestment, holding.id)
    assert source.tokens_owned == 10
    assert source.status == "active"

    fresh = reload(db, TokenListing, listing.id)
    assert fresh.tokens_for_sale == 10
    assert fresh.status == "active"

    assert holding_of(db, other_buyer.user_id, holding.token_id) is None
    purchases = LedgerEventService().list_for_offering(
        db, holding.token_id, action=LedgerAction.LISTING_PURCHASED
    )
    assert purchases == []


def test_transfers_conserve_supply(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=9, price_per_token=Decimal("2"))
    svc.purchase_from_listing(db, other_buyer, listing.id, tokens_to_purchase=2)
    svc.purchase_from_listing(db, other_buyer, listing.id, tokens_to_purchase=3)
    svc.purchase_from_listing(db, other_buyer, listing.id)

    seller_side = reload(db, TokenInvestment, holding.id).tokens_owned
    buyer_side = holding_of(db, other_buyer.user_id, holding.token_id).tokens_owned
    assert seller_side + buyer_side == 10
    assert buyer_side == 9

    report = OfferingService().supply_report(db, holding.token_id)
    assert report["tokensHeld"] == report["tokensSold"] == 10
    assert report["conserved"] is True


# ─────────────────────────────────────────────
# Seller maintenance
# ─────────────────────────────────────────────

def test_update_listing_recomputes_total(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=4, price_per_token=Decimal("5"))

    with pytest.raises(AuthorizationError):
        svc.update_listing(db, other_buyer, listing.id, price_per_token=Decimal("1"))
    with pytest.raises(ValidationError):
        svc.update_listing(db, buyer, listing.id, price_per_token=Decimal("-2"))

    listing = svc.update_listing(db, buyer, listing.id, price_per_token=Decimal("7.50"), description="New price")
    assert listing.price_per_token == Decimal("7.50")
    assert listing.total_price == Decimal("30.00")
    assert listing.description == "New price"

    svc.purchase_from_listing(db, other_buyer, listing.id)
    with pytest.raises(StateError):
        svc.update_listing(db, buyer, listing.id, description="too late")


def test_cancel_listing_rules(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=4, price_per_token=Decimal("5"))

    with pytest.raises(AuthorizationError):
        svc.cancel_listing(db, other_buyer, listing.id)

    listing = svc.cancel_listing(db, buyer, listing.id)
    assert listing.status == "cancelled"
    assert listing.cancelled_at is not None

    with pytest.raises(StateError):
        svc.cancel_listing(db, buyer, listing.id)


def test_expire_listings_sweep(db, buyer, holding):
    svc = ListingService()
    short = svc.create_listing(
        db, buyer, investment_id=holding.id, tokens_for_sale=2, price_per_token=Decimal("5"), expires_in_days=1
    )
    svc.create_listing(
        db, buyer, investment_id=holding.id, tokens_for_sale=2, price_per_token=Decimal("5"), expires_in_days=30
    )
    svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=2, price_per_token=Decimal("5"))

    assert svc.expire_listings(db, now=utcnow()) == 0
    assert svc.expire_listings(db, now=utcnow() + timedelta(days=2)) == 1

    assert reload(db, TokenListing, short.id).status == "expired"
    active, total = svc.list_listings(db)
    assert total == 2


def test_list_listings_for_seller_includes_every_status(db, buyer, holding):
    svc = ListingService()
    first = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=2, price_per_token=Decimal("5"))
    svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=2, price_per_token=Decimal("5"))
    svc.cancel_listing(db, buyer, first.id)

    public, public_total = svc.list_listings(db)
    mine, mine_total = svc.list_listings(db, seller_id=buyer.user_id)
    cancelled, _ = svc.list_listings(db, seller_id=buyer.user_id, status="cancelled")

    assert public_total == 1
    assert mine_total == 2
    assert [row.id for row in cancelled] == [first.id]


def test_sub_cent_price_is_rounded_before_totals(db, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(
        db, buyer, investment_id=holding.id, tokens_for_sale=10, price_per_token=Decimal("1.005")
    )

    assert listing.price_per_token == Decimal("1.01")
    assert listing.total_price == Decimal("10.10")

    listing = svc.update_listing(db, buyer, listing.id, price_per_token=Decimal("0.125"))
    assert listing.price_per_token == Decimal("0.13")
    assert listing.total_price == listing.price_per_token * listing.tokens_for_sale

    quoted = listing.total_price
    result = svc.purchase_from_listing(db, other_buyer, listing.id)
    assert result.total_amount == quoted == Decimal("1.30")


@pytest.mark.parametrize("days", [0, 3651, 10**9])
def test_expiry_window_is_bounded(db, buyer, holding, days):
    with pytest.raises(ValidationError):
        ListingService().create_listing(
            db, buyer, investment_id=holding.id, tokens_for_sale=1,
            price_per_token=Decimal("5"), expires_in_days=days,
        )

    assert db.execute(select(TokenListing)).scalars().all() == []


def test_failed_seller_notification_keeps_the_transfer(db, monkeypatch, buyer, other_buyer, holding):
    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=holding.id, tokens_for_sale=3, price_per_token=Decimal("5"))

    def broken_template(*args, **kwargs):
        raise RuntimeError("template error")

    monkeypatch.setattr(listing_module.msgs, "token_sold", broken_template)

    result = svc.purchase_from_listing(db, other_buyer, listing.id)

    assert result.tokens_purchased == 3
    assert reload(db, TokenListing, listing.id).status == "sold"
    assert holding_of(db, other_buyer.user_id, holding.token_id).tokens_owned == 3
    notes = db.execute(select(Notification).where(Notification.user_id == buyer.user_id)).scalars().all()
    assert not any(n.title == "Token Sold!" for n in notes)
