from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.errors import ValidationError
from app.core.pagination import PageRequest
from app.models.investment import TokenInvestment
from app.services.listing_service import ListingService
from app.services.marketplace_service import MarketplaceService
from app.services.offering_service import current_token_price
from app.services.portfolio_service import PortfolioService


def holding_for(db, investor_id, offering_id):
    return (
        db.execute(
            select(TokenInvestment).where(
                TokenInvestment.investor_id == investor_id,
                TokenInvestment.token_id == offering_id,
            )
        )
        .scalars()
        .one()
    )


# ─────────────────────────────────────────────
# Portfolio
# ─────────────────────────────────────────────

def test_portfolio_aggregates_active_holdings(db, profiles, buyer, other_buyer, issue, acquire):
    villa = issue()
    loft = issue(token_symbol="lft", token_price=Decimal("20.00"))
    acquire(buyer, villa, 10)
    acquire(buyer, loft, 5)

    portfolio = PortfolioService().get_portfolio(db, buyer.user_id)

    assert len(portfolio.investments) == 2
    assert len(portfolio.by_property) == 2
    stats = portfolio.statistics
    assert stats["totalInvested"] == Decimal("200.00")
    assert stats["totalDividends"] == Decimal("0.00")
    assert stats["currentValue"] == Decimal("200.00")
    assert stats["totalProperties"] == 2
    assert stats["totalTokens"] == 15
    assert stats["averageReturn"] == Decimal("0.00")

    assert PortfolioService().get_portfolio(db, other_buyer.user_id).investments == []


def test_portfolio_skips_sold_out_positions(db, profiles, buyer, other_buyer, issue, acquire):
    villa = issue()
    acquire(buyer, villa, 4)
    inv = holding_for(db, buyer.user_id, villa.id)

    svc = ListingService()
    listing = svc.create_listing(db, buyer, investment_id=inv.id, tokens_for_sale=4, price_per_token=Decimal("8"))
    svc.purchase_from_listing(db, other_buyer, listing.id)

    assert PortfolioService().get_portfolio(db, buyer.user_id).investments == []

    bought = PortfolioService().get_portfolio(db, other_buyer.user_id)
    assert bought.statistics["totalTokens"] == 4
    assert bought.statistics["totalInvested"] == Decimal("32.00")


# ─────────────────────────────────────────────
# Marketplace
# ─────────────────────────────────────────────

@pytest.fixture
def market(db, profiles, buyer, issue, acquire):
    villa = issue()
    issue(activate=False, token_symbol="drf")
    acquire(buyer, villa, 10)
    inv = holding_for(db, buyer.user_id, villa.id)
    listing = ListingService().create_listing(
        db, buyer, investment_id=inv.id, tokens_for_sale=3, price_per_token=Decimal("4.50")
    )
    return villa, listing


def test_marketplace_merges_both_sources(db, market):
    villa, listing = market
    items, total = MarketplaceService().browse(db)

    assert total == 2
    by_type = {i["type"]: i for i in items}
    assert by_type["official"]["id"] == str(villa.id)
    assert by_type["official"]["currency"] == "THB"
    assert by_type["official"]["tokensAvailable"] == 90
    assert by_type["p2p"]["listingId"] == str(listing.id)
    assert by_type["p2p"]["tokensAvailable"] == 3
    assert by_type["p2p"]["sellerName"] == "Alice Buyer"


def test_marketplace_source_filter_and_sorting(db, market):
    svc = MarketplaceService()

    official, total = svc.browse(db, source="official")
    assert total == 1
    assert official[0]["type"] == "official"

    cheapest, _ = svc.browse(db, sort_by="price-low")
    assert [i["type"] for i in cheapest] == ["p2p", "official"]

    priciest, _ = svc.browse(db, sort_by="price-high")
    assert [i["type"] for i in priciest] == ["official", "p2p"]

    first_page, total = svc.browse(db, sort_by="price-low", page=PageRequest(page=1, limit=1))
    second_page, _ = svc.browse(db, sort_by="price-low", page=PageRequest(page=2, limit=1))
    assert total == 2
    assert first_page[0]["type"] == "p2p"
    assert second_page[0]["type"] == "official"


def test_marketplace_quotes_appreciated_offering_price(db, issue):
    now = datetime.now(timezone.utc)
    offering = issue(
        annual_appreciation_rate=Decimal("10"),
        offering_start_date=now - timedelta(days=730),
    )

    items, _ = MarketplaceService().browse(db, source="official")

    assert items[0]["tokenPrice"] == current_token_price(offering)
    assert items[0]["tokenPrice"] > Decimal("10.00")
    assert items[0]["initialTokenPrice"] == Decimal("10.00")


def test_marketplace_rejects_unknown_options(db):
    svc = MarketplaceService()
    with pytest.raises(ValidationError):
        svc.browse(db, source="auction")
    with pytest.raises(ValidationError):
        svc.browse(db, sort_by="popular")
