# app/services/marketplace_service.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.currency import CurrencyPolicy
from app.core.errors import ValidationError
from app.core.money import percentage
from app.core.pagination import PageRequest
from app.models.enums import ListingStatus, OfferingStatus
from app.models.listing import TokenListing
from app.models.property import Property
from app.models.token_offering import TokenOffering
from app.services.offering_service import current_token_price

SOURCES = {"all", "official", "p2p"}
SORTS = {"newest", "price-low", "price-high"}


def _iso(dt: Optional[datetime]) -> Optional[str]:
    dt = as_utc(dt)
    return dt.isoformat() if dt else None


class MarketplaceService:
    """
    One feed over primary offerings and resale listings.
    Both sides are filtered in SQL, merged and sorted in memory, then paged.
    """

    def __init__(self, currency_policy: Optional[CurrencyPolicy] = None):
        self.currency = currency_policy or CurrencyPolicy.from_settings()

    def _official(
        self, db: Session, property_type: Optional[str], risk_level: Optional[str]
    ) -> List[Dict[str, Any]]:
        stmt = (
            select(TokenOffering, Property)
            .join(Property, Property.id == TokenOffering.property_id)
            .where(TokenOffering.status == OfferingStatus.active.value)
        )
        if property_type:
            stmt = stmt.where(TokenOffering.property_type == property_type)
        if risk_level:
            stmt = stmt.where(TokenOffering.risk_level == risk_level)

        items = []
        for offering, prop in db.execute(stmt).all():
            items.append(
                {
                    "id": str(offering.id),
                    "type": "official",
                    "tokenName": offering.token_name,
                    "tokenSymbol": offering.token_symbol,
                    "tokenPrice": current_token_price(offering),
                    "initialTokenPrice": offering.initial_token_price,
                    "totalTokens": offering.total_tokens,
                    "tokensAvailable": offering.tokens_available,
                    "tokensSold": offering.tokens_sold,
                    "minPurchase": offering.min_purchase,
                    "maxPurchase": offering.max_purchase,
                    "expectedReturn": offering.expected_return,
                    "riskLevel": offering.risk_level,
                    "propertyType": offering.property_type,
                    "propertyValue": offering.property_value,
                    "dividendFrequency": offering.dividend_frequency,
                    "description": offering.description,
                    "offeringStartDate": _iso(offering.offering_start_date),
                    "offeringEndDate": _iso(offering.offering_end_date),
                    "propertyId": str(prop.id),
                    "propertyName": prop.name,
                    "currency": self.currency.lookup(prop.country),
                    "fundingProgress": percentage(offering.tokens_sold, offering.total_tokens),
                    "createdAt": as_utc(offering.created_at),
                }
            )
        return items

    def _p2p(
        self, db: Session, property_type: Optional[str], risk_level: Optional[str]
    ) -> List[Dict[str, Any]]:
        stmt = (
            select(TokenListing, TokenOffering)
            .join(TokenOffering, TokenOffering.id == TokenListing.token_offering_id)
            .where(TokenListing.status == ListingStatus.active.value)
        )
        if property_type:
            stmt = stmt.where(TokenListing.property_type == property_type)
        if risk_level:
            stmt = stmt.where(TokenListing.risk_level == risk_level)

        items = []
        for listing, offering in db.execute(stmt).all():
            items.append(
                {
                    "id": str(listing.id),
                    "type": "p2p",
                    "listingId": str(listing.id),
                    "tokenName": listing.token_name,
                    "tokenSymbol": listing.token_symbol,
                    "tokenPrice": listing.price_per_token,
                    "tokensAvailable": listing.tokens_for_sale,
                    "totalPrice": listing.total_price,
                    "currency": listing.currency,
                    "riskLevel": listing.risk_level,
                    "propertyType": listing.property_type,
                    "description": listing.description,
                    "propertyId": str(listing.property_id),
                    "propertyName": listing.property_name,
                    "sellerName": listing.seller_name,
                    "sellerId": listing.seller_id,
                    "listedAt": _iso(listing.listed_at),
                    "expiresAt": _iso(listing.expires_at),
                    "expectedReturn": offering.expected_return,
                    "dividendFrequency": offering.dividend_frequency,
                    "propertyValue": offering.property_value,
                    "totalTokens": offering.total_tokens,
                    "tags": list(listing.tags or []),
                    "createdAt": as_utc(listing.created_at),
                }
            )
        return items

    def browse(
        self,
        db: Session,
        *,
        source: str = "all",
        property_type: Optional[str] = None,
        risk_level: Optional[str] = None,
        sort_by: str = "newest",
        page: Optional[PageRequest] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        if source not in SOURCES:
            raise ValidationError(f"source must be one of: {', '.join(sorted(SOURCES))}.")
        if sort_by not in SORTS:
            raise ValidationError(f"sortBy must be one of: {', '.join(sorted(SORTS))}.")
        page = page or PageRequest.build()

        items: List[Dict[str, Any]] = []
        if source in ("all", "official"):
            items.extend(self._official(db, property_type, risk_level))
        if source in ("all", "p2p"):
            items.extend(self._p2p(db, property_type, risk_level))

        if sort_by == "price-low":
            items.sort(key=lambda i: i["tokenPrice"])
        elif sort_by == "price-high":
            items.sort(key=lambda i: i["tokenPrice"], reverse=True)
        else:
            items.sort(key=lambda i: i["createdAt"], reverse=True)

        total = len(items)
        window = items[page.offset: page.offset + page.limit]
        for item in window:
            item["createdAt"] = _iso(item["createdAt"])
        return window, total
