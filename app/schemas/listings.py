from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.listing import TokenListing
from app.schemas.investments import InvestmentOut
from app.schemas.primitives import Money
from app.services.listing_service import MAX_LISTING_DAYS, TransferResult


class ListingCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tokenInvestmentId: uuid.UUID
    tokensForSale: int
    pricePerToken: Decimal
    description: Optional[str] = Field(default=None, max_length=2000)
    expiresInDays: Optional[int] = Field(default=None, ge=1, le=MAX_LISTING_DAYS)
    tags: List[str] = Field(default_factory=list)


class ListingUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pricePerToken: Optional[Decimal] = None
    description: Optional[str] = Field(default=None, max_length=2000)


class ListingPurchase(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tokensToPurchase: Optional[int] = None
    paymentMethod: Optional[str] = None


class ListingOut(BaseModel):
    id: uuid.UUID
    sellerId: str
    sellerName: str
    sellerEmail: str
    tokenInvestmentId: uuid.UUID
    propertyId: uuid.UUID
    tokenOfferingId: uuid.UUID
    tokensForSale: int
    pricePerToken: Money
    totalPrice: Money
    currency: str
    propertyName: Optional[str] = None
    tokenName: str
    tokenSymbol: str
    propertyType: Optional[str] = None
    riskLevel: Optional[str] = None
    status: str
    listedAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    soldAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    buyerId: Optional[str] = None
    buyerName: Optional[str] = None
    buyerEmail: Optional[str] = None
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_model(cls, row: TokenListing) -> "ListingOut":
        return cls(
            id=row.id,
            sellerId=row.seller_id,
            sellerName=row.seller_name,
            sellerEmail=row.seller_email,
            tokenInvestmentId=row.token_investment_id,
            propertyId=row.property_id,
            tokenOfferingId=row.token_offering_id,
            tokensForSale=row.tokens_for_sale,
            pricePerToken=row.price_per_token,
            totalPrice=row.total_price,
            currency=row.currency,
            propertyName=row.property_name,
            tokenName=row.token_name,
            tokenSymbol=row.token_symbol,
            propertyType=row.property_type,
            riskLevel=row.risk_level,
            status=row.status,
            listedAt=row.listed_at,
            expiresAt=row.expires_at,
            soldAt=row.sold_at,
            cancelledAt=row.cancelled_at,
            buyerId=row.buyer_id,
            buyerName=row.buyer_name,
            buyerEmail=row.buyer_email,
            description=row.description,
            tags=list(row.tags or []),
        )


class TransferOut(BaseModel):
    listing: ListingOut
    buyerInvestment: InvestmentOut
    tokensPurchased: int
    totalAmount: Money
    currency: str

    @classmethod
    def from_result(cls, r: TransferResult) -> "TransferOut":
        return cls(
            listing=ListingOut.from_model(r.listing),
            buyerInvestment=InvestmentOut.from_model(r.buyer_investment),
            tokensPurchased=r.tokens_purchased,
            totalAmount=r.total_amount,
            currency=r.currency,
        )
