from __future__ import annotations

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from app.models.investment import TokenInvestment
from app.schemas.primitives import Money, Percent
from app.services.portfolio_service import Portfolio, PropertyHolding


class InvestmentOut(BaseModel):
    id: uuid.UUID
    investorId: str
    investorEmail: Optional[str] = None
    investorPhone: Optional[str] = None
    propertyId: uuid.UUID
    tokenId: uuid.UUID
    tokensOwned: int
    purchasePrice: Money
    totalInvestment: Money
    ownershipPercentage: Percent
    transactionId: str
    paymentMethod: str
    paymentStatus: str
    totalDividendsEarned: Money
    lastDividendDate: Optional[datetime] = None
    status: str
    purchaseDate: Optional[datetime] = None

    @classmethod
    def from_model(cls, i: TokenInvestment) -> "InvestmentOut":
        return cls(
            id=i.id,
            investorId=i.investor_id,
            investorEmail=i.investor_email,
            investorPhone=i.investor_phone,
            propertyId=i.property_id,
            tokenId=i.token_id,
            tokensOwned=i.tokens_owned,
            purchasePrice=i.purchase_price,
            totalInvestment=i.total_investment,
            ownershipPercentage=i.ownership_percentage,
            transactionId=i.transaction_id,
            paymentMethod=i.payment_method,
            paymentStatus=i.payment_status,
            totalDividendsEarned=i.total_dividends_earned,
            lastDividendDate=i.last_dividend_date,
            status=i.status,
            purchaseDate=i.purchase_date,
        )


class PropertyHoldingOut(BaseModel):
    propertyId: uuid.UUID
    propertyName: str
    tokenOfferingId: uuid.UUID
    tokenName: str
    tokenSymbol: str
    totalTokens: int
    totalInvested: Money
    totalDividends: Money
    ownershipPercentage: Percent
    investments: List[InvestmentOut]

    @classmethod
    def from_holding(cls, h: PropertyHolding) -> "PropertyHoldingOut":
        return cls(
            propertyId=h.property.id,
            propertyName=h.property.name,
            tokenOfferingId=h.offering.id,
            tokenName=h.offering.token_name,
            tokenSymbol=h.offering.token_symbol,
            totalTokens=h.total_tokens,
            totalInvested=h.total_invested,
            totalDividends=h.total_dividends,
            ownershipPercentage=h.ownership_percentage,
            investments=[InvestmentOut.from_model(i) for i in h.investments],
        )


class PortfolioStatistics(BaseModel):
    totalInvested: Money
    totalDividends: Money
    currentValue: Money
    totalProperties: int
    totalTokens: int
    averageReturn: Percent


class PortfolioOut(BaseModel):
    investments: List[InvestmentOut]
    investmentsByProperty: List[PropertyHoldingOut]
    statistics: PortfolioStatistics

    @classmethod
    def from_portfolio(cls, p: Portfolio) -> "PortfolioOut":
        return cls(
            investments=[InvestmentOut.from_model(i) for i in p.investments],
            investmentsByProperty=[PropertyHoldingOut.from_holding(h) for h in p.by_property],
            statistics=PortfolioStatistics(**p.statistics),
        )
