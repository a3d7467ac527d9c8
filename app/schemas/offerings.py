from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import DividendFrequency, RiskLevel
from app.models.token_offering import TokenOffering
from app.schemas.primitives import Money, Percent


class OfferingCreateRequest(BaseModel):
    """
    Range checks (totals, prices, dates) live in OfferingService so they
    surface as validation_error rather than a 422.
    """
    model_config = ConfigDict(extra="forbid")

    propertyId: uuid.UUID
    tokenName: str = Field(..., min_length=1, max_length=128)
    tokenSymbol: str = Field(..., min_length=1, max_length=16)
    totalTokens: int
    tokenPrice: Decimal
    minPurchase: int = 1
    maxPurchase: Optional[int] = None
    propertyValue: Decimal
    expectedReturn: str = Field(..., min_length=1)
    dividendFrequency: DividendFrequency = DividendFrequency.QUARTERLY
    offeringStartDate: datetime
    offeringEndDate: datetime
    description: str = Field(..., min_length=1)
    riskLevel: RiskLevel = RiskLevel.medium
    propertyType: Optional[str] = None
    annualAppreciationRate: Decimal = Decimal("0")


class OfferingStatusUpdate(BaseModel):
    status: str


class OfferingOut(BaseModel):
    id: uuid.UUID
    propertyId: uuid.UUID
    tokenName: str
    tokenSymbol: str
    totalTokens: int
    tokensSold: int
    tokensAvailable: int
    tokenPrice: Money
    initialTokenPrice: Money
    annualAppreciationRate: Percent
    minPurchase: int
    maxPurchase: Optional[int] = None
    propertyValue: Money
    expectedReturn: str
    dividendFrequency: str
    offeringStartDate: datetime
    offeringEndDate: datetime
    status: str
    description: str
    riskLevel: str
    propertyType: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    # detail view only
    investorsCount: Optional[int] = None
    fundingProgress: Optional[Percent] = None
    currentTokenPrice: Optional[Money] = None

    @classmethod
    def from_model(cls, o: TokenOffering, **extra) -> "OfferingOut":
        return cls(
            id=o.id,
            propertyId=o.property_id,
            tokenName=o.token_name,
            tokenSymbol=o.token_symbol,
            totalTokens=o.total_tokens,
            tokensSold=o.tokens_sold,
            tokensAvailable=o.tokens_available,
            tokenPrice=o.token_price,
            initialTokenPrice=o.initial_token_price,
            annualAppreciationRate=o.annual_appreciation_rate,
            minPurchase=o.min_purchase,
            maxPurchase=o.max_purchase,
            propertyValue=o.property_value,
            expectedReturn=o.expected_return,
            dividendFrequency=o.dividend_frequency,
            offeringStartDate=o.offering_start_date,
            offeringEndDate=o.offering_end_date,
            status=o.status,
            description=o.description,
            riskLevel=o.risk_level,
            propertyType=o.property_type,
            createdAt=o.created_at,
            updatedAt=o.updated_at,
            **extra,
        )


class SupplyReportOut(BaseModel):
    offeringId: str
    totalTokens: int
    tokensSold: int
    tokensAvailable: int
    tokensHeld: int
    activeInvestors: int
    conserved: bool
