# app/services/portfolio_service.py
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.money import money
from app.models.enums import InvestmentStatus
from app.models.investment import TokenInvestment
from app.models.property import Property
from app.models.token_offering import TokenOffering


@dataclass
class PropertyHolding:
    property: Property
    offering: TokenOffering
    total_tokens: int = 0
    total_invested: Decimal = Decimal("0")
    total_dividends: Decimal = Decimal("0")
    ownership_percentage: Decimal = Decimal("0")
    investments: List[TokenInvestment] = field(default_factory=list)


@dataclass
class Portfolio:
    investments: List[TokenInvestment]
    by_property: List[PropertyHolding]
    statistics: Dict[str, Any]


class PortfolioService:
    def get_portfolio(self, db: Session, investor_id: str) -> Portfolio:
        rows = db.execute(
            select(TokenInvestment, Property, TokenOffering)
            .join(Property, Property.id == TokenInvestment.property_id)
            .join(TokenOffering, TokenOffering.id == TokenInvestment.token_id)
            .where(
                TokenInvestment.investor_id == investor_id,
                TokenInvestment.status == InvestmentStatus.active.value,
            )
            .order_by(TokenInvestment.purchase_date.desc(), TokenInvestment.id)
        ).all()

        investments: List[TokenInvestment] = []
        groups: Dict[Any, PropertyHolding] = {}

        for inv, prop, offering in rows:
            investments.append(inv)
            holding = groups.get(prop.id)
            if holding is None:
                holding = groups[prop.id] = PropertyHolding(property=prop, offering=offering)
            holding.total_tokens += inv.tokens_owned
            holding.total_invested += inv.total_investment
            holding.total_dividends += inv.total_dividends_earned
            holding.ownership_percentage += inv.ownership_percentage
            holding.investments.append(inv)

        total_invested = money(sum((i.total_investment for i in investments), Decimal("0")))
        total_dividends = money(sum((i.total_dividends_earned for i in investments), Decimal("0")))
        average_return = (
            money(total_dividends / total_invested * 100) if total_invested > 0 else money(0)
        )

        stats = {
            "totalInvested": total_invested,
            "totalDividends": total_dividends,
            "currentValue": money(total_invested + total_dividends),
            "totalProperties": len(investments),
            "totalTokens": sum(i.tokens_owned for i in investments),
            "averageReturn": average_return,
        }
        return Portfolio(investments=investments, by_property=list(groups.values()), statistics=stats)
