# app/services/offering_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow
from app.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from app.core.money import money, percentage, to_decimal
from app.core.pagination import PageRequest
from app.db.transaction import run_in_transaction
from app.models.enums import (
    DividendFrequency,
    InvestmentStatus,
    LedgerAction,
    OfferingStatus,
    RiskLevel,
)
from app.models.investment import TokenInvestment
from app.models.token_offering import TokenOffering
from app.policies.rbac import ACTION_ISSUE_OFFERING, Actor, require_action
from app.services.ledger_event_service import LedgerEventService
from app.services.property_service import PropertyService

logger = logging.getLogger(__name__)

SECONDS_PER_YEAR = Decimal(365.25 * 24 * 3600)

# Allowed next states per current state
OFFERING_TRANSITIONS: Dict[OfferingStatus, set] = {
    OfferingStatus.draft: {OfferingStatus.active, OfferingStatus.cancelled},
    OfferingStatus.active: {OfferingStatus.funded, OfferingStatus.closed, OfferingStatus.cancelled},
    OfferingStatus.funded: {OfferingStatus.closed},
    OfferingStatus.closed: set(),
    OfferingStatus.cancelled: set(),
}


def current_token_price(offering: TokenOffering, at: Optional[datetime] = None) -> Decimal:
    """
    initial_price * (1 + rate/100) ** years, years counted from offering start
    in 365.25-day years. Before the start date the initial price applies.
    """
    rate = to_decimal(offering.annual_appreciation_rate or 0)
    if rate == 0:
        return money(offering.token_price)

    start = as_utc(offering.offering_start_date)
    at = as_utc(at) or utcnow()
    elapsed = max((at - start).total_seconds(), 0)
    years = Decimal(str(elapsed)) / SECONDS_PER_YEAR

    factor = (Decimal(1) + rate / Decimal(100)) ** years
    return money(to_decimal(offering.initial_token_price) * factor)


@dataclass
class OfferingDetail:
    offering: TokenOffering
    investors_count: int
    funding_progress: Decimal
    current_price: Decimal


class OfferingService:
    def __init__(self):
        self.properties = PropertyService()
        self.journal = LedgerEventService()

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def get(self, db: Session, offering_id: uuid.UUID) -> Optional[TokenOffering]:
        return db.get(TokenOffering, offering_id)

    def get_or_404(self, db: Session, offering_id: uuid.UUID) -> TokenOffering:
        offering = self.get(db, offering_id)
        if not offering:
            raise NotFoundError("Token offering not found.")
        return offering

    def get_for_update(self, db: Session, offering_id: uuid.UUID) -> Optional[TokenOffering]:
        """
        Lock the offering row; every supply change goes through this.
        """
        return (
            db.execute(
                select(TokenOffering)
                .where(TokenOffering.id == offering_id)
                .with_for_update()
            )
            .scalars()
            .one_or_none()
        )

    def get_by_property(self, db: Session, property_id: uuid.UUID) -> Optional[TokenOffering]:
        return (
            db.execute(select(TokenOffering).where(TokenOffering.property_id == property_id))
            .scalars()
            .one_or_none()
        )

    def active_holdings(self, db: Session, offering_id: uuid.UUID) -> Tuple[int, int]:
        """
        (investor count, tokens held) over active investments.
        """
        count, held = db.execute(
            select(func.count(TokenInvestment.id), func.coalesce(func.sum(TokenInvestment.tokens_owned), 0))
            .where(
                TokenInvestment.token_id == offering_id,
                TokenInvestment.status == InvestmentStatus.active.value,
            )
        ).one()
        return int(count), int(held)

    def get_offering_detail(self, db: Session, offering_id: uuid.UUID) -> OfferingDetail:
        offering = self.get_or_404(db, offering_id)
        investors, _ = self.active_holdings(db, offering.id)
        return OfferingDetail(
            offering=offering,
            investors_count=investors,
            funding_progress=percentage(offering.tokens_sold, offering.total_tokens, Decimal("0.01")),
            current_price=current_token_price(offering),
        )

    def list_offerings(
        self,
        db: Session,
        *,
        include_all: bool = False,
        property_type: Optional[str] = None,
        risk_level: Optional[str] = None,
        page: Optional[PageRequest] = None,
    ) -> Tuple[List[TokenOffering], int]:
        page = page or PageRequest.build()

        stmt = select(TokenOffering)
        if not include_all:
            stmt = stmt.where(TokenOffering.status == OfferingStatus.active.value)
        if property_type:
            stmt = stmt.where(TokenOffering.property_type == property_type)
        if risk_level:
            stmt = stmt.where(TokenOffering.risk_level == risk_level)

        total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = (
            db.execute(
                stmt.order_by(TokenOffering.created_at.desc(), TokenOffering.id)
                .offset(page.offset)
                .limit(page.limit)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total)

    def supply_report(self, db: Session, offering_id: uuid.UUID) -> Dict[str, Any]:
        offering = self.get_or_404(db, offering_id)
        investors, held = self.active_holdings(db, offering.id)
        conserved = (
            offering.tokens_sold + offering.tokens_available == offering.total_tokens
            and held <= offering.total_tokens
            and (held < offering.total_tokens or offering.tokens_available == 0)
        )
        return {
            "offeringId": str(offering.id),
            "totalTokens": offering.total_tokens,
            "tokensSold": offering.tokens_sold,
            "tokensAvailable": offering.tokens_available,
            "tokensHeld": held,
            "activeInvestors": investors,
            "conserved": conserved,
        }

    # ─────────────────────────────────────────────
    # ISSUANCE
    # ─────────────────────────────────────────────

    def create_offering(
        self,
        db: Session,
        actor: Actor,
        *,
        property_id: uuid.UUID,
        token_name: str,
        token_symbol: str,
        total_tokens: int,
        token_price: Decimal,
        min_purchase: int,
        property_value: Decimal,
        expected_return: str,
        offering_start_date: datetime,
        offering_end_date: datetime,
        description: str,
        max_purchase: Optional[int] = None,
        annual_appreciation_rate: Decimal = Decimal("0"),
        dividend_frequency: DividendFrequency = DividendFrequency.QUARTERLY,
        risk_level: RiskLevel = RiskLevel.medium,
        property_type: Optional[str] = None,
    ) -> TokenOffering:
        require_action(actor, ACTION_ISSUE_OFFERING)

        token_price = to_decimal(token_price)
        rate = to_decimal(annual_appreciation_rate)

        if total_tokens < 1:
            raise ValidationError("totalTokens must be at least 1.")
        if token_price < 0:
            raise ValidationError("tokenPrice cannot be negative.")
        if min_purchase < 1:
            raise ValidationError("minPurchase must be at least 1.")
        if max_purchase is not None:
            if max_purchase < min_purchase:
                raise ValidationError("maxPurchase cannot be lower than minPurchase.")
            if max_purchase > total_tokens:
                raise ValidationError("maxPurchase cannot exceed totalTokens.")
        if min_purchase > total_tokens:
            raise ValidationError("minPurchase cannot exceed totalTokens.")
        if rate < 0 or rate > 100:
            raise ValidationError("annualAppreciationRate must be between 0 and 100.")
        if as_utc(offering_end_date) < as_utc(offering_start_date):
            raise ValidationError("offeringEndDate cannot be before offeringStartDate.")

        prop = self.properties.get_or_404(db, property_id)
        if prop.owner_id != actor.user_id and not actor.is_superadmin:
            raise AuthorizationError("Only the property owner can tokenize this property.")

        def work() -> TokenOffering:
            locked = self.properties.get_for_update(db, property_id)
            if self.get_by_property(db, property_id):
                raise ConflictError("Token offering already exists for this property.")

            offering = TokenOffering(
                property_id=property_id,
                token_name=token_name.strip(),
                token_symbol=token_symbol.strip().upper(),
                total_tokens=total_tokens,
                tokens_sold=0,
                tokens_available=total_tokens,
                token_price=money(token_price),
                initial_token_price=money(token_price),
                annual_appreciation_rate=rate,
                min_purchase=min_purchase,
                max_purchase=max_purchase,
                property_value=money(property_value),
                expected_return=expected_return,
                dividend_frequency=DividendFrequency(dividend_frequency).value,
                offering_start_date=offering_start_date,
                offering_end_date=offering_end_date,
                status=OfferingStatus.draft.value,
                description=description,
                risk_level=RiskLevel(risk_level).value,
                property_type=property_type or locked.property_type or "Unspecified",
            )
            db.add(offering)
            db.flush()

            self.properties.mark_tokenized(db, locked, offering)
            self.journal.write(
                db,
                offering_id=offering.id,
                action=LedgerAction.OFFERING_CREATED,
                actor=actor,
                ref_id=property_id,
                details={"totalTokens": total_tokens, "tokenPrice": str(money(token_price))},
            )
            return offering

        offering = run_in_transaction(db, work, label="create_offering")
        db.refresh(offering)
        logger.info(
            "[offering] created id=%s property=%s total=%s",
            offering.id, property_id, total_tokens,
        )
        return offering

    def update_offering_status(
        self,
        db: Session,
        actor: Actor,
        offering_id: uuid.UUID,
        new_status: str,
    ) -> TokenOffering:
        try:
            target = OfferingStatus(new_status)
        except ValueError:
            allowed = ", ".join(s.value for s in OfferingStatus)
            raise ValidationError(f"Invalid status '{new_status}'. Must be one of: {allowed}.")

        offering = self.get_or_404(db, offering_id)
        prop = self.properties.get_or_404(db, offering.property_id)
        if prop.owner_id != actor.user_id and not actor.is_superadmin:
            raise AuthorizationError("Only the property owner can change the offering status.")

        def work() -> TokenOffering:
            locked = self.get_for_update(db, offering_id)
            current = OfferingStatus(locked.status)

            if target not in OFFERING_TRANSITIONS[current]:
                raise StateError(
                    f"Cannot move offering from {current.value} to {target.value}."
                )
            if target == OfferingStatus.funded and locked.tokens_available != 0:
                raise StateError("Offering can only be marked funded once all tokens are sold.")

            locked.status = target.value
            self.journal.write(
                db,
                offering_id=locked.id,
                action=LedgerAction.OFFERING_STATUS_CHANGED,
                actor=actor,
                details={"from": current.value, "to": target.value},
            )
            return locked

        offering = run_in_transaction(db, work, label="update_offering_status")
        db.refresh(offering)
        logger.info("[offering] status id=%s -> %s", offering.id, offering.status)
        return offering
