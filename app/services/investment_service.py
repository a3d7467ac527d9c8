# app/services/investment_service.py
from __future__ import annotations

import time
import uuid
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.money import line_total, money, percentage
from app.models.enums import InvestmentStatus, PaymentStatus
from app.models.investment import TokenInvestment
from app.models.token_offering import TokenOffering


def new_transaction_id() -> str:
    return f"TXN-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class InvestmentService:
    """
    Holdings ledger. Every write here runs inside a caller's transaction;
    nothing in this class commits.
    """

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def get(self, db: Session, investment_id: uuid.UUID) -> Optional[TokenInvestment]:
        return db.get(TokenInvestment, investment_id)

    def get_for_update(self, db: Session, investment_id: uuid.UUID) -> Optional[TokenInvestment]:
        return (
            db.execute(
                select(TokenInvestment)
                .where(TokenInvestment.id == investment_id)
                .with_for_update()
            )
            .scalars()
            .one_or_none()
        )

    def get_active_for_update(
        self, db: Session, *, investor_id: str, offering_id: uuid.UUID
    ) -> Optional[TokenInvestment]:
        return (
            db.execute(
                select(TokenInvestment)
                .where(
                    TokenInvestment.investor_id == investor_id,
                    TokenInvestment.token_id == offering_id,
                    TokenInvestment.status == InvestmentStatus.active.value,
                )
                .with_for_update()
            )
            .scalars()
            .one_or_none()
        )

    # ─────────────────────────────────────────────
    # MUTATIONS
    # ─────────────────────────────────────────────

    def find_or_create_active(
        self,
        db: Session,
        *,
        offering: TokenOffering,
        investor_id: str,
        tokens: int,
        price_per_token: Decimal,
        payment_method: str,
        investor_email: Optional[str] = None,
        investor_phone: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> Tuple[TokenInvestment, bool]:
        """
        Credits `tokens` to the investor's single active holding for `offering`.

        Returns (investment, created). Two concurrent creators collide on the
        partial unique index; the loser's transaction is retried by
        run_in_transaction and then lands on the increment branch.
        """
        amount = line_total(tokens, price_per_token)
        inv = self.get_active_for_update(db, investor_id=investor_id, offering_id=offering.id)

        if inv:
            inv.tokens_owned += tokens
            inv.total_investment = money(inv.total_investment + amount)
            inv.ownership_percentage = percentage(inv.tokens_owned, offering.total_tokens)
            db.flush()
            return inv, False

        inv = TokenInvestment(
            investor_id=investor_id,
            investor_email=investor_email,
            investor_phone=investor_phone,
            property_id=offering.property_id,
            token_id=offering.id,
            tokens_owned=tokens,
            purchase_price=money(price_per_token),
            total_investment=amount,
            ownership_percentage=percentage(tokens, offering.total_tokens),
            transaction_id=transaction_id or new_transaction_id(),
            payment_method=payment_method,
            payment_status=PaymentStatus.success.value,
            status=InvestmentStatus.active.value,
        )
        db.add(inv)
        # surface duplicate-key races here, inside the unit of work
        db.flush()
        return inv, True

    def debit(self, inv: TokenInvestment, *, tokens: int, total_tokens: int) -> None:
        """
        Removes `tokens` from a holding; an emptied holding becomes sold.
        Callers check the balance first.
        """
        inv.tokens_owned -= tokens
        inv.ownership_percentage = percentage(inv.tokens_owned, total_tokens)
        if inv.tokens_owned == 0:
            inv.status = InvestmentStatus.sold.value


def find_or_create_active_investment(db: Session, **kwargs) -> Tuple[TokenInvestment, bool]:
    return InvestmentService().find_or_create_active(db, **kwargs)
