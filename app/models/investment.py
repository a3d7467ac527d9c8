# app/models/investment.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    DateTime,
    Integer,
    Numeric,
    Uuid,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base
from app.models.enums import InvestmentStatus, PaymentStatus


class TokenInvestment(Base):
    """
    An investor's holding of tokens for one offering.

    At most one active holding per (investor_id, token_id); enforced by the
    partial unique index below.
    """

    __tablename__ = "token_investments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    investor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    investor_email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    investor_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False
    )
    token_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("token_offerings.id", ondelete="RESTRICT"), nullable=False
    )

    tokens_owned: Mapped[int] = mapped_column(Integer, nullable=False)
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    total_investment: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    ownership_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)

    transaction_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PaymentStatus.pending.value
    )

    total_dividends_earned: Mapped[Decimal] = mapped_column(
        Numeric(20, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    last_dividend_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=InvestmentStatus.active.value,
        server_default=text(f"'{InvestmentStatus.active.value}'"),
    )
    purchase_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("tokens_owned >= 0", name="ck_investment_tokens_nonnegative"),
        Index(
            "uq_investments_active_owner",
            "investor_id",
            "token_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("ix_investments_investor_status", "investor_id", "status"),
        Index("ix_investments_property_status", "property_id", "status"),
    )
