# app/models/token_offering.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Text,
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
from app.models.enums import OfferingStatus, DividendFrequency, RiskLevel


class TokenOffering(Base):
    """
    Fixed-supply issuance of ownership tokens for one property.

    Supply rule: tokens_sold + tokens_available == total_tokens.
    Status becomes funded exactly when tokens_available reaches 0.
    """

    __tablename__ = "token_offerings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("properties.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )

    token_name: Mapped[str] = mapped_column(String(128), nullable=False)
    token_symbol: Mapped[str] = mapped_column(String(16), nullable=False)

    # Supply
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    tokens_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    tokens_available: Mapped[int] = mapped_column(Integer, nullable=False)

    # Pricing
    token_price: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    initial_token_price: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    annual_appreciation_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )

    min_purchase: Mapped[int] = mapped_column(Integer, nullable=False)
    max_purchase: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Offering terms
    property_value: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    expected_return: Mapped[str] = mapped_column(String(64), nullable=False)
    dividend_frequency: Mapped[str] = mapped_column(
        String(16), nullable=False, default=DividendFrequency.QUARTERLY.value
    )
    offering_start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    offering_end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=OfferingStatus.draft.value,
        server_default=text(f"'{OfferingStatus.draft.value}'"),
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)
    risk_level: Mapped[str] = mapped_column(String(8), nullable=False, default=RiskLevel.medium.value)
    property_type: Mapped[str] = mapped_column(String(64), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("total_tokens >= 1", name="ck_offering_total_positive"),
        CheckConstraint("tokens_sold >= 0", name="ck_offering_sold_nonnegative"),
        CheckConstraint("tokens_available >= 0", name="ck_offering_available_nonnegative"),
        CheckConstraint(
            "tokens_sold + tokens_available = total_tokens",
            name="ck_offering_supply_conserved",
        ),
        CheckConstraint("min_purchase >= 1", name="ck_offering_min_purchase"),
        Index("ix_token_offerings_status_created", "status", "created_at"),
    )
