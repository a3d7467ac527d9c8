# app/models/listing.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

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

from app.db.base import Base, JSONType
from app.models.enums import ListingStatus


class TokenListing(Base):
    """
    Peer-to-peer resale offer over part of one investment.

    total_price is always tokens_for_sale * price_per_token; a partial sale
    shrinks tokens_for_sale in place.
    """

    __tablename__ = "token_listings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Seller snapshot
    seller_id: Mapped[str] = mapped_column(String(128), nullable=False)
    seller_name: Mapped[str] = mapped_column(String(256), nullable=False)
    seller_email: Mapped[str] = mapped_column(String(256), nullable=False)

    token_investment_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("token_investments.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False
    )
    token_offering_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("token_offerings.id", ondelete="RESTRICT"), nullable=False
    )

    tokens_for_sale: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_token: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Denormalised display data
    property_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    token_name: Mapped[str] = mapped_column(String(128), nullable=False)
    token_symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    property_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    risk_level: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ListingStatus.active.value,
        server_default=text(f"'{ListingStatus.active.value}'"),
    )

    listed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    sold_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Buyer snapshot (set when fully sold)
    buyer_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    buyer_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    buyer_email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[List[Any]] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("tokens_for_sale >= 1", name="ck_listing_tokens_positive"),
        CheckConstraint("price_per_token >= 0", name="ck_listing_price_nonnegative"),
        Index("ix_listings_seller_status", "seller_id", "status"),
        Index("ix_listings_status_listed", "status", "listed_at"),
        Index("ix_listings_offering_status", "token_offering_id", "status"),
    )
