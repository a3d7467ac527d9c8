# app/models/purchase_request.py
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
    Boolean,
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
from app.models.enums import PurchaseRequestStatus


class TokenPurchaseRequest(Base):
    """
    A buyer's application for primary-issuance tokens.

    Price and contact details are snapshots taken at submission time.
    """

    __tablename__ = "token_purchase_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Human-facing sequence number (starts at 1000)
    request_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)

    token_offering_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("token_offerings.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="RESTRICT"), nullable=False
    )

    # Buyer snapshot
    buyer_id: Mapped[str] = mapped_column(String(128), nullable=False)
    buyer_name: Mapped[str] = mapped_column(String(256), nullable=False)
    buyer_email: Mapped[str] = mapped_column(String(256), nullable=False)
    buyer_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    buyer_address: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # Seller snapshot
    seller_id: Mapped[str] = mapped_column(String(128), nullable=False)
    seller_name: Mapped[str] = mapped_column(String(256), nullable=False)
    seller_email: Mapped[str] = mapped_column(String(256), nullable=False)

    # Purchase terms
    tokens_requested: Mapped[int] = mapped_column(Integer, nullable=False)
    price_per_token: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(20, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proposed_payment_method: Mapped[str] = mapped_column(String(64), nullable=False)
    investment_purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=PurchaseRequestStatus.pending.value,
        server_default=text(f"'{PurchaseRequestStatus.pending.value}'"),
    )

    # Review
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    seller_payment_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Payment
    payment_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payment_proof: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    payment_submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_confirmed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    payment_transaction_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Assignment
    tokens_assigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    tokens_assigned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Agreement
    agreement_document_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    agreement_signed_by_buyer: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    agreement_signed_by_seller: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    agreement_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("tokens_requested >= 1", name="ck_request_tokens_positive"),
        CheckConstraint("tokens_assigned >= 0", name="ck_request_assigned_nonnegative"),
        Index("ix_requests_buyer_status", "buyer_id", "status"),
        Index("ix_requests_seller_status", "seller_id", "status"),
        Index("ix_requests_created", "created_at"),
    )
