# app/models/property.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, Boolean, Numeric, Uuid, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Property(Base):
    """
    Seller property as seen by the token ledger.

    Owned by the listings catalogue; the ledger only reads it, except for the
    tokenized mark written when an offering is issued.
    """

    __tablename__ = "properties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    name: Mapped[str] = mapped_column(String(256), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)

    country: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(20, 2), nullable=True)

    is_tokenized: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    investment_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    token_offering_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (Index("ix_properties_owner_tokenized", "owner_id", "is_tokenized"),)
