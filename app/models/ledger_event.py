# app/models/ledger_event.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import String, DateTime, Uuid, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType


class LedgerEvent(Base):
    """
    Append-only journal of ledger mutations.
    - Written in the same transaction as the mutation it describes
    - Never UPDATEd
    """

    __tablename__ = "token_ledger_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    offering_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[str] = mapped_column(String(64), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(128), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(32), nullable=False)

    # Primary record touched (request, listing, investment...)
    ref_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    details_json: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)

    __table_args__ = (
        Index("ix_ledger_events_offering_created", "offering_id", "created_at"),
        Index("ix_ledger_events_action", "action"),
    )
