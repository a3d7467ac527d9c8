# app/services/ledger_event_service.py
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.enums import LedgerAction
from app.models.ledger_event import LedgerEvent
from app.policies.rbac import Actor


class LedgerEventService:
    """
    Append-only journal of ledger mutations.

    write() only adds the row; the caller's transaction commits or rolls it
    back together with the mutation it describes.
    """

    def write(
        self,
        db: Session,
        *,
        offering_id: uuid.UUID,
        action: LedgerAction,
        actor: Actor,
        ref_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> LedgerEvent:
        row = LedgerEvent(
            offering_id=offering_id,
            action=action.value,
            actor_id=actor.user_id,
            actor_role=actor.role.value,
            ref_id=str(ref_id) if ref_id is not None else None,
            details_json=details or {},
        )
        db.add(row)
        return row

    def list_for_offering(
        self,
        db: Session,
        offering_id: uuid.UUID,
        *,
        action: Optional[LedgerAction] = None,
    ) -> List[LedgerEvent]:
        stmt = select(LedgerEvent).where(LedgerEvent.offering_id == offering_id)
        if action is not None:
            stmt = stmt.where(LedgerEvent.action == action.value)
        stmt = stmt.order_by(LedgerEvent.created_at.asc())
        return list(db.execute(stmt).scalars().all())
