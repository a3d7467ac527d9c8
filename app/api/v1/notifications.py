from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.v1.responses import ok
from app.core.auth_deps import get_current_actor
from app.core.pagination import PageRequest
from app.db.session import get_db
from app.policies.rbac import Actor
from app.schemas.notifications import NotificationOut
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications")


@router.get("")
def list_notifications(
    unreadOnly: bool = False,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    paging = PageRequest.build(page, limit)
    rows, total, unread = NotificationService().list_for_user(
        db, user_id=actor.user_id, unread_only=unreadOnly, page=paging.page, limit=paging.limit
    )
    meta = paging.meta(total)
    meta["unreadCount"] = unread
    return ok([NotificationOut.from_model(n) for n in rows], pagination=meta)


@router.post("/read-all")
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    count = NotificationService().mark_all_read(db, user_id=actor.user_id)
    return ok({"updated": count}, message="All notifications marked as read")


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    row = NotificationService().mark_read(db, user_id=actor.user_id, notification_id=notification_id)
    return ok(NotificationOut.from_model(row), message="Notification marked as read")
