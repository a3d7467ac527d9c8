# app/services/notification_service.py
from __future__ import annotations

import logging
import uuid
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError, NotFoundError
from app.models.enums import NotificationPriority, NotificationType
from app.models.notification import Notification

logger = logging.getLogger(__name__)

TITLE_MAX = 200
MESSAGE_MAX = 1000


class NotificationService:
    # ─────────────────────────────────────────────
    # WRITE (fire-and-forget)
    # ─────────────────────────────────────────────

    def notify(
        self,
        db: Session,
        *,
        user_id: str,
        title: str,
        message: str,
        related_url: Optional[str] = None,
        type: NotificationType = NotificationType.system,
        related_id: Optional[Any] = None,
        priority: NotificationPriority = NotificationPriority.medium,
    ) -> Optional[Notification]:
        """
        Persists one notification in its own commit.

        Called after the ledger transaction has committed; a failure here is
        logged and swallowed so it never affects the ledger outcome.
        """
        row = Notification(
            user_id=user_id,
            type=type.value,
            title=title[:TITLE_MAX],
            message=message[:MESSAGE_MAX],
            related_id=str(related_id) if related_id is not None else None,
            related_url=related_url,
            priority=priority.value,
        )
        try:
            db.add(row)
            db.commit()
            db.refresh(row)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("[notify] failed to store notification for user=%s title=%r", user_id, title)
            return None
        return row

    # ─────────────────────────────────────────────
    # READS
    # ─────────────────────────────────────────────

    def list_for_user(
        self,
        db: Session,
        *,
        user_id: str,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Notification], int, int]:
        """
        Returns (rows, total, unread_count), newest first.
        """
        base = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            base = base.where(Notification.is_read.is_(False))

        total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
        unread = db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ).scalar_one()

        rows = (
            db.execute(
                base.order_by(Notification.created_at.desc())
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(rows), int(total), int(unread)

    # ─────────────────────────────────────────────
    # READ STATE
    # ─────────────────────────────────────────────

    def mark_read(self, db: Session, *, user_id: str, notification_id: uuid.UUID) -> Notification:
        row = db.get(Notification, notification_id)
        if not row:
            raise NotFoundError("Notification not found.")
        if row.user_id != user_id:
            raise AuthorizationError("Not authorized to modify this notification.")
        row.is_read = True
        db.commit()
        db.refresh(row)
        return row

    def mark_all_read(self, db: Session, *, user_id: str) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        db.commit()
        return int(result.rowcount or 0)
