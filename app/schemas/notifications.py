from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.models.notification import Notification


class NotificationOut(BaseModel):
    id: uuid.UUID
    userId: str
    type: str
    title: str
    message: str
    relatedId: Optional[str] = None
    relatedUrl: Optional[str] = None
    isRead: bool
    priority: str
    expiresAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None

    @classmethod
    def from_model(cls, n: Notification) -> "NotificationOut":
        return cls(
            id=n.id,
            userId=n.user_id,
            type=n.type,
            title=n.title,
            message=n.message,
            relatedId=n.related_id,
            relatedUrl=n.related_url,
            isRead=n.is_read,
            priority=n.priority,
            expiresAt=n.expires_at,
            createdAt=n.created_at,
        )
