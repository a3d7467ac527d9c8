# app/services/profile_service.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.models.user_profile import UserProfile


class ProfileService:
    def get(self, db: Session, user_id: str) -> Optional[UserProfile]:
        return db.get(UserProfile, user_id)

    def display_name(self, db: Session, user_id: str, fallback: Optional[str] = None) -> str:
        profile = self.get(db, user_id)
        if profile:
            return profile.name
        return fallback or "Unknown"
