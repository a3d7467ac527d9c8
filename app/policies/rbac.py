#app/policies/rbac.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Set

from app.core.errors import AuthorizationError
from app.models.enums import UserRole


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: UserRole
    email: Optional[str] = None

    @property
    def is_superadmin(self) -> bool:
        return self.role == UserRole.SUPERADMIN


# --- Core action constants ---
ACTION_ISSUE_OFFERING = "ISSUE_OFFERING"
ACTION_SUBMIT_PURCHASE_REQUEST = "SUBMIT_PURCHASE_REQUEST"
ACTION_CREATE_LISTING = "CREATE_LISTING"
ACTION_PURCHASE_LISTING = "PURCHASE_LISTING"


def allowed_actions(role: UserRole) -> Set[str]:
    """
    Pure RBAC: which actions a role may attempt.
    Ownership checks happen in the services.
    """

    if role == UserRole.BUYER:
        return {
            ACTION_SUBMIT_PURCHASE_REQUEST,
            ACTION_CREATE_LISTING,
            ACTION_PURCHASE_LISTING,
        }

    if role == UserRole.LANDLORD:
        return {ACTION_ISSUE_OFFERING}

    if role == UserRole.SUPERADMIN:
        return {ACTION_ISSUE_OFFERING}

    return set()


def require_action(actor: Actor, action: str) -> None:
    if action not in allowed_actions(actor.role):
        raise AuthorizationError(
            f"Role {actor.role.value} not permitted for action {action}."
        )
