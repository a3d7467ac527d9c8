#app/core/auth_deps.py
from __future__ import annotations

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import AuthenticationError
from app.core.security import decode_token
from app.models.enums import UserRole
from app.policies.rbac import Actor

bearer = HTTPBearer(auto_error=False)


def get_current_actor(
    request: Request,
    creds: HTTPAuthorizationCredentials = Depends(bearer),
) -> Actor:
    """
    Canonical authentication dependency.

    Guarantees:
    - JWT is valid and unexpired
    - sub and role are present
    - role is a valid UserRole
    """
    if creds is None or not creds.credentials:
        raise AuthenticationError("Missing bearer token.")

    payload = decode_token(creds.credentials)

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or not role:
        raise AuthenticationError("Token missing required claims.")

    try:
        role_enum = UserRole(str(role).lower())
    except ValueError:
        raise AuthenticationError("Invalid role in token.")

    actor = Actor(
        user_id=str(user_id),
        role=role_enum,
        email=payload.get("email"),
    )

    # downstream middleware / handlers
    request.state.actor = actor
    return actor
