"""Security dependencies mapping bearer session tokens to profiles."""
from __future__ import annotations

from typing import Callable

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.profile import Profile, ProfileRole
from gigpay.services.guard import require_profile_role
from gigpay.utils.errors import AuthenticationRequired
from gigpay.utils.time import utcnow
from gigpay.utils.tokens import find_valid_token


def _extract_token(authorization: str | None = Header(default=None)) -> str | None:
    """Read the session token from ``Authorization: Bearer ...``."""

    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ", 1)[1].strip()
        return token or None
    return None


def require_profile(
    db: Session = Depends(get_db),
    token: str | None = Depends(_extract_token),
) -> Profile:
    """Validate the bearer token and return the profile it belongs to."""

    if not token:
        raise AuthenticationRequired("Authentication required.")

    session_token = find_valid_token(db, token)
    if session_token is None:
        raise AuthenticationRequired("Invalid or expired session token.")

    profile = db.get(Profile, session_token.profile_id)
    if profile is None:
        raise AuthenticationRequired("Profile not found for session token.")

    session_token.last_used_at = utcnow()
    db.commit()
    return profile


def require_role(role: ProfileRole) -> Callable:
    """Enforce that the authenticated profile carries ``role``."""

    def _dep(profile: Profile = Depends(require_profile)) -> Profile:
        require_profile_role(profile, role)
        return profile

    return _dep


__all__ = ["require_profile", "require_role"]
