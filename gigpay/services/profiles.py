"""Profile sign-up and session issuing."""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigpay.models.profile import Profile
from gigpay.models.session_token import SessionToken
from gigpay.schemas.profile import ProfileCreate
from gigpay.utils.audit import actor_from_profile, log_audit
from gigpay.utils.errors import ValidationError
from gigpay.utils.tokens import issue_token

logger = logging.getLogger(__name__)


def create_profile(db: Session, payload: ProfileCreate) -> tuple[Profile, SessionToken, str]:
    """Create a profile and return it with its first session token (raw value included)."""

    email = payload.email.lower()
    if db.scalars(select(Profile.id).where(Profile.email == email)).first() is not None:
        raise ValidationError("A profile with this email already exists.")

    profile = Profile(
        email=email,
        full_name=payload.full_name,
        role=payload.role,
        wallet_address=payload.wallet_address,
    )
    try:
        db.add(profile)
        db.flush()
        token, raw = issue_token(db, profile.id)
        log_audit(
            db,
            actor=actor_from_profile(profile),
            action="PROFILE_CREATED",
            entity="Profile",
            entity_id=profile.id,
            data={"email": email, "role": profile.role.value, "wallet_address": profile.wallet_address},
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError("A profile with this email already exists.") from exc

    db.refresh(profile)
    logger.info("Profile created", extra={"profile_id": profile.id, "role": profile.role.value})
    return profile, token, raw


__all__ = ["create_profile"]
