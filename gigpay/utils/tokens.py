"""Session token generation and validation helpers."""
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigpay.config import get_settings
from gigpay.models.session_token import SessionToken
from gigpay.utils.time import as_utc, utcnow

TOKEN_PREFIX = "gp_"


def hash_token(raw: str) -> str:
    """Return an HMAC-SHA256 hash for the provided bearer token."""

    secret = get_settings().SECRET_KEY
    return hmac.new(secret.encode(), raw.encode(), hashlib.sha256).hexdigest()


def gen_token(prefix_len: int = 8) -> tuple[str, str, str]:
    """Generate a user-facing bearer token, its prefix, and the stored hash."""

    prefix = TOKEN_PREFIX + secrets.token_hex(prefix_len)[:prefix_len]
    suffix = secrets.token_urlsafe(32)
    raw = f"{prefix}.{suffix}"
    return raw, prefix, hash_token(raw)


def issue_token(db: Session, profile_id: int, *, ttl_days: int | None = None) -> tuple[SessionToken, str]:
    """Persist a new session token for ``profile_id`` and return it with the raw value."""

    days = ttl_days if ttl_days is not None else get_settings().SESSION_TOKEN_TTL_DAYS
    raw, prefix, token_hash = gen_token()
    token = SessionToken(
        profile_id=profile_id,
        prefix=prefix,
        token_hash=token_hash,
        is_active=True,
        expires_at=utcnow() + timedelta(days=days),
    )
    db.add(token)
    db.flush()
    return token, raw


def find_valid_token(db: Session, raw: str) -> SessionToken | None:
    """Return the active, unexpired session token matching ``raw``."""

    stmt = select(SessionToken).where(
        SessionToken.token_hash == hash_token(raw),
        SessionToken.is_active.is_(True),
    )
    token = db.scalars(stmt).first()
    if token is None:
        return None
    if token.expires_at is not None and as_utc(token.expires_at) <= utcnow():
        return None
    return token


__all__ = ["TOKEN_PREFIX", "hash_token", "gen_token", "issue_token", "find_valid_token"]
