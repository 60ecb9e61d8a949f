"""Background cron jobs for maintenance tasks."""
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from gigpay import db as db_module
from gigpay.models.session_token import SessionToken
from gigpay.utils.time import utcnow

logger = logging.getLogger(__name__)


def expire_session_tokens_once(db_session: Session | None = None) -> int:
    """Deactivate session tokens whose expiry has passed; return how many."""

    db = db_session or db_module.get_sessionmaker()()
    try:
        now = utcnow()
        stmt = (
            update(SessionToken)
            .where(
                SessionToken.is_active.is_(True),
                SessionToken.expires_at.is_not(None),
                SessionToken.expires_at <= now,
            )
            .values(is_active=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        expired = db.execute(stmt).rowcount or 0
        db.commit()
        if expired:
            logger.info("Expired session tokens deactivated", extra={"count": expired})
        return expired
    finally:
        if db_session is None:
            db.close()
