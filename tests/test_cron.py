import pytest
from sqlalchemy import select

from gigpay.models import SessionToken
from gigpay.services.cron import expire_session_tokens_once
from gigpay.utils.tokens import issue_token


@pytest.mark.anyio
async def test_expired_tokens_are_deactivated(client, db_session, make_profile):
    profile, live_headers = make_profile()
    stale, raw = issue_token(db_session, profile.id, ttl_days=-1)
    db_session.commit()

    assert expire_session_tokens_once(db_session) == 1
    db_session.expire_all()
    assert db_session.get(SessionToken, stale.id).is_active is False
    active = db_session.scalars(
        select(SessionToken).where(SessionToken.profile_id == profile.id, SessionToken.is_active.is_(True))
    ).all()
    assert len(active) == 1

    denied = await client.get("/profiles/me", headers={"Authorization": f"Bearer {raw}"})
    assert denied.status_code == 401
    allowed = await client.get("/profiles/me", headers=live_headers)
    assert allowed.status_code == 200


def test_nothing_to_expire(db_session, make_profile):
    make_profile()
    assert expire_session_tokens_once(db_session) == 0
