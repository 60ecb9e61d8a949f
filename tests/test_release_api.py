import base64
import json
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from gigpay.config import get_settings
from gigpay.models import (
    Gig,
    GigStatus,
    Milestone,
    MilestoneStatus,
    ProfileRole,
    Submission,
    SubmissionStatus,
    Transaction,
    TransactionType,
)
from gigpay.services import gigs as gig_service
from gigpay.services import milestones as milestone_service
from gigpay.services.x402 import build_challenge, resource_for
from gigpay.utils.time import utcnow


def _milestones(db_session, gig_id):
    db_session.expire_all()
    return list(
        db_session.scalars(
            select(Milestone).where(Milestone.gig_id == gig_id).order_by(Milestone.sequence_order)
        )
    )


def _release_rows(db_session, gig_id):
    return list(
        db_session.scalars(
            select(Transaction).where(
                Transaction.gig_id == gig_id,
                Transaction.transaction_type.in_((TransactionType.MILESTONE_RELEASE, TransactionType.RELEASE)),
            )
        )
    )


@pytest.mark.anyio
async def test_fifty_fifty_milestones_are_released_in_order(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof, settlement
):
    owner, owner_headers = client_profile
    freelancer, freelancer_headers = freelancer_profile
    gig = make_gig(owner, budget="1000.00", percentages=["50", "50"], freelancer=freelancer)
    first, second = _milestones(db_session, gig.id)
    assert first.amount == Decimal("500.00")

    submitted = await client.post(f"/milestones/{first.id}/submit", headers=freelancer_headers, json={"notes": "v1"})
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "submitted"

    early = await client.post(f"/milestones/{second.id}/submit", headers=freelancer_headers, json={})
    assert early.status_code == 400
    assert early.json()["code"] == "INVALID_STATUS"

    challenge = await client.post(
        "/release", headers=owner_headers, json={"milestone_id": first.id, "payment_type": "milestone"}
    )
    assert challenge.status_code == 402
    body = challenge.json()
    assert body["x402Version"] == 1
    accepted = body["accepts"][0]
    assert accepted["maxAmountRequired"] == "500000000"
    assert accepted["resource"] == resource_for("milestone", first.id)
    assert accepted["maxTimeoutSeconds"] == 300
    assert _milestones(db_session, gig.id)[0].status == MilestoneStatus.SUBMITTED
    assert _release_rows(db_session, gig.id) == []

    header = make_proof(body)
    paid = await client.post(
        "/release",
        headers={**owner_headers, "X-Payment": header},
        json={"milestone_id": first.id, "payment_type": "milestone"},
    )
    assert paid.status_code == 200
    payload = paid.json()
    assert payload["success"] is True
    assert payload["message"] == "Milestone approved successfully via x402"
    info = payload["transaction_info"]
    assert Decimal(info["amount_released"]) == Decimal("500.00")
    assert info["freelancer_wallet"] == freelancer.wallet_address
    receipt = json.loads(base64.b64decode(paid.headers["X-Payment-Response"]))
    assert receipt["success"] is True
    assert receipt["transaction"] == info["tx_signature"]
    assert len(settlement.calls) == 1

    first_after, _ = _milestones(db_session, gig.id)
    assert first_after.status == MilestoneStatus.PAID
    assert first_after.paid_at is not None
    assert first_after.settlement_reference == info["tx_signature"]
    assert db_session.get(Gig, gig.id).total_paid_amount == Decimal("500.00")
    rows = _release_rows(db_session, gig.id)
    assert [(r.transaction_type, r.amount) for r in rows] == [(TransactionType.MILESTONE_RELEASE, Decimal("500.00"))]

    replay = await client.post(
        "/release",
        headers={**owner_headers, "X-Payment": header},
        json={"milestone_id": first.id, "payment_type": "milestone"},
    )
    assert replay.status_code == 400
    assert replay.json()["code"] == "INVALID_STATUS"
    assert len(settlement.calls) == 1
    assert len(_release_rows(db_session, gig.id)) == 1

    now_allowed = await client.post(f"/milestones/{second.id}/submit", headers=freelancer_headers, json={})
    assert now_allowed.status_code == 200
    assert db_session.get(Gig, gig.id).status == GigStatus.SUBMITTED

    second_challenge = await client.post(
        "/release", headers=owner_headers, json={"milestone_id": second.id, "payment_type": "milestone"}
    )
    assert second_challenge.status_code == 402
    final = await client.post(
        "/release",
        headers={**owner_headers, "X-Payment": make_proof(second_challenge.json())},
        json={"milestone_id": second.id, "payment_type": "milestone"},
    )
    assert final.status_code == 200

    db_session.expire_all()
    finished = db_session.get(Gig, gig.id)
    assert finished.status == GigStatus.COMPLETED
    assert finished.total_paid_amount == finished.budget
    assert len(_release_rows(db_session, gig.id)) == 2


@pytest.mark.anyio
async def test_uneven_split_pays_exactly_the_budget(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof
):
    owner, owner_headers = client_profile
    freelancer, freelancer_headers = freelancer_profile
    gig = make_gig(owner, budget="100.00", percentages=["33.33", "33.33", "33.34"], freelancer=freelancer)

    for milestone in _milestones(db_session, gig.id):
        response = await client.post(f"/milestones/{milestone.id}/submit", headers=freelancer_headers, json={})
        assert response.status_code == 200
        request = {"milestone_id": milestone.id, "payment_type": "milestone"}
        challenge = await client.post("/release", headers=owner_headers, json=request)
        assert challenge.status_code == 402
        paid = await client.post(
            "/release", headers={**owner_headers, "X-Payment": make_proof(challenge.json())}, json=request
        )
        assert paid.status_code == 200

    db_session.expire_all()
    finished = db_session.get(Gig, gig.id)
    assert finished.total_paid_amount == Decimal("100.00")
    assert finished.status == GigStatus.COMPLETED
    assert sum(row.amount for row in _release_rows(db_session, gig.id)) == Decimal("100.00")


@pytest.mark.anyio
async def test_release_by_non_client_is_unauthorized_without_side_effects(
    client, db_session, client_profile, freelancer_profile, make_profile, make_gig, settlement
):
    owner, _ = client_profile
    freelancer, freelancer_headers = freelancer_profile
    _, stranger_headers = make_profile(ProfileRole.CLIENT)
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)

    for headers in (freelancer_headers, stranger_headers):
        response = await client.post(
            "/release", headers=headers, json={"milestone_id": milestone.id, "payment_type": "milestone"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "UNAUTHORIZED"
        assert "maxAmountRequired" not in response.text

    assert _milestones(db_session, gig.id)[0].status == MilestoneStatus.SUBMITTED
    assert settlement.calls == []
    assert _release_rows(db_session, gig.id) == []


@pytest.mark.anyio
async def test_release_of_pending_milestone_is_invalid_status(
    client, db_session, client_profile, freelancer_profile, make_gig
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["40", "60"], freelancer=freelancer)
    first, _ = _milestones(db_session, gig.id)

    response = await client.post(
        "/release", headers=owner_headers, json={"milestone_id": first.id, "payment_type": "milestone"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_STATUS"
    assert db_session.get(Gig, gig.id).total_paid_amount == Decimal("0.00")


@pytest.mark.anyio
async def test_missing_wallet_fails_before_settlement_and_writes(
    client, db_session, client_profile, make_profile, make_gig, settlement
):
    owner, owner_headers = client_profile
    walletless, _ = make_profile(ProfileRole.FREELANCER)
    gig = make_gig(owner, percentages=["100"], freelancer=walletless)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, walletless, milestone.id)

    resource = resource_for("milestone", milestone.id)
    challenge = build_challenge(resource, milestone.amount, pay_to="EscrowPayee", issued_at=utcnow())
    header = base64.b64encode(
        json.dumps(
            {
                "x402Version": 1,
                "scheme": "exact",
                "network": "solana-devnet",
                "payload": {"transaction": "signed"},
                "resource": resource,
                "issuedAt": challenge.accepts[0].extra["issuedAt"],
                "nonce": challenge.accepts[0].extra["nonce"],
            }
        ).encode()
    ).decode()

    response = await client.post(
        "/release",
        headers={**owner_headers, "X-Payment": header},
        json={"milestone_id": milestone.id, "payment_type": "milestone"},
    )
    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "FREELANCER_WALLET_MISSING"
    assert data["error"] == "Freelancer must connect wallet before payment can be released"
    assert settlement.calls == []
    assert _milestones(db_session, gig.id)[0].status == MilestoneStatus.SUBMITTED
    assert _release_rows(db_session, gig.id) == []


@pytest.mark.anyio
async def test_failed_settlement_returns_receipt_and_changes_nothing(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof, settlement
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)
    request = {"milestone_id": milestone.id, "payment_type": "milestone"}
    challenge = await client.post("/release", headers=owner_headers, json=request)

    settlement.succeed = False
    response = await client.post(
        "/release", headers={**owner_headers, "X-Payment": make_proof(challenge.json())}, json=request
    )
    assert response.status_code == 400
    assert response.json()["code"] == "SETTLEMENT_FAILED"
    assert response.json()["error"] == "Payment settlement failed"
    receipt = json.loads(base64.b64decode(response.headers["X-Payment-Response"]))
    assert receipt["success"] is False
    assert receipt["errorReason"] == "insufficient_funds"
    assert _milestones(db_session, gig.id)[0].status == MilestoneStatus.SUBMITTED
    assert _release_rows(db_session, gig.id) == []


@pytest.mark.anyio
async def test_settlement_without_reference_is_a_failure(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof, settlement
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)
    request = {"milestone_id": milestone.id, "payment_type": "milestone"}
    challenge = await client.post("/release", headers=owner_headers, json=request)

    settlement.omit_reference = True
    response = await client.post(
        "/release", headers={**owner_headers, "X-Payment": make_proof(challenge.json())}, json=request
    )
    assert response.status_code == 400
    assert response.json()["code"] == "SETTLEMENT_FAILED"
    assert _release_rows(db_session, gig.id) == []


@pytest.mark.anyio
async def test_stale_proof_is_rejected(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof, settlement, monkeypatch
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)
    request = {"milestone_id": milestone.id, "payment_type": "milestone"}
    challenge = await client.post("/release", headers=owner_headers, json=request)

    later = utcnow() + timedelta(seconds=400)
    monkeypatch.setattr("gigpay.services.release.utcnow", lambda: later)
    response = await client.post(
        "/release", headers={**owner_headers, "X-Payment": make_proof(challenge.json())}, json=request
    )
    assert response.status_code == 400
    assert response.json()["code"] == "SETTLEMENT_FAILED"
    assert response.json()["error"] == "Payment challenge expired."
    assert settlement.calls == []


@pytest.mark.anyio
async def test_proof_for_another_resource_is_rejected(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof, settlement
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)
    request = {"milestone_id": milestone.id, "payment_type": "milestone"}
    challenge = await client.post("/release", headers=owner_headers, json=request)

    forged = make_proof(challenge.json(), resource=resource_for("milestone", milestone.id + 1000))
    response = await client.post("/release", headers={**owner_headers, "X-Payment": forged}, json=request)
    assert response.status_code == 400
    assert response.json()["code"] == "SETTLEMENT_FAILED"
    assert settlement.calls == []


@pytest.mark.anyio
async def test_malformed_payment_header_is_validation_error(
    client, db_session, client_profile, freelancer_profile, make_gig
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)

    response = await client.post(
        "/release",
        headers={**owner_headers, "X-Payment": "not-base64!!"},
        json={"milestone_id": milestone.id, "payment_type": "milestone"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_full_payment_completes_gig_and_approves_submission(
    client, db_session, client_profile, freelancer_profile, make_gig, make_proof
):
    owner, owner_headers = client_profile
    freelancer, freelancer_headers = freelancer_profile
    gig = make_gig(owner, budget="250.00", freelancer=freelancer)

    submitted = await client.post(
        f"/gigs/{gig.id}/submissions",
        headers=freelancer_headers,
        json={"deliverable_url": "https://files.example.com/site.zip", "notes": "done"},
    )
    assert submitted.status_code == 201

    request = {"gig_id": gig.id, "payment_type": "full"}
    challenge = await client.post("/release", headers=owner_headers, json=request)
    assert challenge.status_code == 402
    accepted = challenge.json()["accepts"][0]
    assert accepted["resource"] == resource_for("gig", gig.id)
    assert accepted["maxAmountRequired"] == "250000000"

    paid = await client.post(
        "/milestone-orchestrator",
        headers={**owner_headers, "X-Payment": make_proof(challenge.json())},
        json=request,
    )
    assert paid.status_code == 200
    assert paid.json()["message"] == "Payment approved successfully via x402"

    db_session.expire_all()
    finished = db_session.get(Gig, gig.id)
    assert finished.status == GigStatus.COMPLETED
    assert finished.total_paid_amount == Decimal("250.00")
    submission = db_session.scalars(select(Submission).where(Submission.gig_id == gig.id)).one()
    assert submission.status == SubmissionStatus.APPROVED
    assert submission.reviewed_at is not None
    rows = _release_rows(db_session, gig.id)
    assert [(r.transaction_type, r.amount) for r in rows] == [(TransactionType.RELEASE, Decimal("250.00"))]


@pytest.mark.anyio
async def test_full_payment_on_milestone_gig_is_rejected(client, client_profile, freelancer_profile, make_gig):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)

    response = await client.post("/release", headers=owner_headers, json={"gig_id": gig.id, "payment_type": "full"})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_full_payment_on_milestone_gig_by_outsider_is_unauthorized(
    client, client_profile, freelancer_profile, make_profile, make_gig
):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    _, stranger_headers = make_profile(ProfileRole.CLIENT)
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)

    response = await client.post("/release", headers=stranger_headers, json={"gig_id": gig.id, "payment_type": "full"})
    assert response.status_code == 400
    assert response.json()["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_challenge_without_any_escrow_address_is_validation_error(
    client, db_session, client_profile, freelancer_profile, make_gig, settlement, monkeypatch
):
    owner, owner_headers = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (milestone,) = _milestones(db_session, gig.id)
    milestone_service.submit_milestone(db_session, freelancer, milestone.id)
    monkeypatch.setattr(get_settings(), "ESCROW_WALLET_ADDRESS", None)

    response = await client.post(
        "/release", headers=owner_headers, json={"milestone_id": milestone.id, "payment_type": "milestone"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["details"] == {"gig_id": gig.id}
    assert settlement.calls == []
    assert _milestones(db_session, gig.id)[0].status == MilestoneStatus.SUBMITTED

    gig = db_session.get(Gig, gig.id)
    gig.escrow_address = "0xGigEscrow"
    db_session.commit()

    challenge = await client.post(
        "/release", headers=owner_headers, json={"milestone_id": milestone.id, "payment_type": "milestone"}
    )
    assert challenge.status_code == 402
    assert challenge.json()["accepts"][0]["payTo"] == "0xGigEscrow"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "body",
    [
        {"gig_id": 1, "payment_type": "milestone"},
        {"milestone_id": 1, "payment_type": "full"},
        {"milestone_id": 1, "gig_id": 1, "payment_type": "milestone"},
    ],
)
async def test_mismatched_kind_and_id_is_validation_error(client, client_profile, body):
    _, owner_headers = client_profile
    response = await client.post("/release", headers=owner_headers, json=body)
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_unknown_milestone_is_not_found(client, client_profile):
    _, owner_headers = client_profile
    response = await client.post(
        "/release", headers=owner_headers, json={"milestone_id": 987654, "payment_type": "milestone"}
    )
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.anyio
async def test_release_requires_authentication(client):
    response = await client.post("/release", json={"milestone_id": 1, "payment_type": "milestone"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"


def test_rejecting_submission_returns_gig_to_in_progress(db_session, client_profile, freelancer_profile, make_gig):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, freelancer=freelancer)
    gig_service.submit_work(db_session, freelancer, gig.id, deliverable_url="https://example.com/a.zip")
    gig_service.reject_submission(db_session, owner, gig.id)

    db_session.expire_all()
    assert db_session.get(Gig, gig.id).status == GigStatus.IN_PROGRESS
