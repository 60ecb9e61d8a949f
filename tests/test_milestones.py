from decimal import Decimal

import pytest

from gigpay.models import GigStatus, Milestone, MilestoneStatus
from gigpay.schemas.milestone import MilestoneCreate
from gigpay.services import milestones as milestone_service
from gigpay.utils.errors import InvalidStatus, Unauthorized, ValidationError


def _items(*percentages):
    return [MilestoneCreate(title=f"M{i}", percentage=Decimal(p)) for i, p in enumerate(percentages, start=1)]


@pytest.mark.parametrize(
    "percentages",
    [("50", "40"), ("60", "50"), ("99.99",)],
)
def test_percentages_must_total_one_hundred(percentages):
    with pytest.raises(ValidationError):
        milestone_service.validate_percentages(_items(*percentages))


def test_empty_milestone_list_is_rejected():
    with pytest.raises(ValidationError):
        milestone_service.validate_percentages([])


def test_thirds_split_keeps_budget_exact(client_profile, make_gig, db_session):
    owner, _ = client_profile
    gig = make_gig(owner, budget="100.00", percentages=["33.33", "33.33", "33.34"])

    rows = milestone_service.list_milestones(db_session, gig.id)

    assert [m.amount for m in rows] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert sum(m.amount for m in rows) == Decimal("100.00")
    assert [m.sequence_order for m in rows] == [1, 2, 3]


def test_split_below_one_cent_is_rejected_before_anything_is_written(client_profile, make_gig, db_session):
    owner, _ = client_profile

    with pytest.raises(ValidationError) as excinfo:
        make_gig(owner, budget="0.01", percentages=["50", "50"])

    assert excinfo.value.detail["details"] == {"sequence_order": 2, "amount": "0.00"}
    assert not db_session.new
    db_session.rollback()


def test_milestones_submit_in_sequence(db_session, client_profile, freelancer_profile, make_gig):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["50", "50"], freelancer=freelancer)
    first, second = milestone_service.list_milestones(db_session, gig.id)

    with pytest.raises(InvalidStatus):
        milestone_service.submit_milestone(db_session, freelancer, second.id)

    submitted = milestone_service.submit_milestone(db_session, freelancer, first.id, notes="draft")
    assert submitted.status == MilestoneStatus.SUBMITTED
    assert submitted.submission_notes == "draft"
    assert submitted.submitted_at is not None
    db_session.refresh(gig)
    assert gig.status == GigStatus.IN_PROGRESS

    with pytest.raises(InvalidStatus):
        milestone_service.submit_milestone(db_session, freelancer, first.id)


def test_only_assigned_freelancer_submits(db_session, client_profile, freelancer_profile, make_gig):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (only,) = milestone_service.list_milestones(db_session, gig.id)

    with pytest.raises(Unauthorized):
        milestone_service.submit_milestone(db_session, owner, only.id)


def test_open_gig_milestones_cannot_be_submitted(db_session, client_profile, freelancer_profile, make_gig):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"])
    gig.freelancer_id = freelancer.id
    db_session.commit()
    (only,) = milestone_service.list_milestones(db_session, gig.id)

    with pytest.raises(InvalidStatus):
        milestone_service.submit_milestone(db_session, freelancer, only.id)


def test_final_submission_and_revision_move_gig(db_session, client_profile, freelancer_profile, make_gig):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (only,) = milestone_service.list_milestones(db_session, gig.id)

    milestone_service.submit_milestone(db_session, freelancer, only.id)
    db_session.refresh(gig)
    assert gig.status == GigStatus.SUBMITTED

    with pytest.raises(Unauthorized):
        milestone_service.request_revision(db_session, freelancer, only.id, reason="self review")

    revised = milestone_service.request_revision(db_session, owner, only.id, reason="Needs dark mode")
    assert revised.status == MilestoneStatus.PENDING
    assert revised.submitted_at is None
    db_session.refresh(gig)
    assert gig.status == GigStatus.IN_PROGRESS


def test_revision_requires_submitted_milestone(db_session, client_profile, freelancer_profile, make_gig):
    owner, _ = client_profile
    freelancer, _ = freelancer_profile
    gig = make_gig(owner, percentages=["100"], freelancer=freelancer)
    (only,) = milestone_service.list_milestones(db_session, gig.id)

    with pytest.raises(InvalidStatus):
        milestone_service.request_revision(db_session, owner, only.id, reason="early")


@pytest.mark.anyio
async def test_revision_endpoint(client, db_session, client_profile, freelancer_profile, make_gig):
    owner, owner_headers = client_profile
    freelancer, freelancer_headers = freelancer_profile
    gig = make_gig(owner, percentages=["70", "30"], freelancer=freelancer)
    first, _ = milestone_service.list_milestones(db_session, gig.id)

    await client.post(f"/milestones/{first.id}/submit", headers=freelancer_headers)
    resp = await client.post(
        f"/milestones/{first.id}/request-revision", headers=owner_headers, json={"reason": "Fix typography"}
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"

    missing = await client.post("/milestones/999999/submit", headers=freelancer_headers)
    assert missing.status_code == 404


def test_progress_summary():
    rows = [
        Milestone(sequence_order=1, amount=Decimal("50.00"), status=MilestoneStatus.PAID),
        Milestone(sequence_order=2, amount=Decimal("30.00"), status=MilestoneStatus.SUBMITTED),
        Milestone(sequence_order=3, amount=Decimal("20.00"), status=MilestoneStatus.PENDING),
    ]

    summary = milestone_service.progress(rows)

    assert (summary.total, summary.paid, summary.submitted, summary.pending) == (3, 1, 1, 1)
    assert summary.paid_amount == Decimal("50.00")
    assert summary.remaining_amount == Decimal("50.00")
    assert summary.next_sequence == 2
