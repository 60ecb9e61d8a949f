"""Milestone endpoints."""
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.milestone import Milestone
from gigpay.models.profile import Profile
from gigpay.schemas.milestone import MilestoneRead, MilestoneRevisionRequest, MilestoneSubmit
from gigpay.security import require_profile
from gigpay.services import milestones as milestone_service
from gigpay.services.gigs import get_gig_or_404

router = APIRouter(tags=["milestones"])


@router.get("/gigs/{gig_id}/milestones", response_model=list[MilestoneRead])
def list_milestones(
    gig_id: int,
    db: Session = Depends(get_db),
    _profile: Profile = Depends(require_profile),
) -> list[Milestone]:
    gig = get_gig_or_404(db, gig_id)
    return milestone_service.list_milestones(db, gig.id)


@router.post("/milestones/{milestone_id}/submit", response_model=MilestoneRead)
def submit_milestone(
    milestone_id: int,
    payload: MilestoneSubmit | None = Body(default=None),
    db: Session = Depends(get_db),
    freelancer: Profile = Depends(require_profile),
) -> Milestone:
    notes = payload.notes if payload is not None else ""
    return milestone_service.submit_milestone(db, freelancer, milestone_id, notes=notes)


@router.post("/milestones/{milestone_id}/request-revision", response_model=MilestoneRead)
def request_revision(
    milestone_id: int,
    payload: MilestoneRevisionRequest,
    db: Session = Depends(get_db),
    client: Profile = Depends(require_profile),
) -> Milestone:
    return milestone_service.request_revision(db, client, milestone_id, reason=payload.reason)
