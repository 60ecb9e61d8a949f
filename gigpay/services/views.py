"""Read models for the dashboard and the gig detail page."""
from __future__ import annotations

from sqlalchemy.orm import Session

from gigpay.models.gig import GigStatus
from gigpay.models.profile import Profile, ProfileRole
from gigpay.schemas.dashboard import Dashboard
from gigpay.schemas.gig import GigDetail, GigRead
from gigpay.schemas.milestone import MilestoneRead
from gigpay.schemas.profile import ProfileRead
from gigpay.schemas.submission import SubmissionRead
from gigpay.schemas.transaction import TransactionRead
from gigpay.services import gigs as gig_service
from gigpay.services import ledger
from gigpay.services.guard import GigRole, is_party
from gigpay.services.milestones import list_milestones, progress


def dashboard(db: Session, profile: Profile) -> Dashboard:
    """Clients see their own gigs; freelancers see open gigs and their assignments."""

    if profile.role is ProfileRole.CLIENT:
        mine = gig_service.list_gigs(db, client_id=profile.id)
        open_gigs = []
    elif profile.role is ProfileRole.FREELANCER:
        mine = gig_service.list_gigs(db, freelancer_id=profile.id)
        open_gigs = gig_service.list_gigs(db, status=GigStatus.OPEN)
    else:
        raise ValueError(f"Unknown profile role: {profile.role!r}")

    return Dashboard(
        profile=ProfileRead.model_validate(profile),
        role=profile.role,
        my_gigs=[GigRead.model_validate(gig) for gig in mine],
        open_gigs=[GigRead.model_validate(gig) for gig in open_gigs],
    )


def gig_detail(db: Session, viewer: Profile, gig_id: int) -> GigDetail:
    """Gig with milestones, live submission and progress; ledger rows for parties only."""

    gig = gig_service.get_gig_or_404(db, gig_id)
    milestones = list_milestones(db, gig.id) if gig.has_milestones else []
    submission = None if gig.has_milestones else gig_service.live_submission(db, gig.id)
    is_participant = is_party(viewer, gig, GigRole.CLIENT) or is_party(viewer, gig, GigRole.FREELANCER)
    transactions = ledger.list_for_gig(db, gig.id) if is_participant else []

    return GigDetail(
        **GigRead.model_validate(gig).model_dump(),
        milestones=[MilestoneRead.model_validate(m) for m in milestones],
        submission=SubmissionRead.model_validate(submission) if submission is not None else None,
        transactions=[TransactionRead.model_validate(t) for t in transactions],
        progress=progress(milestones) if gig.has_milestones else None,
    )


__all__ = ["dashboard", "gig_detail"]
