"""Milestone lifecycle: creation, sequential submission and revision."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigpay.models.gig import Gig, GigStatus
from gigpay.models.milestone import Milestone, MilestoneStatus
from gigpay.models.profile import Profile
from gigpay.schemas.milestone import MilestoneCreate, MilestoneProgress
from gigpay.services import events
from gigpay.services.guard import GigRole, authorize
from gigpay.services.status import ensure_transition
from gigpay.utils.audit import actor_from_profile, log_audit
from gigpay.utils.errors import InvalidStatus, NotFound, ValidationError
from gigpay.utils.money import CENT, HUNDRED, split_by_percentages, to_money
from gigpay.utils.time import utcnow

logger = logging.getLogger(__name__)


def validate_percentages(milestones: Sequence[MilestoneCreate]) -> None:
    """Milestone percentages must be positive and sum to exactly 100."""

    if not milestones:
        raise ValidationError("A milestone-based gig needs at least one milestone.")
    for position, item in enumerate(milestones, start=1):
        if item.percentage <= 0:
            raise ValidationError(
                "Milestone percentages must be positive.",
                details={"sequence_order": position},
            )
    total = sum((Decimal(item.percentage) for item in milestones), Decimal("0"))
    if total != HUNDRED:
        raise ValidationError(
            "Milestone percentages must add up to 100.",
            details={"total_percentage": str(total)},
        )


def build_milestones(gig: Gig, milestones: Sequence[MilestoneCreate]) -> list[Milestone]:
    """Return pending milestones with sequence 1..n whose amounts sum to the budget.

    Milestones are attached through ``gig.milestones`` so they are persisted
    with the gig; nothing is added to the session when a split is rejected.
    """

    validate_percentages(milestones)
    amounts = split_by_percentages(gig.budget, [item.percentage for item in milestones])
    for position, amount in enumerate(amounts, start=1):
        if amount < CENT:
            raise ValidationError(
                "Milestone amounts must be at least 0.01.",
                details={"sequence_order": position, "amount": str(amount)},
            )
    return [
        Milestone(
            gig=gig,
            title=item.title,
            description=item.description,
            percentage=item.percentage,
            amount=amount,
            sequence_order=position,
            status=MilestoneStatus.PENDING,
        )
        for position, (item, amount) in enumerate(zip(milestones, amounts), start=1)
    ]


def list_milestones(db: Session, gig_id: int) -> list[Milestone]:
    stmt = select(Milestone).where(Milestone.gig_id == gig_id).order_by(Milestone.sequence_order.asc())
    return list(db.scalars(stmt).all())


def get_milestone_or_404(db: Session, milestone_id: int) -> Milestone:
    milestone = db.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFound("Milestone not found.", details={"milestone_id": milestone_id})
    return milestone


def _previous_milestone(db: Session, milestone: Milestone) -> Milestone | None:
    if milestone.sequence_order <= 1:
        return None
    stmt = select(Milestone).where(
        Milestone.gig_id == milestone.gig_id,
        Milestone.sequence_order == milestone.sequence_order - 1,
    )
    return db.scalars(stmt).first()


def _is_final(gig: Gig, milestone: Milestone) -> bool:
    return milestone.sequence_order >= gig.milestone_count


def submit_milestone(db: Session, actor: Profile, milestone_id: int, *, notes: str = "") -> Milestone:
    """Submit work for a milestone once its predecessor has been paid."""

    milestone = get_milestone_or_404(db, milestone_id)
    gig = db.get(Gig, milestone.gig_id)
    authorize(actor, gig, GigRole.FREELANCER)

    if gig.status != GigStatus.IN_PROGRESS:
        raise InvalidStatus(
            "Milestones can only be submitted while the gig is in progress.",
            details={"gig_id": gig.id, "status": gig.status.value},
        )
    ensure_transition(milestone.status, MilestoneStatus.SUBMITTED)

    previous = _previous_milestone(db, milestone)
    if previous is not None and previous.status != MilestoneStatus.PAID:
        raise InvalidStatus(
            "Previous milestone must be paid before submitting this one.",
            details={"milestone_id": milestone.id, "previous_milestone_id": previous.id},
        )

    now = utcnow()
    milestone.status = MilestoneStatus.SUBMITTED
    milestone.submission_notes = notes
    milestone.submitted_at = now
    if _is_final(gig, milestone):
        ensure_transition(gig.status, GigStatus.SUBMITTED)
        gig.status = GigStatus.SUBMITTED

    log_audit(
        db,
        actor=actor_from_profile(actor),
        action="MILESTONE_SUBMITTED",
        entity="Milestone",
        entity_id=milestone.id,
        data={"gig_id": gig.id, "sequence_order": milestone.sequence_order, "gig_status": gig.status.value},
    )
    db.commit()
    db.refresh(milestone)
    logger.info(
        "Milestone submitted",
        extra={"gig_id": gig.id, "milestone_id": milestone.id, "sequence_order": milestone.sequence_order},
    )
    events.publish(gig.id, "milestone_submitted", milestone_id=milestone.id)
    return milestone


def request_revision(db: Session, actor: Profile, milestone_id: int, *, reason: str) -> Milestone:
    """Send a submitted milestone back to the freelancer."""

    milestone = get_milestone_or_404(db, milestone_id)
    gig = db.get(Gig, milestone.gig_id)
    authorize(actor, gig, GigRole.CLIENT)
    ensure_transition(milestone.status, MilestoneStatus.PENDING)

    milestone.status = MilestoneStatus.PENDING
    milestone.submitted_at = None
    if _is_final(gig, milestone) and gig.status == GigStatus.SUBMITTED:
        ensure_transition(gig.status, GigStatus.IN_PROGRESS)
        gig.status = GigStatus.IN_PROGRESS

    log_audit(
        db,
        actor=actor_from_profile(actor),
        action="MILESTONE_REVISION_REQUESTED",
        entity="Milestone",
        entity_id=milestone.id,
        data={"gig_id": gig.id, "reason": reason},
    )
    db.commit()
    db.refresh(milestone)
    logger.info("Milestone revision requested", extra={"gig_id": gig.id, "milestone_id": milestone.id})
    events.publish(gig.id, "milestone_revision_requested", milestone_id=milestone.id)
    return milestone


def progress(milestones: Sequence[Milestone]) -> MilestoneProgress:
    """Summarise how far a gig's milestones have advanced."""

    paid = [m for m in milestones if m.status == MilestoneStatus.PAID]
    paid_amount = sum((to_money(m.amount) for m in paid), Decimal("0.00"))
    total_amount = sum((to_money(m.amount) for m in milestones), Decimal("0.00"))
    next_sequence = next(
        (m.sequence_order for m in sorted(milestones, key=lambda m: m.sequence_order) if m.status != MilestoneStatus.PAID),
        None,
    )
    return MilestoneProgress(
        total=len(milestones),
        paid=len(paid),
        submitted=sum(1 for m in milestones if m.status == MilestoneStatus.SUBMITTED),
        pending=sum(1 for m in milestones if m.status == MilestoneStatus.PENDING),
        paid_amount=paid_amount,
        remaining_amount=total_amount - paid_amount,
        next_sequence=next_sequence,
    )


__all__ = [
    "validate_percentages",
    "build_milestones",
    "list_milestones",
    "get_milestone_or_404",
    "submit_milestone",
    "request_revision",
    "progress",
]
