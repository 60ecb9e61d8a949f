"""Gig lifecycle services."""
from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from gigpay.config import get_settings
from gigpay.models.gig import Gig, GigStatus
from gigpay.models.profile import Profile, ProfileRole
from gigpay.models.submission import Submission, SubmissionStatus
from gigpay.models.transaction import TransactionStatus, TransactionType
from gigpay.schemas.gig import GigCreate
from gigpay.services import events
from gigpay.services.guard import GigRole, authorize, authorize_acceptance, require_profile_role
from gigpay.services.ledger import append_transaction
from gigpay.services.milestones import build_milestones, validate_percentages
from gigpay.services.status import ensure_transition
from gigpay.services.wallets import link_wallet
from gigpay.utils.audit import actor_from_profile, log_audit
from gigpay.utils.errors import InvalidStatus, NotFound, ValidationError
from gigpay.utils.money import to_money
from gigpay.utils.time import utcnow

logger = logging.getLogger(__name__)

LIVE_SUBMISSION_STATES = (SubmissionStatus.PENDING, SubmissionStatus.APPROVED)


def get_gig_or_404(db: Session, gig_id: int) -> Gig:
    gig = db.get(Gig, gig_id)
    if gig is None:
        raise NotFound("Gig not found.", details={"gig_id": gig_id})
    return gig


def live_submission(db: Session, gig_id: int) -> Submission | None:
    """Return the pending or approved submission of a gig, if any."""

    stmt = (
        select(Submission)
        .where(Submission.gig_id == gig_id, Submission.status.in_(LIVE_SUBMISSION_STATES))
        .order_by(Submission.id.desc())
        .limit(1)
    )
    return db.scalars(stmt).first()


def create_gig(db: Session, client: Profile, payload: GigCreate) -> Gig:
    """Post a gig, its milestones and the escrow ledger entry in one commit."""

    require_profile_role(client, ProfileRole.CLIENT)
    budget = to_money(payload.budget)
    if budget <= 0:
        raise ValidationError("Gig budget must be positive.")
    if payload.has_milestones:
        validate_percentages(payload.milestones)
    if not (get_settings().ESCROW_WALLET_ADDRESS or payload.escrow_address):
        raise ValidationError("An escrow address is required when no escrow wallet is configured.")

    gig = Gig(
        client_id=client.id,
        title=payload.title,
        description=payload.description,
        budget=budget,
        status=GigStatus.OPEN,
        has_milestones=payload.has_milestones,
        milestone_count=len(payload.milestones) if payload.has_milestones else 0,
        total_paid_amount=to_money(0),
        escrow_address=payload.escrow_address,
    )
    if payload.has_milestones:
        build_milestones(gig, payload.milestones)
    db.add(gig)
    db.flush()

    append_transaction(
        db,
        gig_id=gig.id,
        transaction_type=TransactionType.ESCROW,
        amount=budget,
        status=TransactionStatus.CONFIRMED if payload.escrow_reference else TransactionStatus.PENDING,
        settlement_reference=payload.escrow_reference,
    )
    log_audit(
        db,
        actor=actor_from_profile(client),
        action="GIG_CREATED",
        entity="Gig",
        entity_id=gig.id,
        data={
            "budget": str(budget),
            "has_milestones": gig.has_milestones,
            "milestone_count": gig.milestone_count,
            "escrow_funded": bool(payload.escrow_reference),
        },
    )
    db.commit()
    db.refresh(gig)
    logger.info(
        "Gig created",
        extra={"gig_id": gig.id, "budget": str(budget), "milestone_count": gig.milestone_count},
    )
    return gig


def accept_gig(db: Session, freelancer: Profile, gig_id: int, *, wallet_address: str | None = None) -> Gig:
    """Assign ``freelancer`` to an open gig; the assignment happens exactly once."""

    gig = get_gig_or_404(db, gig_id)
    authorize_acceptance(freelancer, gig)
    ensure_transition(gig.status, GigStatus.IN_PROGRESS)

    stmt = (
        update(Gig)
        .where(Gig.id == gig.id, Gig.status == GigStatus.OPEN, Gig.freelancer_id.is_(None))
        .values(freelancer_id=freelancer.id, status=GigStatus.IN_PROGRESS, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        db.rollback()
        raise InvalidStatus("Gig has already been accepted.", details={"gig_id": gig.id})

    if wallet_address:
        link_wallet(db, freelancer, wallet_address, commit=False)

    log_audit(
        db,
        actor=actor_from_profile(freelancer),
        action="GIG_ACCEPTED",
        entity="Gig",
        entity_id=gig.id,
        data={"freelancer_id": freelancer.id},
    )
    db.commit()
    db.refresh(gig)
    logger.info("Gig accepted", extra={"gig_id": gig.id, "freelancer_id": freelancer.id})
    events.publish(gig.id, "gig_accepted", freelancer_id=freelancer.id)
    return gig


def submit_work(
    db: Session,
    freelancer: Profile,
    gig_id: int,
    *,
    deliverable_url: str,
    notes: str = "",
) -> Submission:
    """Submit the deliverable of a single-payment gig."""

    gig = get_gig_or_404(db, gig_id)
    authorize(freelancer, gig, GigRole.FREELANCER)
    if gig.has_milestones:
        raise ValidationError("Milestone-based gigs are submitted per milestone.", details={"gig_id": gig.id})
    ensure_transition(gig.status, GigStatus.SUBMITTED)
    if live_submission(db, gig.id) is not None:
        raise InvalidStatus("Gig already has a submission under review.", details={"gig_id": gig.id})

    submission = Submission(
        gig_id=gig.id,
        freelancer_id=freelancer.id,
        deliverable_url=deliverable_url,
        notes=notes,
        status=SubmissionStatus.PENDING,
        submitted_at=utcnow(),
    )
    db.add(submission)
    gig.status = GigStatus.SUBMITTED
    db.flush()
    log_audit(
        db,
        actor=actor_from_profile(freelancer),
        action="WORK_SUBMITTED",
        entity="Submission",
        entity_id=submission.id,
        data={"gig_id": gig.id, "deliverable_url": deliverable_url},
    )
    db.commit()
    db.refresh(submission)
    logger.info("Work submitted", extra={"gig_id": gig.id, "submission_id": submission.id})
    events.publish(gig.id, "work_submitted", submission_id=submission.id)
    return submission


def reject_submission(db: Session, client: Profile, gig_id: int) -> Submission:
    """Reject the pending submission and send the gig back to in-progress."""

    gig = get_gig_or_404(db, gig_id)
    authorize(client, gig, GigRole.CLIENT)
    submission = live_submission(db, gig.id)
    if submission is None:
        raise InvalidStatus("Gig has no submission to review.", details={"gig_id": gig.id})
    ensure_transition(submission.status, SubmissionStatus.REJECTED)
    ensure_transition(gig.status, GigStatus.IN_PROGRESS)

    submission.status = SubmissionStatus.REJECTED
    submission.reviewed_at = utcnow()
    gig.status = GigStatus.IN_PROGRESS
    log_audit(
        db,
        actor=actor_from_profile(client),
        action="SUBMISSION_REJECTED",
        entity="Submission",
        entity_id=submission.id,
        data={"gig_id": gig.id},
    )
    db.commit()
    db.refresh(submission)
    logger.info("Submission rejected", extra={"gig_id": gig.id, "submission_id": submission.id})
    events.publish(gig.id, "submission_rejected", submission_id=submission.id)
    return submission


def cancel_gig(db: Session, client: Profile, gig_id: int, *, refund_reference: str | None = None) -> Gig:
    """Cancel an open gig and record the escrow refund."""

    gig = get_gig_or_404(db, gig_id)
    authorize(client, gig, GigRole.CLIENT)
    ensure_transition(gig.status, GigStatus.CANCELLED)

    gig.status = GigStatus.CANCELLED
    refund = append_transaction(
        db,
        gig_id=gig.id,
        transaction_type=TransactionType.REFUND,
        amount=to_money(gig.budget),
        status=TransactionStatus.CONFIRMED if refund_reference else TransactionStatus.PENDING,
        settlement_reference=refund_reference,
    )
    log_audit(
        db,
        actor=actor_from_profile(client),
        action="GIG_CANCELLED",
        entity="Gig",
        entity_id=gig.id,
        data={"refund_transaction_id": refund.id, "amount": str(refund.amount)},
    )
    db.commit()
    db.refresh(gig)
    logger.info("Gig cancelled", extra={"gig_id": gig.id, "amount": str(refund.amount)})
    events.publish(gig.id, "gig_cancelled")
    return gig


def delete_gig(db: Session, client: Profile, gig_id: int) -> None:
    """Delete a gig with its milestones, submissions and ledger rows."""

    gig = get_gig_or_404(db, gig_id)
    authorize(client, gig, GigRole.CLIENT)
    log_audit(
        db,
        actor=actor_from_profile(client),
        action="GIG_DELETED",
        entity="Gig",
        entity_id=gig.id,
        data={"status": gig.status.value, "total_paid_amount": str(to_money(gig.total_paid_amount))},
    )
    db.delete(gig)
    db.commit()
    logger.info("Gig deleted", extra={"gig_id": gig_id})
    events.publish(gig_id, "gig_deleted")


def list_gigs(
    db: Session,
    *,
    status: GigStatus | None = None,
    client_id: int | None = None,
    freelancer_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Gig]:
    stmt = select(Gig)
    if status is not None:
        stmt = stmt.where(Gig.status == status)
    if client_id is not None:
        stmt = stmt.where(Gig.client_id == client_id)
    if freelancer_id is not None:
        stmt = stmt.where(Gig.freelancer_id == freelancer_id)
    stmt = stmt.order_by(Gig.created_at.desc(), Gig.id.desc()).limit(limit).offset(offset)
    return list(db.scalars(stmt).all())


__all__ = [
    "get_gig_or_404",
    "live_submission",
    "create_gig",
    "accept_gig",
    "submit_work",
    "reject_submission",
    "cancel_gig",
    "delete_gig",
    "list_gigs",
]
