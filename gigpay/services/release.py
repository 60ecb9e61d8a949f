"""Payment release orchestration.

The release of a milestone or of a full gig budget runs in a fixed order:
load, guard, status check, wallet check, then either a 402 challenge (no
proof) or settlement followed by a single database transaction. Each step
fails before any later step has side effects.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Literal, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gigpay.config import get_settings
from gigpay.models.gig import Gig, GigStatus
from gigpay.models.milestone import Milestone, MilestoneStatus
from gigpay.models.profile import Profile
from gigpay.models.submission import Submission, SubmissionStatus
from gigpay.models.transaction import TransactionStatus, TransactionType
from gigpay.schemas.release import ReleaseRequest
from gigpay.schemas.x402 import PaymentChallenge, SettlementResult
from gigpay.services import events
from gigpay.services.gigs import live_submission
from gigpay.services.guard import GigRole, authorize
from gigpay.services.ledger import append_transaction, find_by_reference
from gigpay.services.settlement import SettlementService
from gigpay.services.status import ensure_transition
from gigpay.services.wallets import WalletLinkage
from gigpay.services.x402 import (
    PAYMENT_RESPONSE_HEADER,
    build_challenge,
    decode_payment_header,
    encode_payment_response,
    resource_for,
    verify_proof_matches,
)
from gigpay.utils.audit import actor_from_profile, log_audit
from gigpay.utils.errors import (
    FreelancerWalletMissing,
    InvalidStatus,
    NotFound,
    SettlementFailed,
    ValidationError,
)
from gigpay.utils.money import to_money
from gigpay.utils.time import utcnow

logger = logging.getLogger(__name__)

ReleaseKind = Literal["milestone", "full"]

MILESTONE_RELEASED_MESSAGE = "Milestone approved successfully via x402"
FULL_RELEASED_MESSAGE = "Payment approved successfully via x402"
WALLET_MISSING_MESSAGE = "Freelancer must connect wallet before payment can be released"
SETTLEMENT_FAILED_MESSAGE = "Payment settlement failed"


@dataclass
class ReleaseResult:
    success: bool
    message: str
    amount_released: Decimal
    freelancer_wallet: str
    settlement_reference: str
    escrow_address: str | None
    payer: str | None
    network: str | None
    settlement: SettlementResult
    milestone: Milestone | None = None

    @property
    def payment_response_header(self) -> dict[str, str]:
        return {PAYMENT_RESPONSE_HEADER: encode_payment_response(self.settlement)}


ReleaseOutcome = Union[PaymentChallenge, ReleaseResult]


@dataclass
class _Target:
    kind: ReleaseKind
    gig: Gig
    amount: Decimal
    resource: str
    milestone: Milestone | None = None
    submission: Submission | None = None


def resolve_target(request: ReleaseRequest) -> tuple[ReleaseKind, int]:
    """Return ``(kind, id)`` for a release request or raise ``ValidationError``."""

    if request.payment_type == "milestone":
        if request.milestone_id is None or request.gig_id is not None:
            raise ValidationError("payment_type 'milestone' requires milestone_id only.")
        return "milestone", request.milestone_id
    if request.gig_id is None or request.milestone_id is not None:
        raise ValidationError("payment_type 'full' requires gig_id only.")
    return "full", request.gig_id


def _load_target(db: Session, kind: ReleaseKind, resource_id: int) -> _Target:
    if kind == "milestone":
        milestone = db.get(Milestone, resource_id)
        if milestone is None:
            raise NotFound("Milestone not found.", details={"milestone_id": resource_id})
        gig = db.get(Gig, milestone.gig_id)
        if gig is None:
            raise NotFound("Gig not found.", details={"gig_id": milestone.gig_id})
        return _Target(
            kind=kind,
            gig=gig,
            milestone=milestone,
            amount=to_money(milestone.amount),
            resource=resource_for("milestone", milestone.id),
        )

    gig = db.get(Gig, resource_id)
    if gig is None:
        raise NotFound("Gig not found.", details={"gig_id": resource_id})
    return _Target(
        kind=kind,
        gig=gig,
        submission=live_submission(db, gig.id),
        amount=to_money(gig.budget),
        resource=resource_for("gig", gig.id),
    )


def _check_status(target: _Target) -> None:
    if target.milestone is not None:
        if target.milestone.status != MilestoneStatus.SUBMITTED:
            raise InvalidStatus(
                "Milestone must be submitted before it can be released.",
                details={"milestone_id": target.milestone.id, "status": target.milestone.status.value},
            )
        return
    if target.gig.has_milestones:
        raise ValidationError(
            "Gig is paid per milestone; release its milestones instead.",
            details={"gig_id": target.gig.id},
        )
    if target.gig.status != GigStatus.SUBMITTED:
        raise InvalidStatus(
            "Gig must be submitted before payment can be released.",
            details={"gig_id": target.gig.id, "status": target.gig.status.value},
        )
    if target.submission is None or target.submission.status != SubmissionStatus.PENDING:
        raise InvalidStatus("Gig has no pending submission to approve.", details={"gig_id": target.gig.id})


def _pay_to(gig: Gig) -> str:
    address = get_settings().ESCROW_WALLET_ADDRESS or gig.escrow_address
    if not address:
        raise ValidationError("Gig has no escrow address to receive payment.", details={"gig_id": gig.id})
    return address


def release(
    db: Session,
    *,
    actor: Profile,
    kind: ReleaseKind,
    resource_id: int,
    payment_proof: str | None,
    settlement: SettlementService,
    wallets: WalletLinkage,
    now: datetime | None = None,
) -> ReleaseOutcome:
    """Release a submitted milestone or a submitted full-payment gig."""

    now = now or utcnow()
    target = _load_target(db, kind, resource_id)
    authorize(actor, target.gig, GigRole.CLIENT)
    _check_status(target)

    freelancer_wallet = wallets.get(target.gig.freelancer_id) if target.gig.freelancer_id else None
    if not freelancer_wallet:
        raise FreelancerWalletMissing(WALLET_MISSING_MESSAGE, details={"gig_id": target.gig.id})

    if not payment_proof:
        logger.info(
            "Payment challenge issued",
            extra={"gig_id": target.gig.id, "resource": target.resource, "amount": str(target.amount)},
        )
        return build_challenge(target.resource, target.amount, pay_to=_pay_to(target.gig), issued_at=now)

    proof = decode_payment_header(payment_proof)
    verify_proof_matches(proof, target.resource, target.amount, now=now)
    result = settlement.settle(proof)
    if not result.success or not result.transaction:
        logger.warning(
            "Settlement failed",
            extra={"gig_id": target.gig.id, "resource": target.resource, "reason": result.error_reason},
        )
        raise SettlementFailed(
            SETTLEMENT_FAILED_MESSAGE,
            details={"reason": result.error_reason} if result.error_reason else None,
            headers={PAYMENT_RESPONSE_HEADER: encode_payment_response(result)},
        )

    _record_release(db, actor=actor, target=target, result=result, wallet=freelancer_wallet, now=now)

    gig = target.gig
    events.publish(
        gig.id,
        "milestone_paid" if target.milestone is not None else "gig_paid",
        milestone_id=target.milestone.id if target.milestone is not None else None,
        amount=str(target.amount),
        gig_status=gig.status.value,
    )
    return ReleaseResult(
        success=True,
        message=MILESTONE_RELEASED_MESSAGE if target.milestone is not None else FULL_RELEASED_MESSAGE,
        amount_released=target.amount,
        freelancer_wallet=freelancer_wallet,
        settlement_reference=result.transaction,
        escrow_address=gig.escrow_address,
        payer=result.payer,
        network=result.network,
        settlement=result,
        milestone=target.milestone,
    )


def _record_release(
    db: Session,
    *,
    actor: Profile,
    target: _Target,
    result: SettlementResult,
    wallet: str,
    now: datetime,
) -> None:
    """Persist the release as one unit of work using conditional writes."""

    gig = target.gig
    reference = result.transaction
    try:
        if find_by_reference(db, reference) is not None:
            raise InvalidStatus(
                "Settlement reference has already been recorded.",
                details={"resource": target.resource},
            )
        if target.milestone is not None:
            _mark_milestone_paid(db, target.milestone, reference=reference, now=now)
            final = target.milestone.sequence_order >= gig.milestone_count
            next_gig_status = GigStatus.COMPLETED if final else None
        else:
            _approve_submission(db, target.submission, now=now)
            next_gig_status = GigStatus.COMPLETED

        _increment_paid(db, gig, target.amount, next_status=next_gig_status)

        entry = append_transaction(
            db,
            gig_id=gig.id,
            milestone_id=target.milestone.id if target.milestone is not None else None,
            transaction_type=(
                TransactionType.MILESTONE_RELEASE if target.milestone is not None else TransactionType.RELEASE
            ),
            amount=target.amount,
            status=TransactionStatus.CONFIRMED,
            settlement_reference=reference,
        )
        log_audit(
            db,
            actor=actor_from_profile(actor),
            action="MILESTONE_RELEASED" if target.milestone is not None else "GIG_RELEASED",
            entity="Milestone" if target.milestone is not None else "Gig",
            entity_id=target.milestone.id if target.milestone is not None else gig.id,
            data={
                "gig_id": gig.id,
                "amount": str(target.amount),
                "transaction_id": entry.id,
                "settlement_reference": reference,
                "freelancer_wallet": wallet,
                "payer": result.payer,
                "network": result.network,
            },
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.error(
            "Settled payment could not be recorded",
            extra={"gig_id": gig.id, "resource": target.resource, "settlement_reference": reference},
        )
        raise InvalidStatus(
            "Settlement reference has already been recorded.",
            details={"resource": target.resource},
        ) from exc
    except InvalidStatus:
        db.rollback()
        logger.error(
            "Settled payment lost a concurrent release",
            extra={"gig_id": gig.id, "resource": target.resource, "settlement_reference": reference},
        )
        raise
    except Exception:
        db.rollback()
        raise

    db.refresh(gig)
    if target.milestone is not None:
        db.refresh(target.milestone)
    logger.info(
        "Payment released",
        extra={
            "gig_id": gig.id,
            "milestone_id": target.milestone.id if target.milestone is not None else None,
            "amount": str(target.amount),
            "settlement_reference": reference,
            "total_paid_amount": str(gig.total_paid_amount),
        },
    )


def _mark_milestone_paid(db: Session, milestone: Milestone, *, reference: str, now: datetime) -> None:
    ensure_transition(milestone.status, MilestoneStatus.PAID)
    stmt = (
        update(Milestone)
        .where(Milestone.id == milestone.id, Milestone.status == MilestoneStatus.SUBMITTED)
        .values(
            status=MilestoneStatus.PAID,
            approved_at=now,
            paid_at=now,
            settlement_reference=reference,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        raise InvalidStatus("Milestone has already been released.", details={"milestone_id": milestone.id})


def _approve_submission(db: Session, submission: Submission, *, now: datetime) -> None:
    ensure_transition(submission.status, SubmissionStatus.APPROVED)
    stmt = (
        update(Submission)
        .where(Submission.id == submission.id, Submission.status == SubmissionStatus.PENDING)
        .values(status=SubmissionStatus.APPROVED, reviewed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        raise InvalidStatus("Submission has already been reviewed.", details={"submission_id": submission.id})


def _increment_paid(db: Session, gig: Gig, amount: Decimal, *, next_status: GigStatus | None) -> None:
    """Compare-and-swap the gig's paid total, keeping it within the budget."""

    row = db.execute(select(Gig.total_paid_amount, Gig.budget, Gig.status).where(Gig.id == gig.id)).one()
    current_total = to_money(row.total_paid_amount)
    new_total = current_total + amount
    if new_total > to_money(row.budget):
        raise InvalidStatus(
            "Release would exceed the gig budget.",
            details={"gig_id": gig.id, "total_paid_amount": str(current_total), "amount": str(amount)},
        )

    values: dict[str, object] = {"total_paid_amount": new_total, "updated_at": utcnow()}
    conditions = [Gig.id == gig.id, Gig.total_paid_amount == current_total]
    if next_status is not None:
        ensure_transition(row.status, next_status)
        values["status"] = next_status
        conditions.append(Gig.status == row.status)

    stmt = update(Gig).where(*conditions).values(**values).execution_options(synchronize_session=False)
    if db.execute(stmt).rowcount != 1:
        raise InvalidStatus("Gig was modified by a concurrent release.", details={"gig_id": gig.id})


__all__ = [
    "ReleaseKind",
    "ReleaseResult",
    "ReleaseOutcome",
    "resolve_target",
    "release",
]
