"""Append-only ledger of gig fund movements."""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from gigpay.models.transaction import Transaction, TransactionStatus, TransactionType
from gigpay.utils.money import to_money

logger = logging.getLogger(__name__)


def append_transaction(
    db: Session,
    *,
    gig_id: int,
    transaction_type: TransactionType,
    amount: Decimal,
    status: TransactionStatus,
    settlement_reference: str | None = None,
    milestone_id: int | None = None,
) -> Transaction:
    """Add a ledger row to the current unit of work.

    The caller owns the commit so the row lands atomically with the state
    change it records.
    """

    entry = Transaction(
        gig_id=gig_id,
        milestone_id=milestone_id,
        transaction_type=transaction_type,
        amount=to_money(amount),
        settlement_reference=settlement_reference,
        status=status,
    )
    db.add(entry)
    db.flush()
    logger.info(
        "Ledger entry appended",
        extra={
            "gig_id": gig_id,
            "milestone_id": milestone_id,
            "transaction_type": transaction_type.value,
            "amount": str(entry.amount),
            "status": status.value,
        },
    )
    return entry


def list_for_gig(db: Session, gig_id: int) -> list[Transaction]:
    """Return the gig's ledger rows, newest first."""

    stmt = (
        select(Transaction)
        .where(Transaction.gig_id == gig_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    return list(db.scalars(stmt).all())


def find_by_reference(db: Session, reference: str) -> Transaction | None:
    stmt = select(Transaction).where(Transaction.settlement_reference == reference).limit(1)
    return db.scalars(stmt).first()


__all__ = ["append_transaction", "list_for_gig", "find_by_reference"]
