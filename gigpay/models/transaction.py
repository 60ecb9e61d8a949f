"""Transaction model."""
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Enum as SqlEnum, ForeignKey, Index, Numeric, String, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class TransactionType(str, PyEnum):
    """Kinds of fund movement recorded on the ledger."""

    ESCROW = "escrow"
    RELEASE = "release"
    MILESTONE_RELEASE = "milestone_release"
    REFUND = "refund"


class TransactionStatus(str, PyEnum):
    """Possible transaction statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class Transaction(Base):
    """Immutable audit record of a fund movement for a gig."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transaction_positive_amount"),
        Index("ix_transactions_created_at", "created_at"),
        Index("ix_transactions_gig_type", "gig_id", "transaction_type"),
    )

    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id: Mapped[int | None] = mapped_column(
        ForeignKey("milestones.id", ondelete="CASCADE"), nullable=True, index=True
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SqlEnum(TransactionType, name="transactiontype", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    settlement_reference: Mapped[str | None] = mapped_column(String(128), unique=True, nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        SqlEnum(TransactionStatus, name="transactionstatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TransactionStatus.PENDING,
    )

    gig = relationship("Gig", back_populates="transactions")


class LedgerMutationError(RuntimeError):
    """Raised when code attempts to modify a persisted ledger row."""


@event.listens_for(Transaction, "before_update")
def _reject_ledger_update(mapper, connection, target: Transaction) -> None:
    raise LedgerMutationError(f"Transaction {target.id} is append-only and cannot be modified.")
