"""Milestone model definitions."""
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, DateTime, Enum as SqlEnum, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class MilestoneStatus(str, PyEnum):
    """Possible statuses for a milestone."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    PAID = "paid"


class Milestone(Base):
    """One ordered installment of a gig's budget."""

    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("gig_id", "sequence_order", name="uq_milestone_sequence"),
        CheckConstraint("amount > 0", name="ck_milestone_positive_amount"),
        CheckConstraint("percentage > 0 AND percentage <= 100", name="ck_milestone_percentage_range"),
        CheckConstraint("sequence_order > 0", name="ck_milestone_positive_sequence"),
    )

    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    sequence_order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[MilestoneStatus] = mapped_column(
        SqlEnum(MilestoneStatus, name="milestonestatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MilestoneStatus.PENDING,
    )
    submission_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    settlement_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)

    gig = relationship("Gig", back_populates="milestones")
