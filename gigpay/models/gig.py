"""Gig model definitions."""
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Boolean, CheckConstraint, Enum as SqlEnum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class GigStatus(str, PyEnum):
    """Lifecycle of a gig."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Gig(Base):
    """A unit of work posted by a client, optionally split into milestones."""

    __tablename__ = "gigs"
    __table_args__ = (
        CheckConstraint("budget > 0", name="ck_gig_positive_budget"),
        CheckConstraint("total_paid_amount >= 0", name="ck_gig_paid_non_negative"),
        CheckConstraint("total_paid_amount <= budget", name="ck_gig_paid_within_budget"),
        CheckConstraint("milestone_count >= 0", name="ck_gig_milestone_count_non_negative"),
        Index("ix_gigs_status", "status"),
    )

    client_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False, index=True)
    freelancer_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    budget: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    status: Mapped[GigStatus] = mapped_column(
        SqlEnum(GigStatus, name="gigstatus", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=GigStatus.OPEN,
    )
    has_milestones: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    milestone_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_paid_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal("0.00"))
    escrow_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    client = relationship("Profile", foreign_keys=[client_id])
    freelancer = relationship("Profile", foreign_keys=[freelancer_id])
    milestones = relationship(
        "Milestone",
        back_populates="gig",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Milestone.sequence_order",
    )
    submissions = relationship(
        "Submission",
        back_populates="gig",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Submission.id",
    )
    transactions = relationship(
        "Transaction",
        back_populates="gig",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Transaction.id",
    )
