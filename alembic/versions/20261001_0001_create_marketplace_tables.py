"""create profiles, gigs, milestones, submissions and transactions

Revision ID: 0001_marketplace
Revises:
Create Date: 2026-10-01 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_marketplace"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("role", sa.Enum("client", "freelancer", name="profilerole"), nullable=False),
        sa.Column("wallet_address", sa.String(length=64), nullable=True),
    )

    op.create_table(
        "gigs",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("freelancer_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("budget", sa.Numeric(18, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("open", "in_progress", "submitted", "completed", "cancelled", name="gigstatus"),
            nullable=False,
        ),
        sa.Column("has_milestones", sa.Boolean(), nullable=False),
        sa.Column("milestone_count", sa.Integer(), nullable=False),
        sa.Column("total_paid_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("escrow_address", sa.String(length=64), nullable=True),
        sa.CheckConstraint("budget > 0", name="ck_gig_positive_budget"),
        sa.CheckConstraint("total_paid_amount >= 0", name="ck_gig_paid_non_negative"),
        sa.CheckConstraint("total_paid_amount <= budget", name="ck_gig_paid_within_budget"),
        sa.CheckConstraint("milestone_count >= 0", name="ck_gig_milestone_count_non_negative"),
    )
    op.create_index("ix_gigs_client_id", "gigs", ["client_id"])
    op.create_index("ix_gigs_freelancer_id", "gigs", ["freelancer_id"])
    op.create_index("ix_gigs_status", "gigs", ["status"])

    op.create_table(
        "milestones",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("gig_id", sa.Integer(), sa.ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "submitted", "approved", "paid", name="milestonestatus"),
            nullable=False,
        ),
        sa.Column("submission_notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settlement_reference", sa.String(length=128), nullable=True),
        sa.UniqueConstraint("gig_id", "sequence_order", name="uq_milestone_sequence"),
        sa.CheckConstraint("amount > 0", name="ck_milestone_positive_amount"),
        sa.CheckConstraint("percentage > 0 AND percentage <= 100", name="ck_milestone_percentage_range"),
        sa.CheckConstraint("sequence_order > 0", name="ck_milestone_positive_sequence"),
    )
    op.create_index("ix_milestones_gig_id", "milestones", ["gig_id"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("gig_id", sa.Integer(), sa.ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("freelancer_id", sa.Integer(), sa.ForeignKey("profiles.id"), nullable=False),
        sa.Column("deliverable_url", sa.String(length=1024), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", name="submissionstatus"),
            nullable=False,
        ),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_submissions_gig_id", "submissions", ["gig_id"])
    op.create_index("ix_submissions_freelancer_id", "submissions", ["freelancer_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("gig_id", sa.Integer(), sa.ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "milestone_id",
            sa.Integer(),
            sa.ForeignKey("milestones.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "transaction_type",
            sa.Enum("escrow", "release", "milestone_release", "refund", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("settlement_reference", sa.String(length=128), nullable=True, unique=True),
        sa.Column(
            "status",
            sa.Enum("pending", "confirmed", "failed", name="transactionstatus"),
            nullable=False,
        ),
        sa.CheckConstraint("amount > 0", name="ck_transaction_positive_amount"),
    )
    op.create_index("ix_transactions_gig_id", "transactions", ["gig_id"])
    op.create_index("ix_transactions_milestone_id", "transactions", ["milestone_id"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])
    op.create_index("ix_transactions_gig_type", "transactions", ["gig_id", "transaction_type"])


def downgrade() -> None:
    op.drop_index("ix_transactions_gig_type", table_name="transactions")
    op.drop_index("ix_transactions_created_at", table_name="transactions")
    op.drop_index("ix_transactions_milestone_id", table_name="transactions")
    op.drop_index("ix_transactions_gig_id", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_submissions_freelancer_id", table_name="submissions")
    op.drop_index("ix_submissions_gig_id", table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("ix_milestones_gig_id", table_name="milestones")
    op.drop_table("milestones")
    op.drop_index("ix_gigs_status", table_name="gigs")
    op.drop_index("ix_gigs_freelancer_id", table_name="gigs")
    op.drop_index("ix_gigs_client_id", table_name="gigs")
    op.drop_table("gigs")
    op.drop_table("profiles")
