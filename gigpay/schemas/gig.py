"""Schemas for gigs and their aggregated detail view."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gigpay.models.gig import GigStatus
from gigpay.schemas.milestone import MilestoneCreate, MilestoneProgress, MilestoneRead
from gigpay.schemas.submission import SubmissionRead
from gigpay.schemas.transaction import TransactionRead


class GigCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=10000)
    budget: Decimal = Field(gt=Decimal("0"), max_digits=18, decimal_places=2)
    has_milestones: bool = False
    milestones: list[MilestoneCreate] = Field(default_factory=list)
    escrow_address: str | None = Field(default=None, max_length=64)
    escrow_reference: str | None = Field(
        default=None,
        max_length=128,
        description="Reference of the on-chain escrow funding, when already known.",
    )

    @model_validator(mode="after")
    def _milestones_match_flag(self) -> "GigCreate":
        if self.milestones and not self.has_milestones:
            raise ValueError("milestones supplied but has_milestones is false")
        return self


class GigRead(BaseModel):
    id: int
    client_id: int
    freelancer_id: int | None
    title: str
    description: str
    budget: Decimal
    status: GigStatus
    has_milestones: bool
    milestone_count: int
    total_paid_amount: Decimal
    escrow_address: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GigAccept(BaseModel):
    wallet_address: str | None = Field(default=None, pattern=r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class GigCancel(BaseModel):
    refund_reference: str | None = Field(default=None, max_length=128)


class GigDetail(GigRead):
    milestones: list[MilestoneRead] = Field(default_factory=list)
    submission: SubmissionRead | None = None
    transactions: list[TransactionRead] = Field(default_factory=list)
    progress: MilestoneProgress | None = None
