"""Schemas for milestone entities."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from gigpay.models.milestone import MilestoneStatus


class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    percentage: Decimal = Field(gt=Decimal("0"), le=Decimal("100"), decimal_places=2)


class MilestoneRead(BaseModel):
    id: int
    gig_id: int
    title: str
    description: str
    percentage: Decimal
    amount: Decimal
    sequence_order: int
    status: MilestoneStatus
    submission_notes: str | None
    submitted_at: datetime | None
    approved_at: datetime | None
    paid_at: datetime | None
    settlement_reference: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MilestoneSubmit(BaseModel):
    notes: str = Field(default="", max_length=5000)


class MilestoneRevisionRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class MilestoneProgress(BaseModel):
    total: int
    paid: int
    submitted: int
    pending: int
    paid_amount: Decimal
    remaining_amount: Decimal
    next_sequence: int | None = Field(
        default=None, description="Sequence of the first milestone not yet paid, if any."
    )
