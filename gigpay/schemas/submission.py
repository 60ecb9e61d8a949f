"""Schemas for full-payment submissions."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from gigpay.models.submission import SubmissionStatus


class SubmissionCreate(BaseModel):
    deliverable_url: str = Field(min_length=1, max_length=1024)
    notes: str = Field(default="", max_length=5000)


class SubmissionRead(BaseModel):
    id: int
    gig_id: int
    freelancer_id: int
    deliverable_url: str
    notes: str
    status: SubmissionStatus
    submitted_at: datetime
    reviewed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
