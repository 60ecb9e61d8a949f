"""Schemas for ledger transactions."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from gigpay.models.transaction import TransactionStatus, TransactionType


class TransactionRead(BaseModel):
    id: int
    gig_id: int
    milestone_id: int | None
    transaction_type: TransactionType
    amount: Decimal
    settlement_reference: str | None
    status: TransactionStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
