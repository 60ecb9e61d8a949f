"""Schemas for the payment release endpoint."""
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from gigpay.schemas.milestone import MilestoneRead


class ReleaseRequest(BaseModel):
    """Exactly one of ``milestone_id`` / ``gig_id``, matching ``payment_type``.

    The pairing is checked by the release service so a mismatch surfaces as a
    domain ``ValidationError`` rather than a request-parsing failure.
    """

    milestone_id: int | None = None
    gig_id: int | None = None
    payment_type: Literal["milestone", "full"]


class TransactionInfo(BaseModel):
    escrow_address: str | None
    amount_released: Decimal
    freelancer_wallet: str
    tx_signature: str
    payer: str | None
    network: str | None
    note: str = "Payment processed via x402 protocol. Funds sent to freelancer wallet."


class ReleaseResponse(BaseModel):
    success: bool
    message: str
    milestone: MilestoneRead | None = None
    transaction_info: TransactionInfo
