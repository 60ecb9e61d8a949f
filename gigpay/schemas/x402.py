"""Wire models for the x402 payment challenge and proof exchange."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PaymentRequirement(BaseModel):
    """One accepted way of paying for a resource."""

    scheme: str
    network: str
    maxAmountRequired: str = Field(description="Amount in the asset's minor units, as an integer string.")
    asset: str
    payTo: str
    resource: str
    maxTimeoutSeconds: int
    extra: dict[str, Any] = Field(default_factory=dict)


class PaymentChallenge(BaseModel):
    """HTTP 402 body telling the caller how to pay before retrying."""

    x402Version: int
    error: str
    accepts: list[PaymentRequirement]


class PaymentProof(BaseModel):
    """Decoded ``X-Payment`` header.

    ``resource``, ``issuedAt`` and ``nonce`` echo the challenge's ``resource``
    and ``extra`` fields so the proof can be matched without server-side state.
    """

    model_config = ConfigDict(extra="allow")

    x402Version: int
    scheme: str
    network: str
    payload: dict[str, Any]
    resource: str
    issuedAt: datetime
    nonce: str


class SettlementResult(BaseModel):
    """Facilitator answer to a settlement request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: bool
    transaction: str | None = None
    network: str | None = None
    payer: str | None = None
    error_reason: str | None = Field(default=None, alias="errorReason")


__all__ = ["PaymentRequirement", "PaymentChallenge", "PaymentProof", "SettlementResult"]
