"""x402 payment challenge construction and proof verification.

Challenges are stateless: the issue time and an HMAC nonce over
``resource|amount|issuedAt`` travel in ``accepts[0].extra`` and must be
echoed back in the proof. Nothing is persisted when a challenge is issued.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from gigpay.config import get_settings
from gigpay.schemas.x402 import PaymentChallenge, PaymentProof, PaymentRequirement, SettlementResult
from gigpay.utils.errors import SettlementFailed, ValidationError
from gigpay.utils.time import as_utc

logger = logging.getLogger(__name__)

PAYMENT_HEADER = "X-Payment"
PAYMENT_RESPONSE_HEADER = "X-Payment-Response"
CHALLENGE_REASON = "Payment required to release milestone funds"


def resource_for(kind: str, resource_id: int) -> str:
    """Return the challenge resource identifier, e.g. ``milestone:12`` or ``gig:3``."""

    return f"{kind}:{resource_id}"


def to_minor_units(amount: Decimal, decimals: int | None = None) -> int:
    """Scale a decimal currency amount to the settlement asset's integer units."""

    places = get_settings().SETTLEMENT_ASSET_DECIMALS if decimals is None else decimals
    scaled = Decimal(amount).scaleb(places)
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def _format_issued_at(issued_at: datetime) -> str:
    return as_utc(issued_at).strftime("%Y-%m-%dT%H:%M:%SZ")


def _sign(resource: str, minor_amount: int, issued_at: str) -> str:
    secret = get_settings().SECRET_KEY.encode()
    message = f"{resource}|{minor_amount}|{issued_at}".encode()
    return hmac.new(secret, message, hashlib.sha256).hexdigest()


def build_challenge(
    resource: str,
    amount: Decimal,
    *,
    pay_to: str,
    issued_at: datetime,
) -> PaymentChallenge:
    """Return the 402 challenge for paying ``amount`` towards ``resource``."""

    settings = get_settings()
    minor_amount = to_minor_units(amount)
    issued = _format_issued_at(issued_at)
    requirement = PaymentRequirement(
        scheme=settings.SETTLEMENT_SCHEME,
        network=settings.SETTLEMENT_NETWORK,
        maxAmountRequired=str(minor_amount),
        asset=settings.SETTLEMENT_ASSET,
        payTo=pay_to,
        resource=resource,
        maxTimeoutSeconds=settings.PAYMENT_CHALLENGE_TIMEOUT_SECONDS,
        extra={"issuedAt": issued, "nonce": _sign(resource, minor_amount, issued)},
    )
    return PaymentChallenge(
        x402Version=settings.X402_VERSION,
        error=CHALLENGE_REASON,
        accepts=[requirement],
    )


def decode_payment_header(header: str) -> PaymentProof:
    """Decode the base64 JSON ``X-Payment`` header into a ``PaymentProof``."""

    try:
        raw = base64.b64decode(header.strip(), validate=True)
        data = json.loads(raw)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Malformed X-Payment header.") from exc
    if not isinstance(data, dict):
        raise ValidationError("Malformed X-Payment header.")
    try:
        return PaymentProof.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Payment proof is missing required fields.",
            details={"fields": sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})},
        ) from exc


def verify_proof_matches(proof: PaymentProof, resource: str, amount: Decimal, *, now: datetime) -> None:
    """Reject proofs that do not answer the current challenge for ``resource``."""

    settings = get_settings()
    if proof.scheme != settings.SETTLEMENT_SCHEME or proof.network != settings.SETTLEMENT_NETWORK:
        raise SettlementFailed(
            "Payment proof uses an unsupported scheme or network.",
            details={"scheme": proof.scheme, "network": proof.network},
        )
    if proof.resource != resource:
        raise SettlementFailed("Payment proof was issued for a different resource.", details={"resource": resource})

    issued = _format_issued_at(proof.issuedAt)
    expected = _sign(resource, to_minor_units(amount), issued)
    if not hmac.compare_digest(expected, proof.nonce):
        raise SettlementFailed("Payment proof does not match the issued challenge.")

    age = (as_utc(now) - as_utc(proof.issuedAt)).total_seconds()
    if age > settings.PAYMENT_CHALLENGE_TIMEOUT_SECONDS:
        logger.info(
            "Stale payment proof rejected",
            extra={"resource": resource, "age_seconds": age},
        )
        raise SettlementFailed("Payment challenge expired.", details={"age_seconds": int(age)})


def encode_payment_response(result: SettlementResult) -> str:
    """Return the base64 JSON receipt carried in ``X-Payment-Response``."""

    body: dict[str, Any] = {
        "success": result.success,
        "transaction": result.transaction,
        "network": result.network,
        "payer": result.payer,
    }
    if not result.success:
        body["errorReason"] = result.error_reason
    return base64.b64encode(json.dumps(body).encode()).decode()


__all__ = [
    "PAYMENT_HEADER",
    "PAYMENT_RESPONSE_HEADER",
    "CHALLENGE_REASON",
    "resource_for",
    "to_minor_units",
    "build_challenge",
    "decode_payment_header",
    "verify_proof_matches",
    "encode_payment_response",
]
