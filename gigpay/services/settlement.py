"""Settlement port and the facilitator-backed implementation."""
from __future__ import annotations

import logging
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from gigpay.config import get_settings
from gigpay.schemas.x402 import PaymentProof, SettlementResult

logger = logging.getLogger(__name__)


class SettlementService(Protocol):
    """Settles a payment proof with an external party and reports the outcome."""

    def settle(self, proof: PaymentProof) -> SettlementResult: ...


class FacilitatorSettlementService:
    """POST the proof to ``{FACILITATOR_URL}/settle``.

    Transport errors, non-2xx answers and unparseable bodies are returned as
    failed results; nothing is retried. A success without a ``transaction``
    reference is downgraded to a failure since the reference is what the
    ledger records.
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.FACILITATOR_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FACILITATOR_TIMEOUT_SECONDS
        self._transport = transport

    def settle(self, proof: PaymentProof) -> SettlementResult:
        url = f"{self.base_url}/settle"
        body = proof.model_dump(mode="json")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=body)
        except httpx.HTTPError as exc:
            logger.warning(
                "Facilitator settlement request failed",
                extra={"resource": proof.resource, "error": str(exc)},
            )
            return SettlementResult(success=False, error_reason="Failed to settle payment")

        if response.status_code >= 400:
            logger.warning(
                "Facilitator rejected settlement",
                extra={"resource": proof.resource, "status_code": response.status_code},
            )
            return SettlementResult(
                success=False,
                error_reason=_error_reason(response) or f"Facilitator returned HTTP {response.status_code}",
            )

        try:
            result = SettlementResult.model_validate(response.json())
        except (ValueError, PydanticValidationError):
            logger.warning("Facilitator returned an unreadable body", extra={"resource": proof.resource})
            return SettlementResult(success=False, error_reason="Invalid facilitator response")

        if result.success and not result.transaction:
            logger.warning("Facilitator success without transaction reference", extra={"resource": proof.resource})
            return result.model_copy(update={"success": False, "error_reason": "Missing settlement reference"})

        logger.info(
            "Facilitator settlement completed",
            extra={
                "resource": proof.resource,
                "success": result.success,
                "settlement_reference": result.transaction,
                "network": result.network,
            },
        )
        return result


def _error_reason(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        reason = data.get("errorReason") or data.get("error")
        return str(reason) if reason else None
    return None


def get_settlement_service() -> SettlementService:
    """FastAPI dependency returning the configured settlement service."""

    return FacilitatorSettlementService()


__all__ = ["SettlementService", "FacilitatorSettlementService", "get_settlement_service"]
