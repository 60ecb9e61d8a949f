"""Standardized error payloads and the domain error taxonomy.

Every domain error is an ``HTTPException`` whose ``detail`` is an
``error_response`` payload, so services can raise them directly and the
handlers in ``gigpay.main`` render them unchanged.
"""
from typing import Any

from fastapi import HTTPException, status


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload: ``{"error": message, "code": code}``."""

    payload: dict[str, Any] = {"error": message, "code": code}
    if details:
        payload["details"] = details
    return payload


class GigPayError(HTTPException):
    """Base class for user-facing domain errors."""

    code = "ERROR"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            status_code=self.http_status,
            detail=error_response(self.code, message, details),
            headers=headers,
        )
        self.message = message


class AuthenticationRequired(GigPayError):
    code = "AUTHENTICATION_REQUIRED"
    http_status = status.HTTP_401_UNAUTHORIZED


class Unauthorized(GigPayError):
    """The caller is not the party entitled to perform the action."""

    code = "UNAUTHORIZED"


class NotFound(GigPayError):
    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND


class InvalidStatus(GigPayError):
    """The target record is not in the status the action requires."""

    code = "INVALID_STATUS"


class FreelancerWalletMissing(GigPayError):
    code = "FREELANCER_WALLET_MISSING"


class SettlementFailed(GigPayError):
    """The payment proof was stale, mismatched or refused by the facilitator."""

    code = "SETTLEMENT_FAILED"


class ValidationError(GigPayError):
    """Malformed business input (percentages, resource kind/id pairs, proofs)."""

    code = "VALIDATION_ERROR"


__all__ = [
    "error_response",
    "GigPayError",
    "AuthenticationRequired",
    "Unauthorized",
    "NotFound",
    "InvalidStatus",
    "FreelancerWalletMissing",
    "SettlementFailed",
    "ValidationError",
]
