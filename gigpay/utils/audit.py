"""Audit logging helper utilities."""
from __future__ import annotations

from typing import Any, Mapping

from sqlalchemy.orm import Session

from gigpay.models.audit import AuditLog
from gigpay.utils.time import utcnow


SENSITIVE_KEYS = {
    "email",
    "wallet_address",
    "freelancer_wallet",
    "payer",
    "payment_proof",
    "settlement_reference",
    "deliverable_url",
}


def _mask_value(key: str, value: Any) -> Any:
    if value is None:
        return None

    if key in {"wallet_address", "freelancer_wallet", "payer"}:
        text = str(value)
        if len(text) <= 8:
            return "***"
        return f"{text[:4]}***{text[-4:]}"

    if key == "email":
        text = str(value)
        if "@" in text:
            _, domain = text.split("@", 1)
            return f"***@{domain}"
        return "***"

    if key == "deliverable_url":
        base = str(value).split("?", 1)[0]
        if "/" in base:
            prefix = base.rsplit("/", 1)[0]
            return f"{prefix}/***"
        return "***/***"

    if key == "settlement_reference":
        text = str(value)
        if len(text) <= 6:
            return "***"
        return f"***{text[-6:]}"

    if key == "payment_proof":
        return "***"

    return value


def sanitize_payload_for_audit(data: Any) -> Any:
    """Return a copy of ``data`` with wallet addresses, proofs and PII masked."""

    if isinstance(data, Mapping):
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            masked_value = _mask_value(key, value) if key in SENSITIVE_KEYS else value
            sanitized[key] = sanitize_payload_for_audit(masked_value)
        return sanitized

    if isinstance(data, list):
        return [sanitize_payload_for_audit(item) for item in data]

    return data


def log_audit(
    db: Session,
    *,
    actor: str,
    action: str,
    entity: str,
    entity_id: int | None,
    data: dict | None = None,
) -> None:
    """Persist an audit entry in the shared AuditLog table."""

    db.add(
        AuditLog(
            actor=actor,
            action=action,
            entity=entity,
            entity_id=entity_id if entity_id is not None else 0,
            data_json=sanitize_payload_for_audit(data or {}),
            at=utcnow(),
        )
    )


def actor_from_profile(profile: Any, fallback: str = "system") -> str:
    """Return the canonical actor string for a given profile object."""

    profile_id = getattr(profile, "id", None)
    role = getattr(profile, "role", None)
    if profile_id is None:
        return fallback
    if role is not None:
        return f"{getattr(role, 'value', role)}:{profile_id}"
    return f"profile:{profile_id}"
