"""Freelancer payout wallet linkage."""
from __future__ import annotations

import logging
import re
from typing import Protocol

from sqlalchemy.orm import Session

from gigpay.models.profile import Profile
from gigpay.utils.audit import actor_from_profile, log_audit
from gigpay.utils.errors import ValidationError

logger = logging.getLogger(__name__)

_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


class WalletLinkage(Protocol):
    def get(self, profile_id: int) -> str | None: ...


class ProfileWalletLinkage:
    """Reads the wallet address a profile linked to its account."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, profile_id: int) -> str | None:
        profile = self.db.get(Profile, profile_id)
        if profile is None:
            return None
        return profile.wallet_address or None


def is_valid_wallet_address(address: str) -> bool:
    return bool(_BASE58_ADDRESS.fullmatch(address))


def link_wallet(db: Session, profile: Profile, address: str, *, commit: bool = True) -> Profile:
    """Attach a Solana wallet address to ``profile``."""

    cleaned = address.strip()
    if not is_valid_wallet_address(cleaned):
        raise ValidationError("Wallet address must be a base58 Solana address.")

    previous = profile.wallet_address
    profile.wallet_address = cleaned
    log_audit(
        db,
        actor=actor_from_profile(profile),
        action="WALLET_LINKED",
        entity="Profile",
        entity_id=profile.id,
        data={"wallet_address": cleaned, "replaced": previous is not None},
    )
    if commit:
        db.commit()
        db.refresh(profile)
    logger.info("Wallet linked", extra={"profile_id": profile.id})
    return profile


__all__ = ["WalletLinkage", "ProfileWalletLinkage", "is_valid_wallet_address", "link_wallet"]
