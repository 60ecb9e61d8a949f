"""Schemas for profiles and session tokens."""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from gigpay.models.profile import ProfileRole

WALLET_PATTERN = r"^[1-9A-HJ-NP-Za-km-z]{32,44}$"


class ProfileCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    role: ProfileRole
    wallet_address: str | None = Field(default=None, pattern=WALLET_PATTERN)


class ProfileRead(BaseModel):
    id: int
    email: EmailStr
    full_name: str
    role: ProfileRole
    wallet_address: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileSession(BaseModel):
    """Sign-up response; ``token`` is only ever returned here."""

    profile: ProfileRead
    token: str
    expires_at: datetime | None


class WalletLink(BaseModel):
    wallet_address: str = Field(pattern=WALLET_PATTERN)
