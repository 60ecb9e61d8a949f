"""Profile sign-up and self-service endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.profile import Profile
from gigpay.schemas.profile import ProfileCreate, ProfileRead, ProfileSession, WalletLink
from gigpay.security import require_profile
from gigpay.services import profiles as profile_service
from gigpay.services.wallets import link_wallet

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.post("", response_model=ProfileSession, status_code=status.HTTP_201_CREATED)
def create_profile(payload: ProfileCreate, db: Session = Depends(get_db)) -> ProfileSession:
    profile, token, raw = profile_service.create_profile(db, payload)
    return ProfileSession(profile=ProfileRead.model_validate(profile), token=raw, expires_at=token.expires_at)


@router.get("/me", response_model=ProfileRead)
def read_me(profile: Profile = Depends(require_profile)) -> Profile:
    return profile


@router.put("/me/wallet", response_model=ProfileRead)
def update_wallet(
    payload: WalletLink,
    db: Session = Depends(get_db),
    profile: Profile = Depends(require_profile),
) -> Profile:
    return link_wallet(db, profile, payload.wallet_address)
