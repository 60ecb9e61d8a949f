"""Ledger read endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.profile import Profile
from gigpay.models.transaction import Transaction
from gigpay.schemas.transaction import TransactionRead
from gigpay.security import require_profile
from gigpay.services import ledger
from gigpay.services.gigs import get_gig_or_404
from gigpay.services.guard import authorize_participant

router = APIRouter(prefix="/gigs", tags=["transactions"])


@router.get("/{gig_id}/transactions", response_model=list[TransactionRead])
def list_transactions(
    gig_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(require_profile),
) -> list[Transaction]:
    gig = get_gig_or_404(db, gig_id)
    authorize_participant(profile, gig)
    return ledger.list_for_gig(db, gig.id)
