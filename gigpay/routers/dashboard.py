"""Role-aware dashboard endpoint."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.profile import Profile
from gigpay.schemas.dashboard import Dashboard
from gigpay.security import require_profile
from gigpay.services import views

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=Dashboard)
def read_dashboard(db: Session = Depends(get_db), profile: Profile = Depends(require_profile)) -> Dashboard:
    return views.dashboard(db, profile)
