"""Gig endpoints."""
from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.gig import Gig, GigStatus
from gigpay.models.profile import Profile, ProfileRole
from gigpay.models.submission import Submission
from gigpay.schemas.gig import GigAccept, GigCancel, GigCreate, GigDetail, GigRead
from gigpay.schemas.submission import SubmissionCreate, SubmissionRead
from gigpay.security import require_profile, require_role
from gigpay.services import gigs as gig_service
from gigpay.services import views

router = APIRouter(prefix="/gigs", tags=["gigs"])


@router.post("", response_model=GigRead, status_code=status.HTTP_201_CREATED)
def create_gig(
    payload: GigCreate,
    db: Session = Depends(get_db),
    client: Profile = Depends(require_role(ProfileRole.CLIENT)),
) -> Gig:
    return gig_service.create_gig(db, client, payload)


@router.get("", response_model=list[GigRead])
def list_gigs(
    status_filter: GigStatus | None = Query(default=None, alias="status"),
    client_id: int | None = None,
    freelancer_id: int | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    _profile: Profile = Depends(require_profile),
) -> list[Gig]:
    return gig_service.list_gigs(
        db,
        status=status_filter,
        client_id=client_id,
        freelancer_id=freelancer_id,
        limit=limit,
        offset=offset,
    )


@router.get("/{gig_id}", response_model=GigDetail)
def read_gig(
    gig_id: int,
    db: Session = Depends(get_db),
    profile: Profile = Depends(require_profile),
) -> GigDetail:
    return views.gig_detail(db, profile, gig_id)


@router.post("/{gig_id}/accept", response_model=GigRead)
def accept_gig(
    gig_id: int,
    payload: GigAccept | None = Body(default=None),
    db: Session = Depends(get_db),
    freelancer: Profile = Depends(require_profile),
) -> Gig:
    wallet = payload.wallet_address if payload is not None else None
    return gig_service.accept_gig(db, freelancer, gig_id, wallet_address=wallet)


@router.post("/{gig_id}/submissions", response_model=SubmissionRead, status_code=status.HTTP_201_CREATED)
def submit_work(
    gig_id: int,
    payload: SubmissionCreate,
    db: Session = Depends(get_db),
    freelancer: Profile = Depends(require_profile),
) -> Submission:
    return gig_service.submit_work(
        db, freelancer, gig_id, deliverable_url=payload.deliverable_url, notes=payload.notes
    )


@router.post("/{gig_id}/submissions/reject", response_model=SubmissionRead)
def reject_submission(
    gig_id: int,
    db: Session = Depends(get_db),
    client: Profile = Depends(require_profile),
) -> Submission:
    return gig_service.reject_submission(db, client, gig_id)


@router.post("/{gig_id}/cancel", response_model=GigRead)
def cancel_gig(
    gig_id: int,
    payload: GigCancel | None = Body(default=None),
    db: Session = Depends(get_db),
    client: Profile = Depends(require_profile),
) -> Gig:
    reference = payload.refund_reference if payload is not None else None
    return gig_service.cancel_gig(db, client, gig_id, refund_reference=reference)


@router.delete("/{gig_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_gig(
    gig_id: int,
    db: Session = Depends(get_db),
    client: Profile = Depends(require_profile),
) -> Response:
    gig_service.delete_gig(db, client, gig_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
