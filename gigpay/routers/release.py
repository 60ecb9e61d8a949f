"""Payment release endpoint (x402)."""
from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from gigpay.db import get_db
from gigpay.models.profile import Profile
from gigpay.schemas.milestone import MilestoneRead
from gigpay.schemas.release import ReleaseRequest, ReleaseResponse, TransactionInfo
from gigpay.schemas.x402 import PaymentChallenge
from gigpay.security import require_profile
from gigpay.services import release as release_service
from gigpay.services.settlement import SettlementService, get_settlement_service
from gigpay.services.wallets import ProfileWalletLinkage
from gigpay.services.x402 import PAYMENT_HEADER

router = APIRouter(tags=["release"])


def release_funds(
    payload: ReleaseRequest,
    x_payment: str | None = Header(default=None, alias=PAYMENT_HEADER),
    db: Session = Depends(get_db),
    actor: Profile = Depends(require_profile),
    settlement: SettlementService = Depends(get_settlement_service),
) -> JSONResponse:
    kind, resource_id = release_service.resolve_target(payload)
    outcome = release_service.release(
        db,
        actor=actor,
        kind=kind,
        resource_id=resource_id,
        payment_proof=x_payment,
        settlement=settlement,
        wallets=ProfileWalletLinkage(db),
    )
    if isinstance(outcome, PaymentChallenge):
        return JSONResponse(status_code=status.HTTP_402_PAYMENT_REQUIRED, content=outcome.model_dump(mode="json"))

    body = ReleaseResponse(
        success=outcome.success,
        message=outcome.message,
        milestone=MilestoneRead.model_validate(outcome.milestone) if outcome.milestone is not None else None,
        transaction_info=TransactionInfo(
            escrow_address=outcome.escrow_address,
            amount_released=outcome.amount_released,
            freelancer_wallet=outcome.freelancer_wallet,
            tx_signature=outcome.settlement_reference,
            payer=outcome.payer,
            network=outcome.network,
        ),
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=body.model_dump(mode="json"),
        headers=outcome.payment_response_header,
    )


_responses = {
    200: {"model": ReleaseResponse},
    402: {"model": PaymentChallenge, "description": "Payment required"},
}
router.add_api_route("/release", release_funds, methods=["POST"], responses=_responses)
router.add_api_route(
    "/milestone-orchestrator",
    release_funds,
    methods=["POST"],
    responses=_responses,
    include_in_schema=False,
)
