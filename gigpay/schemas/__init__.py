"""Schema package exports."""
from .dashboard import Dashboard
from .gig import GigAccept, GigCancel, GigCreate, GigDetail, GigRead
from .milestone import (
    MilestoneCreate,
    MilestoneProgress,
    MilestoneRead,
    MilestoneRevisionRequest,
    MilestoneSubmit,
)
from .profile import ProfileCreate, ProfileRead, ProfileSession, WalletLink
from .release import ReleaseRequest, ReleaseResponse, TransactionInfo
from .submission import SubmissionCreate, SubmissionRead
from .transaction import TransactionRead
from .x402 import PaymentChallenge, PaymentProof, PaymentRequirement, SettlementResult

__all__ = [
    "Dashboard",
    "GigAccept",
    "GigCancel",
    "GigCreate",
    "GigDetail",
    "GigRead",
    "MilestoneCreate",
    "MilestoneProgress",
    "MilestoneRead",
    "MilestoneRevisionRequest",
    "MilestoneSubmit",
    "PaymentChallenge",
    "PaymentProof",
    "PaymentRequirement",
    "ProfileCreate",
    "ProfileRead",
    "ProfileSession",
    "ReleaseRequest",
    "ReleaseResponse",
    "SettlementResult",
    "SubmissionCreate",
    "SubmissionRead",
    "TransactionInfo",
    "TransactionRead",
    "WalletLink",
]
