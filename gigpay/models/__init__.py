"""ORM models package."""
from .audit import AuditLog
from .base import Base
from .gig import Gig, GigStatus
from .milestone import Milestone, MilestoneStatus
from .profile import Profile, ProfileRole
from .scheduler_lock import SchedulerLock
from .session_token import SessionToken
from .submission import Submission, SubmissionStatus
from .transaction import LedgerMutationError, Transaction, TransactionStatus, TransactionType

__all__ = [
    "AuditLog",
    "Base",
    "Gig",
    "GigStatus",
    "LedgerMutationError",
    "Milestone",
    "MilestoneStatus",
    "Profile",
    "ProfileRole",
    "SchedulerLock",
    "SessionToken",
    "Submission",
    "SubmissionStatus",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
]
