"""Status enumerations and their allowed transitions."""
from __future__ import annotations

from enum import Enum
from typing import TypeVar

from gigpay.models.gig import GigStatus
from gigpay.models.milestone import MilestoneStatus
from gigpay.models.submission import SubmissionStatus
from gigpay.utils.errors import InvalidStatus

StatusT = TypeVar("StatusT", bound=Enum)

GIG_TRANSITIONS: dict[GigStatus, frozenset[GigStatus]] = {
    GigStatus.OPEN: frozenset({GigStatus.IN_PROGRESS, GigStatus.CANCELLED}),
    GigStatus.IN_PROGRESS: frozenset({GigStatus.SUBMITTED}),
    GigStatus.SUBMITTED: frozenset({GigStatus.COMPLETED, GigStatus.IN_PROGRESS}),
    GigStatus.COMPLETED: frozenset(),
    GigStatus.CANCELLED: frozenset(),
}

# ``approved`` is reachable only through schema history: release pays on approval.
MILESTONE_TRANSITIONS: dict[MilestoneStatus, frozenset[MilestoneStatus]] = {
    MilestoneStatus.PENDING: frozenset({MilestoneStatus.SUBMITTED}),
    MilestoneStatus.SUBMITTED: frozenset({MilestoneStatus.PAID, MilestoneStatus.PENDING}),
    MilestoneStatus.APPROVED: frozenset({MilestoneStatus.PAID}),
    MilestoneStatus.PAID: frozenset(),
}

SUBMISSION_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset({SubmissionStatus.APPROVED, SubmissionStatus.REJECTED}),
    SubmissionStatus.APPROVED: frozenset(),
    SubmissionStatus.REJECTED: frozenset(),
}

_TABLES: dict[type[Enum], dict] = {
    GigStatus: GIG_TRANSITIONS,
    MilestoneStatus: MILESTONE_TRANSITIONS,
    SubmissionStatus: SUBMISSION_TRANSITIONS,
}


def can_transition(current: StatusT, target: StatusT) -> bool:
    """Return ``True`` when ``current -> target`` appears in the transition table."""

    table = _TABLES.get(type(current))
    if table is None or type(target) is not type(current):
        return False
    return target in table.get(current, frozenset())


def ensure_transition(current: StatusT, target: StatusT, *, entity: str | None = None) -> None:
    """Raise ``InvalidStatus`` unless ``current -> target`` is allowed."""

    if can_transition(current, target):
        return
    label = entity or type(current).__name__.removesuffix("Status").lower()
    raise InvalidStatus(
        f"Cannot move {label} from {current.value} to {target.value}.",
        details={"current": current.value, "target": target.value},
    )


__all__ = [
    "GIG_TRANSITIONS",
    "MILESTONE_TRANSITIONS",
    "SUBMISSION_TRANSITIONS",
    "can_transition",
    "ensure_transition",
]
