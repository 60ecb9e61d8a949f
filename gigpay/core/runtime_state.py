"""Process-wide runtime flags shared across modules."""
from __future__ import annotations

from datetime import datetime

from gigpay.utils.time import utcnow

_scheduler_active = False
_scheduler_started_at: datetime | None = None


def set_scheduler_active(active: bool) -> None:
    global _scheduler_active, _scheduler_started_at
    _scheduler_active = active
    _scheduler_started_at = utcnow() if active else None


def is_scheduler_active() -> bool:
    return _scheduler_active


def scheduler_started_at() -> datetime | None:
    return _scheduler_started_at
