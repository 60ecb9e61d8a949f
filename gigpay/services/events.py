"""In-process change notifications for gigs."""
from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from gigpay.utils.time import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GigChange:
    gig_id: int
    kind: str
    data: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=utcnow)


Callback = Callable[[GigChange], None]
Unsubscribe = Callable[[], None]


class GigEventBus:
    """Registry of per-gig subscribers, notified after a change is committed."""

    def __init__(self) -> None:
        self._subscribers: dict[int, list[Callback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, gig_id: int, callback: Callback) -> Unsubscribe:
        with self._lock:
            self._subscribers[gig_id].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(gig_id)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if callbacks is not None and not callbacks:
                    self._subscribers.pop(gig_id, None)

        return _unsubscribe

    def publish(self, change: GigChange) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(change.gig_id, ()))
        for callback in callbacks:
            try:
                callback(change)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Gig change subscriber failed",
                    extra={"gig_id": change.gig_id, "kind": change.kind},
                )

    def subscriber_count(self, gig_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(gig_id, ()))


bus = GigEventBus()


def subscribe(gig_id: int, callback: Callback) -> Unsubscribe:
    return bus.subscribe(gig_id, callback)


def publish(gig_id: int, kind: str, **data: Any) -> None:
    bus.publish(GigChange(gig_id=gig_id, kind=kind, data=data))


__all__ = ["GigChange", "GigEventBus", "bus", "subscribe", "publish"]
