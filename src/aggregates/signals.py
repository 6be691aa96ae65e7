"""
Mutation Signals

Entity writes notify subscribers synchronously, before the write returns,
so a cached aggregate never outlives the data it was computed from.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    BUILDING = "building"
    ROOM = "room"
    CCTV = "cctv"
    PRODUCTION_TREND = "production_trend"


class MutationAction(Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class InvalidationSignal:
    entity: EntityKind
    action: MutationAction
    entity_id: int
    emitted_at: float = field(default_factory=time.time)


Subscriber = Callable[[InvalidationSignal], None]


class MutationBus:
    """Fan-out of invalidation signals to subscribers, in subscription order."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def emit(self, signal: InvalidationSignal) -> int:
        """
        Deliver a signal to every subscriber.

        A failing subscriber is logged and skipped; the remaining subscribers
        still see the signal. Returns the number of successful deliveries.
        """
        delivered = 0
        for subscriber in list(self._subscribers):
            try:
                subscriber(signal)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Invalidation subscriber failed for {signal.entity.value} "
                    f"{signal.action.value} #{signal.entity_id}: {e}"
                )

        logger.debug(
            f"Signal {signal.entity.value}/{signal.action.value} #{signal.entity_id} "
            f"delivered to {delivered} subscriber(s)"
        )
        return delivered
