"""Fan-out of sync events to subscribed callbacks."""

from __future__ import annotations

import logging
from collections.abc import Callable

from vibechannel.core.sync.models import SyncEvent, SyncEventType

logger = logging.getLogger(__name__)

SyncListener = Callable[[SyncEvent], object]


class SyncEventEmitter:
    """
    Delivers SyncEvent objects to listeners in subscription order.

    A listener that raises is logged and skipped; it does not stop delivery
    to the others or break the sync loop.
    """

    def __init__(self) -> None:
        self._listeners: list[SyncListener] = []

    def subscribe(self, listener: SyncListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event_type: SyncEventType, **data: str | None) -> SyncEvent:
        event = SyncEvent(type=event_type, **data)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Sync listener failed on %s", event_type.value)
        return event

    def clear(self) -> None:
        self._listeners.clear()
