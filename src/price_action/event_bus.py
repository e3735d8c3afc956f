"""
Event Bus

Synchronous publish/subscribe mediator keyed by EventKind.

Delivery is in-process and in handler-registration order. A publish call
returns only after every handler (and anything those handlers published in
turn) has run. The bus is not thread-safe; the engine drives it from a
single thread.
"""

import logging
from typing import Callable, Dict, List

from .events import EventKind, PriceActionEvent

logger = logging.getLogger(__name__)

Handler = Callable[[PriceActionEvent], None]


class EventBus:
    """
    Typed registry of ordered handler lists.

    Args:
        record: Keep every published event in ``history``.

    Example:
        >>> bus = EventBus()
        >>> seen = []
        >>> bus.subscribe(EventKind.FVG_DETECTED, seen.append)
        >>> bus.subscriber_count(EventKind.FVG_DETECTED)
        1
    """

    def __init__(self, record: bool = False):
        self._handlers: Dict[EventKind, List[Handler]] = {}
        self.record = record
        self.history: List[PriceActionEvent] = []

    def subscribe(self, kind: EventKind, handler: Handler) -> None:
        """Register a handler; registering the same handler twice is a no-op."""
        handlers = self._handlers.setdefault(kind, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, kind: EventKind, handler: Handler) -> None:
        handlers = self._handlers.get(kind)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._handlers[kind]

    def publish(self, event: PriceActionEvent) -> None:
        """
        Deliver an event to every handler registered for its kind.

        Handlers run over a snapshot, so subscriptions changed during delivery
        take effect on the next publish. A handler that raises is logged and
        the remaining handlers still run.
        """
        if self.record:
            self.history.append(event)

        for handler in list(self._handlers.get(event.event_type, ())):
            try:
                handler(event)
            except Exception:
                logger.exception(
                    f"Handler {getattr(handler, '__qualname__', handler)!s} failed "
                    f"on {event.event_type.name} at bar {event.bar_index}"
                )

    def clear(self) -> None:
        self._handlers.clear()

    def subscriber_count(self, kind: EventKind) -> int:
        return len(self._handlers.get(kind, ()))

    def total_subscriptions(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())

    def drain_history(self) -> List[PriceActionEvent]:
        """Return recorded events and reset the record."""
        events, self.history = self.history, []
        return events
