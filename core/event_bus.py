"""
Event bus for rental domain events.

Synchronous in-process pub/sub. Handlers execute immediately in the same
thread as the publisher, after the publishing transaction has committed,
so a failing handler is logged and skipped rather than raised.

Subscriptions may target a concrete event (InvoicePaid) or a category
from core.events (InvoiceEvent, PaymentEvent, RentalEvent). A published
event reaches the subscribers of its own class first, then those of each
category above it.
"""

import logging
from typing import Callable, Dict, List, Type, Union

from core.events import RentalEvent

logger = logging.getLogger(__name__)

EventKey = Union[str, Type[RentalEvent]]


def _event_classes() -> Dict[str, Type[RentalEvent]]:
    """Every RentalEvent class by name, the base included."""
    found = {RentalEvent.__name__: RentalEvent}
    pending = [RentalEvent]
    while pending:
        for sub in pending.pop().__subclasses__():
            found[sub.__name__] = sub
            pending.append(sub)
    return found


class EventBus:
    """
    In-process event bus for rental domain events.

    Subscribe by event class or class name, publish by event instance.
    Handlers for one class are called in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    @staticmethod
    def _key(event_type: EventKey) -> str:
        name = event_type if isinstance(event_type, str) else event_type.__name__
        if name not in _event_classes():
            raise ValueError(f"Unknown event type: {name}")
        return name

    def subscribe(self, event_type: EventKey, callback: Callable):
        """
        Subscribe to an event or an event category.

        Args:
            event_type: Event class or its name (e.g. InvoicePaid, 'InvoiceEvent')
            callback: Function to call with each matching event

        Raises:
            ValueError: If event_type names no rental event
        """
        self._subscribers.setdefault(self._key(event_type), []).append(callback)

    def unsubscribe(self, event_type: EventKey, callback: Callable) -> bool:
        """
        Remove a callback.

        Returns:
            True if it was subscribed, False otherwise
        """
        callbacks = self._subscribers.get(self._key(event_type), [])
        if callback not in callbacks:
            return False
        callbacks.remove(callback)
        return True

    def subscriber_count(self, event_type: EventKey) -> int:
        """Callbacks subscribed directly to this event or category."""
        return len(self._subscribers.get(self._key(event_type), []))

    def publish(self, event: RentalEvent) -> int:
        """
        Publish an event to its subscribers and its categories' subscribers.

        Args:
            event: RentalEvent instance to publish

        Returns:
            Number of handlers that completed without raising
        """
        event_type = event.__class__.__name__
        delivered = 0

        for cls in type(event).__mro__:
            if not (isinstance(cls, type) and issubclass(cls, RentalEvent)):
                continue
            for callback in list(self._subscribers.get(cls.__name__, [])):
                try:
                    callback(event)
                    delivered += 1
                except Exception:
                    logger.exception(
                        "Handler %s failed for %s (event_id=%s)",
                        getattr(callback, "__name__", repr(callback)),
                        event_type,
                        event.event_id,
                    )

        return delivered
