"""In-process change notifications.

Topics carry no payload. A subscriber learns only that something changed
and re-reads its own view from the repository.
"""

import inspect
from collections import defaultdict
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from cartsync.logging import get_logger

logger = get_logger(__name__)

Handler = Callable[[], Union[None, Awaitable[None]]]


class CartEvent(str, Enum):
    """Event bus topics."""
    CART_UPDATED = "cartUpdated"
    WISHLIST_UPDATED = "wishlistUpdated"


class EventBus:
    """
    Publish/subscribe for cart and wishlist changes.

    Handlers may be plain callables or coroutine functions. A failing
    handler is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[CartEvent, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: CartEvent, handler: Handler) -> Callable[[], None]:
        """Register a handler; returns a function that unregisters it."""
        topic = CartEvent(topic)
        self._handlers[topic].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def publish(self, topic: CartEvent) -> None:
        topic = CartEvent(topic)
        # Copy so handlers can unsubscribe while being notified
        for handler in list(self._handlers.get(topic, [])):
            try:
                result = handler()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.warning("Subscriber for %s failed", topic.value, exc_info=True)

    def subscriber_count(self, topic: CartEvent) -> int:
        return len(self._handlers.get(CartEvent(topic), []))


_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the process-wide EventBus singleton."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
