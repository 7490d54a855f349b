"""In-process domain event bus.

``publish`` awaits every subscribed handler in subscription order before
returning, so a caller that publishes after a store write knows that all
cache invalidation has completed. Handler failures are logged and
re-raised to the publisher.
"""

import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Type

logger = logging.getLogger(__name__)


def _event_name(event: Any) -> str:
    return getattr(event, "event_type", type(event).__name__)


EventHandler = Callable[[Any], Awaitable[None]]


class DomainEventBus:
    """Routes domain events to handlers registered per event class."""

    def __init__(self):
        self._handlers: Dict[Type[Any], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: Type[Any], handler: EventHandler) -> None:
        """Register ``handler`` for ``event_type`` and its subclasses."""
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[Any], handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def handlers_for(self, event: Any) -> List[EventHandler]:
        handlers: List[EventHandler] = []
        for cls in type(event).__mro__:
            for handler in self._handlers.get(cls, []):
                if handler not in handlers:
                    handlers.append(handler)
        return handlers

    async def publish(self, event: Any) -> int:
        """Deliver ``event`` to its handlers; returns how many ran."""
        handlers = self.handlers_for(event)
        if not handlers:
            logger.debug(f"No handlers for {_event_name(event)}")
            return 0

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    f"Handler {getattr(handler, '__qualname__', handler)} failed "
                    f"for {_event_name(event)}: {e}"
                )
                raise
        return len(handlers)
