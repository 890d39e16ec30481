"""In-process event bus.

Routes publish here after a successful create; the realtime gateway is
subscribed and fans the event out to every open WebSocket. Publishing is
best effort: a failing subscriber is logged and the rest still run.
"""

from typing import Any, Awaitable, Callable

import structlog
from fastapi import Request

from ticktee.events.types import OutboundEvent

logger = structlog.get_logger()

Subscriber = Callable[[OutboundEvent, Any], Awaitable[None]]


class EventBus:
    """Ordered list of async subscribers."""

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber. Returns a function that removes it again."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    async def publish(self, event_type: OutboundEvent, payload: Any) -> None:
        """Deliver to every subscriber in registration order."""
        logger.debug("bus.publish", event_type=event_type.value)
        for subscriber in list(self._subscribers):
            try:
                await subscriber(event_type, payload)
            except Exception:
                logger.exception("bus.subscriber_failed", event_type=event_type.value)


def get_event_bus(request: Request) -> EventBus:
    """FastAPI dependency — the app-scoped bus created in create_app()."""
    return request.app.state.bus
