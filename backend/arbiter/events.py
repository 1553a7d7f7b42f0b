"""In-process event bus for market lifecycle notifications.

One ``EventBus`` is built at startup and handed to every component that
publishes or subscribes. Delivery is synchronous from the publisher's point of
view: ``emit`` returns once every handler for the event type has finished.
"""

import asyncio
import inspect
import logging
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Awaitable, Callable, Literal, Union

from pydantic import Field

from arbiter.models import ArbiterModel, Market, ResolutionRecord, utc_now

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    MARKET_CLOSED = "MARKET_CLOSED"
    RESOLUTION_STARTED = "RESOLUTION_STARTED"
    RESOLUTION_COMPLETED = "RESOLUTION_COMPLETED"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"


class MarketClosedEvent(ArbiterModel):
    type: Literal[EventType.MARKET_CLOSED] = EventType.MARKET_CLOSED
    market: Market
    timestamp: datetime = Field(default_factory=utc_now)


class ResolutionStartedEvent(ArbiterModel):
    type: Literal[EventType.RESOLUTION_STARTED] = EventType.RESOLUTION_STARTED
    market_id: str
    timestamp: datetime = Field(default_factory=utc_now)


class ResolutionCompletedEvent(ArbiterModel):
    type: Literal[EventType.RESOLUTION_COMPLETED] = EventType.RESOLUTION_COMPLETED
    resolution: ResolutionRecord
    timestamp: datetime = Field(default_factory=utc_now)


class ResolutionFailedEvent(ArbiterModel):
    type: Literal[EventType.RESOLUTION_FAILED] = EventType.RESOLUTION_FAILED
    market_id: str
    error: str
    timestamp: datetime = Field(default_factory=utc_now)


SystemEvent = Annotated[
    Union[
        MarketClosedEvent,
        ResolutionStartedEvent,
        ResolutionCompletedEvent,
        ResolutionFailedEvent,
    ],
    Field(discriminator="type"),
]

EventHandler = Callable[[SystemEvent], Awaitable[None] | None]


class EventBus:
    """Publish/subscribe keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[EventHandler]] = {}

    def subscribe(
        self, event_type: EventType, handler: EventHandler
    ) -> Callable[[], None]:
        """Register ``handler`` for ``event_type`` and return an unsubscribe function."""
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

        def unsubscribe() -> None:
            registered = self._handlers.get(event_type)
            if registered and handler in registered:
                registered.remove(handler)

        return unsubscribe

    async def emit(self, event: SystemEvent) -> None:
        """Deliver ``event`` to all its handlers and wait for them to finish."""
        handlers = list(self._handlers.get(event.type, ()))
        if not handlers:
            return

        await asyncio.gather(*(self._deliver(handler, event) for handler in handlers))

    async def _deliver(self, handler: EventHandler, event: SystemEvent) -> None:
        try:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Error in event handler for {event.type}: {e}", exc_info=True)

    def handler_count(self, event_type: EventType) -> int:
        return len(self._handlers.get(event_type, ()))

    def clear(self) -> None:
        """Remove every subscription."""
        self._handlers.clear()
