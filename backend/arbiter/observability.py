"""Logfire cloud observability and lifecycle event logging."""

import logging
from typing import Callable

import logfire

from arbiter import __version__
from arbiter.config import Settings
from arbiter.events import (
    EventBus,
    EventType,
    MarketClosedEvent,
    ResolutionCompletedEvent,
    ResolutionFailedEvent,
    ResolutionStartedEvent,
)

logger = logging.getLogger(__name__)
event_logger = logging.getLogger("arbiter.lifecycle")


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire with instrumentation.

    Must be called ONCE at application startup, before the resolver agent runs.

    This function configures Logfire cloud tracking and instruments:
    - PydanticAI agents (Resolver)
    - HTTPX clients (OpenRouter calls)
    - Python logging (bridges to Logfire)

    FastAPI is instrumented separately by ``instrument_app`` once the app exists.

    Args:
        settings: Application settings containing Logfire token

    Returns:
        True when Logfire was configured.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="arbiter",
            service_version=__version__,
        )

        logfire.instrument_pydantic_ai()
        logfire.instrument_httpx()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        # Continue running - observability is optional
        return False


def instrument_app(app) -> None:
    """Instrument a FastAPI app with Logfire (no-op if instrumentation fails)."""
    try:
        logfire.instrument_fastapi(app)
    except Exception as e:
        logger.debug(f"FastAPI instrumentation skipped: {e}")


def register_event_logging(event_bus: EventBus) -> list[Callable[[], None]]:
    """Log every lifecycle event. Returns the unsubscribe functions."""

    def on_market_closed(event: MarketClosedEvent) -> None:
        event_logger.info(f"Market closed: {event.market.id} ({event.market.question})")

    def on_resolution_started(event: ResolutionStartedEvent) -> None:
        event_logger.info(f"Resolution started: {event.market_id}")

    def on_resolution_completed(event: ResolutionCompletedEvent) -> None:
        record = event.resolution
        event_logger.info(
            f"Resolution completed: {record.market_id} outcome={record.outcome} "
            f"confidence={record.confidence} processing_time_ms={record.processing_time_ms}"
        )

    def on_resolution_failed(event: ResolutionFailedEvent) -> None:
        event_logger.error(f"Resolution failed: {event.market_id}: {event.error}")

    return [
        event_bus.subscribe(EventType.MARKET_CLOSED, on_market_closed),
        event_bus.subscribe(EventType.RESOLUTION_STARTED, on_resolution_started),
        event_bus.subscribe(EventType.RESOLUTION_COMPLETED, on_resolution_completed),
        event_bus.subscribe(EventType.RESOLUTION_FAILED, on_resolution_failed),
    ]
