"""Closed-market polling using APScheduler."""

import asyncio
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from arbiter.events import EventBus, MarketClosedEvent
from arbiter.models import ArbiterModel, MarketStatus
from arbiter.resolution import ResolutionService
from arbiter.storage import MarketRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_MS = 30_000
CHECK_JOB_ID = "closed-market-check"


class SchedulerStatus(ArbiterModel):
    """Read-only snapshot of the scheduler."""

    running: bool
    interval_ms: int
    last_check_time: datetime | None = None
    checks_performed: int = 0


class ResolutionScheduler:
    """Finds closed markets on a fixed interval and starts their resolution.

    Each check only spawns resolution tasks; it never waits for them, so a
    slow resolver does not delay the next tick.
    """

    def __init__(
        self,
        registry: MarketRegistry,
        service: ResolutionService,
        event_bus: EventBus,
        interval_ms: int = DEFAULT_INTERVAL_MS,
    ):
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")

        self._registry = registry
        self._service = service
        self._event_bus = event_bus
        self.interval_ms = interval_ms
        self._scheduler: AsyncIOScheduler | None = None
        self._last_check_time: datetime | None = None
        self._checks_performed = 0

    def start(self) -> None:
        """Start polling on the running event loop. The first check runs immediately."""
        if self._scheduler is not None:
            logger.warning("Scheduler already running")
            return

        scheduler = AsyncIOScheduler(
            event_loop=asyncio.get_running_loop(),
            timezone=timezone.utc,
        )
        scheduler.add_job(
            self.check_for_closed_markets,
            IntervalTrigger(seconds=self.interval_ms / 1000),
            id=CHECK_JOB_ID,
            name="Resolution: Closed Market Check",
            next_run_time=datetime.now(timezone.utc),
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(f"Resolution scheduler started (every {self.interval_ms} ms)")

    def stop(self) -> None:
        if self._scheduler is None:
            return

        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self._scheduler is not None

    async def check_for_closed_markets(self) -> int:
        """Run one polling cycle and return how many resolutions were started."""
        self._last_check_time = datetime.now(timezone.utc)
        self._checks_performed += 1

        try:
            candidates = {market.id: market for market in await self._registry.get_closed()}
            # Markets rolled back to CLOSED after a failed attempt are retried.
            for market in await self._registry.get_unresolved():
                if market.status == MarketStatus.CLOSED:
                    candidates.setdefault(market.id, market)
        except Exception as e:
            logger.error(f"Error checking for closed markets: {e}", exc_info=True)
            return 0

        triggered = 0
        for market in candidates.values():
            if self._service.is_resolved(market.id):
                continue
            if self._service.is_processing(market.id):
                continue

            logger.info(f"Detected closed market requiring resolution: {market.id} ({market.question})")

            await self._event_bus.emit(MarketClosedEvent(market=market))
            self._service.resolve_in_background(market.id)
            triggered += 1

        if triggered:
            logger.info(f"Triggered {triggered} resolution(s)")
        return triggered

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self.is_running(),
            interval_ms=self.interval_ms,
            last_check_time=self._last_check_time,
            checks_performed=self._checks_performed,
        )
