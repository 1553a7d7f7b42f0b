"""Resolution service: drives one market through a single resolution attempt."""

from __future__ import annotations

import asyncio
import logging
import time

from arbiter.events import EventBus, ResolutionFailedEvent, ResolutionStartedEvent
from arbiter.exceptions import (
    AlreadyProcessingError,
    AlreadyResolvedError,
    MarketNotFoundError,
)
from arbiter.models import (
    MarketStatus,
    ResolutionMetadata,
    ResolutionOutcome,
    ResolutionRecord,
    ResolutionSubmission,
)
from arbiter.resolution.resolver import Resolver
from arbiter.storage import MarketRegistry, ResolutionStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.6
EXTERNAL_MODEL = "external"


def apply_confidence_threshold(
    submission: ResolutionSubmission, threshold: float
) -> ResolutionSubmission:
    """Force low-confidence decisions to UNKNOWN, keeping an audit note.

    UNKNOWN is never overridden. The original reasoning is kept verbatim
    after the note.
    """
    if submission.confidence >= threshold or submission.outcome == ResolutionOutcome.UNKNOWN:
        return submission

    note = (
        f"[AUTO-CONVERTED: Original outcome was {submission.outcome} "
        f"with confidence {submission.confidence}, below threshold of {threshold}]"
    )
    return submission.model_copy(
        update={
            "outcome": ResolutionOutcome.UNKNOWN,
            "reasoning": f"{note}\n\n{submission.reasoning}",
        }
    )


class ResolutionService:
    """Guarantees at most one in-flight attempt and one record per market."""

    def __init__(
        self,
        resolver: Resolver,
        registry: MarketRegistry,
        store: ResolutionStore,
        event_bus: EventBus,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    ):
        if not 0.0 <= confidence_threshold <= 1.0:
            raise ValueError(f"confidence_threshold must be in [0, 1], got {confidence_threshold}")

        self._resolver = resolver
        self._registry = registry
        self._store = store
        self._event_bus = event_bus
        self._processing: set[str] = set()
        self._background_tasks: set[asyncio.Task[ResolutionRecord | None]] = set()
        self.confidence_threshold = confidence_threshold

    @property
    def store(self) -> ResolutionStore:
        return self._store

    def is_processing(self, market_id: str) -> bool:
        return market_id in self._processing

    def is_resolved(self, market_id: str) -> bool:
        return self._store.exists(market_id)

    async def resolve_market(self, market_id: str) -> ResolutionRecord | None:
        """Run one resolution pass for ``market_id``.

        Returns the stored record, or ``None`` when the market is already
        resolved or already being processed. Resolver failures roll the market
        back to CLOSED and are re-raised.
        """
        if self.is_processing(market_id):
            logger.warning(f"Market {market_id} already being processed")
            return None

        market = await self._registry.get(market_id)
        if market is None:
            raise MarketNotFoundError(f"Market {market_id} not found", market_id=market_id)

        if self._store.exists(market_id):
            logger.warning(f"Market {market_id} already resolved")
            return None

        # No await between this check and the insert below.
        if self.is_processing(market_id):
            logger.warning(f"Market {market_id} already being processed")
            return None
        self._processing.add(market_id)

        try:
            await self._event_bus.emit(ResolutionStartedEvent(market_id=market_id))
            await self._registry.update_status(market_id, MarketStatus.RESOLVING)

            start = time.monotonic()
            try:
                result = await self._resolver.resolve(market)
                processing_time_ms = int((time.monotonic() - start) * 1000)

                submission = apply_confidence_threshold(
                    result.submission, self.confidence_threshold
                )
                if submission is not result.submission:
                    logger.warning(
                        f"Confidence below threshold for {market_id}, converting to UNKNOWN "
                        f"(original={result.submission.outcome}, "
                        f"confidence={result.submission.confidence}, "
                        f"threshold={self.confidence_threshold})"
                    )

                record = await self._store.save(
                    submission,
                    ResolutionMetadata(
                        processing_time_ms=processing_time_ms,
                        model_used=result.model_used,
                        prompt_tokens=result.prompt_tokens,
                        completion_tokens=result.completion_tokens,
                    ),
                )
                await self._registry.update_status(market_id, MarketStatus.RESOLVED)

            except Exception as e:
                logger.error(f"Resolution failed for {market_id}: {e}")
                await self._event_bus.emit(
                    ResolutionFailedEvent(market_id=market_id, error=str(e) or type(e).__name__)
                )
                await self._registry.update_status(market_id, MarketStatus.CLOSED)
                raise

            logger.info(
                f"Market {market_id} resolved: outcome={record.outcome} "
                f"confidence={record.confidence} processing_time_ms={processing_time_ms}"
            )
            return record

        finally:
            self._processing.discard(market_id)

    def resolve_in_background(self, market_id: str) -> asyncio.Task[ResolutionRecord | None]:
        """Start ``resolve_market`` as a detached task.

        Failures are logged inside the task and never reach the caller.
        """
        task = asyncio.create_task(
            self._resolve_detached(market_id), name=f"resolve-{market_id}"
        )
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    async def _resolve_detached(self, market_id: str) -> ResolutionRecord | None:
        try:
            return await self.resolve_market(market_id)
        except Exception as e:
            logger.error(f"Failed to resolve market {market_id}: {e}")
            return None

    async def wait_for_pending(self) -> None:
        """Wait until every background resolution has finished."""
        while pending := [task for task in self._background_tasks if not task.done()]:
            await asyncio.gather(*pending)

    async def submit_external(self, submission: ResolutionSubmission) -> ResolutionRecord:
        """Record a resolution computed outside the AI resolver."""
        market_id = submission.market_id

        if await self._registry.get(market_id) is None:
            raise MarketNotFoundError(f"Market {market_id} not found", market_id=market_id)
        if self._store.exists(market_id):
            raise AlreadyResolvedError(f"Market {market_id} already resolved", market_id=market_id)
        if self.is_processing(market_id):
            raise AlreadyProcessingError(
                f"Market {market_id} resolution already in progress", market_id=market_id
            )

        record = await self._store.save(
            submission,
            ResolutionMetadata(processing_time_ms=0, model_used=EXTERNAL_MODEL),
        )
        await self._registry.update_status(market_id, MarketStatus.RESOLVED)

        logger.info(f"External resolution submitted for {market_id}: outcome={record.outcome}")
        return record
