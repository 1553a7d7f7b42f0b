"""In-memory resolution store. One record per market, never mutated."""

import logging
from uuid import uuid4

from arbiter.events import EventBus, ResolutionCompletedEvent
from arbiter.models import ResolutionMetadata, ResolutionRecord, ResolutionSubmission

logger = logging.getLogger(__name__)


def generate_resolution_id(market_id: str) -> str:
    """Generate unique resolution ID with res- prefix."""
    return f"res-{market_id}-{uuid4().hex}"


class ResolutionStore:
    """Single source of truth for whether a market has been resolved."""

    def __init__(self, event_bus: EventBus):
        self._event_bus = event_bus
        self._resolutions: dict[str, ResolutionRecord] = {}

    async def save(
        self,
        submission: ResolutionSubmission,
        metadata: ResolutionMetadata,
    ) -> ResolutionRecord:
        """Store a record for the submission and announce RESOLUTION_COMPLETED.

        Callers must check ``exists`` first; saving twice for one market
        replaces the earlier record.
        """
        record = ResolutionRecord(
            **submission.model_dump(),
            **metadata.model_dump(),
            id=generate_resolution_id(submission.market_id),
        )

        if submission.market_id in self._resolutions:
            logger.warning(f"Overwriting resolution for market {submission.market_id}")
        self._resolutions[submission.market_id] = record

        await self._event_bus.emit(ResolutionCompletedEvent(resolution=record))

        return record

    def get(self, market_id: str) -> ResolutionRecord | None:
        return self._resolutions.get(market_id)

    def get_all(self) -> list[ResolutionRecord]:
        return list(self._resolutions.values())

    def exists(self, market_id: str) -> bool:
        return market_id in self._resolutions

    def __len__(self) -> int:
        return len(self._resolutions)
