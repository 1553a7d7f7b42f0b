"""Shared builders for the unit tests."""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from arbiter.events import EventBus, EventType
from arbiter.models import (
    Market,
    MarketRules,
    MarketStatus,
    ResolutionOutcome,
    ResolutionSubmission,
    ResolverResult,
)
from arbiter.resolution import ResolutionService
from arbiter.storage import MarketRegistry, ResolutionStore

NOW = datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc)


def build_market(market_id: str = "market-test", **overrides) -> Market:
    fields = dict(
        id=market_id,
        question=f"Will {market_id} resolve YES?",
        description="Test market",
        category="Testing",
        created_at=NOW - timedelta(days=30),
        close_time=NOW - timedelta(seconds=1),
        resolution_deadline=NOW + timedelta(days=1),
        status=MarketStatus.ACTIVE,
        rules=MarketRules(
            description="Resolves on the official announcement.",
            resolution_criteria="YES if the announcement says so.",
            primary_sources=["https://example.com/official"],
            edge_cases=["Retractions within 24h count."],
        ),
        allowed_outcomes=list(ResolutionOutcome),
    )
    fields.update(overrides)
    return Market(**fields)


def build_submission(market_id: str = "market-test", **overrides) -> ResolutionSubmission:
    fields = dict(
        market_id=market_id,
        outcome=ResolutionOutcome.YES,
        reasoning="Official announcement confirms it.",
        sources=[],
        confidence=0.9,
        resolved_at=NOW,
    )
    fields.update(overrides)
    return ResolutionSubmission(**fields)


class StubResolver:
    """Resolver returning a canned decision, optionally blocking or failing."""

    def __init__(self):
        self.outcome = ResolutionOutcome.YES
        self.confidence = 0.9
        self.reasoning = "Official announcement confirms it."
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []

    async def resolve(self, market: Market) -> ResolverResult:
        self.calls.append(market.id)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return ResolverResult(
            submission=build_submission(
                market.id,
                outcome=self.outcome,
                confidence=self.confidence,
                reasoning=self.reasoning,
            ),
            model_used="stub-model",
            prompt_tokens=120,
            completion_tokens=40,
        )


def build_system(markets=(), resolver=None, confidence_threshold: float = 0.6):
    """Wire bus, registry, store and service, recording every event emitted."""
    event_bus = EventBus()
    events = []
    for event_type in EventType:
        event_bus.subscribe(event_type, events.append)

    registry = MarketRegistry(markets, clock=lambda: NOW)
    store = ResolutionStore(event_bus)
    resolver = resolver or StubResolver()
    service = ResolutionService(
        resolver=resolver,
        registry=registry,
        store=store,
        event_bus=event_bus,
        confidence_threshold=confidence_threshold,
    )
    return SimpleNamespace(
        event_bus=event_bus,
        events=events,
        registry=registry,
        store=store,
        resolver=resolver,
        service=service,
    )


@pytest.fixture
def make_market():
    return build_market


@pytest.fixture
def make_submission():
    return build_submission


@pytest.fixture
def make_system():
    return build_system
