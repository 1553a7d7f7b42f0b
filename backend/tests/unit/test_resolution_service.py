"""
Unit Tests: Resolution Service

Test cases:
- Successful resolution stores one record and marks the market RESOLVED
- Resolver failure rolls back to CLOSED, emits RESOLUTION_FAILED and re-raises
- Concurrent attempts for one market call the resolver once
- Confidence threshold conversion to UNKNOWN
- External submissions and their conflicts
"""

import asyncio

import pytest

from arbiter.events import EventType
from arbiter.exceptions import (
    AlreadyProcessingError,
    AlreadyResolvedError,
    MarketNotFoundError,
    ResolutionErrorCode,
    ResolverUpstreamError,
)
from arbiter.models import MarketStatus, ResolutionOutcome
from arbiter.resolution import apply_confidence_threshold


def test_resolve_market_stores_record_and_marks_resolved(make_market, make_system) -> None:
    system = make_system([make_market("m1")])

    async def run():
        record = await system.service.resolve_market("m1")
        market = await system.registry.get("m1")
        return record, market

    record, market = asyncio.run(run())

    assert record is not None
    assert record.outcome == ResolutionOutcome.YES
    assert record.model_used == "stub-model"
    assert record.prompt_tokens == 120
    assert record.processing_time_ms >= 0
    assert market.status == MarketStatus.RESOLVED
    assert system.store.get_all() == [record]
    assert not system.service.is_processing("m1")
    assert [e.type for e in system.events] == [
        EventType.RESOLUTION_STARTED,
        EventType.RESOLUTION_COMPLETED,
    ]


def test_resolver_failure_rolls_back_to_closed(make_market, make_system) -> None:
    system = make_system([make_market("m1")])
    system.resolver.error = ResolverUpstreamError("provider down", market_id="m1")

    async def run():
        with pytest.raises(ResolverUpstreamError):
            await system.service.resolve_market("m1")
        return await system.registry.get("m1")

    market = asyncio.run(run())

    assert market.status == MarketStatus.CLOSED
    assert not system.store.exists("m1")
    assert not system.service.is_processing("m1")
    failed = [e for e in system.events if e.type == EventType.RESOLUTION_FAILED]
    assert len(failed) == 1
    assert failed[0].error == "provider down"


def test_failed_market_can_be_retried(make_market, make_system) -> None:
    system = make_system([make_market("m1")])
    system.resolver.error = RuntimeError()

    async def run():
        with pytest.raises(RuntimeError):
            await system.service.resolve_market("m1")
        system.resolver.error = None
        return await system.service.resolve_market("m1")

    record = asyncio.run(run())

    assert record is not None
    assert system.resolver.calls == ["m1", "m1"]
    failed = [e for e in system.events if e.type == EventType.RESOLUTION_FAILED]
    assert failed[0].error == "RuntimeError"


def test_concurrent_attempts_call_resolver_once(make_market, make_system) -> None:
    system = make_system([make_market("m1")])

    async def run():
        system.resolver.gate = asyncio.Event()
        first = asyncio.create_task(system.service.resolve_market("m1"))
        await asyncio.sleep(0)
        second = await system.service.resolve_market("m1")
        assert system.service.is_processing("m1")
        system.resolver.gate.set()
        return await first, second

    first, second = asyncio.run(run())

    assert first is not None
    assert second is None
    assert system.resolver.calls == ["m1"]
    assert len(system.store) == 1


def test_already_resolved_market_is_skipped(make_market, make_system) -> None:
    system = make_system([make_market("m1")])

    async def run():
        await system.service.resolve_market("m1")
        return await system.service.resolve_market("m1")

    assert asyncio.run(run()) is None
    assert system.resolver.calls == ["m1"]


def test_unknown_market_raises_not_found(make_system) -> None:
    system = make_system()

    with pytest.raises(MarketNotFoundError) as exc_info:
        asyncio.run(system.service.resolve_market("missing"))

    assert exc_info.value.code == ResolutionErrorCode.MARKET_NOT_FOUND
    assert exc_info.value.market_id == "missing"


def test_low_confidence_decision_is_converted_to_unknown(make_market, make_system) -> None:
    system = make_system([make_market("m1")], confidence_threshold=0.6)
    system.resolver.confidence = 0.4
    system.resolver.reasoning = "Only one unverified report."

    record = asyncio.run(system.service.resolve_market("m1"))

    assert record.outcome == ResolutionOutcome.UNKNOWN
    assert record.confidence == 0.4
    assert record.reasoning.startswith(
        "[AUTO-CONVERTED: Original outcome was YES with confidence 0.4, "
        "below threshold of 0.6]"
    )
    assert record.reasoning.endswith("\n\nOnly one unverified report.")


def test_apply_confidence_threshold_boundaries(make_submission) -> None:
    confident = make_submission(outcome=ResolutionOutcome.NO, confidence=0.9)
    at_threshold = make_submission(confidence=0.6)
    unknown = make_submission(outcome=ResolutionOutcome.UNKNOWN, confidence=0.1)

    assert apply_confidence_threshold(confident, 0.6) is confident
    assert apply_confidence_threshold(at_threshold, 0.6) is at_threshold
    assert apply_confidence_threshold(unknown, 0.6) is unknown

    early = apply_confidence_threshold(
        make_submission(outcome=ResolutionOutcome.EARLY, confidence=0.2), 0.6
    )
    assert early.outcome == ResolutionOutcome.UNKNOWN


def test_threshold_must_be_a_probability(make_system) -> None:
    with pytest.raises(ValueError):
        make_system(confidence_threshold=1.5)


def test_resolve_in_background_swallows_failures(make_market, make_system) -> None:
    system = make_system([make_market("m1")])
    system.resolver.error = RuntimeError("boom")

    async def run():
        task = system.service.resolve_in_background("m1")
        await system.service.wait_for_pending()
        return task.result()

    assert asyncio.run(run()) is None
    assert not system.service.is_processing("m1")


def test_submit_external_records_resolution(make_market, make_submission, make_system) -> None:
    system = make_system([make_market("m1")])

    async def run():
        record = await system.service.submit_external(make_submission("m1"))
        market = await system.registry.get("m1")
        return record, market

    record, market = asyncio.run(run())

    assert record.model_used == "external"
    assert record.processing_time_ms == 0
    assert market.status == MarketStatus.RESOLVED
    assert system.resolver.calls == []


def test_submit_external_conflicts(make_market, make_submission, make_system) -> None:
    system = make_system([make_market("m1"), make_market("m2")])

    async def run():
        with pytest.raises(MarketNotFoundError):
            await system.service.submit_external(make_submission("missing"))

        await system.service.submit_external(make_submission("m1"))
        with pytest.raises(AlreadyResolvedError):
            await system.service.submit_external(make_submission("m1"))

        system.resolver.gate = asyncio.Event()
        in_flight = asyncio.create_task(system.service.resolve_market("m2"))
        await asyncio.sleep(0)
        with pytest.raises(AlreadyProcessingError):
            await system.service.submit_external(make_submission("m2"))
        system.resolver.gate.set()
        await in_flight

    asyncio.run(run())


def test_simultaneous_attempts_recheck_after_market_lookup(make_market, make_system) -> None:
    system = make_system([make_market("m1")])
    lookup = system.registry.get

    async def slow_get(market_id):
        await asyncio.sleep(0)
        return await lookup(market_id)

    system.registry.get = slow_get

    async def run():
        return await asyncio.gather(
            system.service.resolve_market("m1"),
            system.service.resolve_market("m1"),
        )

    results = asyncio.run(run())

    assert sum(r is not None for r in results) == 1
    assert system.resolver.calls == ["m1"]
    assert len(system.store) == 1
    started = [e for e in system.events if e.type == EventType.RESOLUTION_STARTED]
    assert len(started) == 1
