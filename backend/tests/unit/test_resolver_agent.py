"""
Unit Tests: Resolver Agent

Runs the pydantic-ai agent against FunctionModel instead of OpenRouter.

Test cases:
- submit_resolution call becomes a ResolverResult
- Plain text answer is NO_DECISION
- Provider errors are UPSTREAM_ERROR, invalid payloads MALFORMED_RESPONSE
- Outcomes outside allowed_outcomes are sent back for retry
- Decision payload coercion and prompt rendering
"""

import asyncio
from datetime import datetime, timezone

import pytest
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.messages import (
    ModelMessage,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel

from arbiter.agents.resolver import (
    SUBMIT_RESOLUTION_TOOL,
    AIResolver,
    ResolutionDecision,
    build_system_prompt,
    build_user_prompt,
)
from arbiter.agents.resolver.prompts import format_timestamp
from arbiter.config import ResolverConfig
from arbiter.exceptions import (
    ResolutionErrorCode,
    ResolverMalformedResponseError,
    ResolverNoDecisionError,
    ResolverUpstreamError,
)
from arbiter.models import ResolutionOutcome

from conftest import NOW

DECISION_ARGS = {
    "outcome": "YES",
    "reasoning": "The official announcement confirms the event.",
    "sources": [
        {
            "url": "https://example.com/official",
            "title": "Official announcement",
            "relevance": "Primary source named in the rules",
        }
    ],
    "confidence": 0.92,
}


def _resolver(function) -> AIResolver:
    return AIResolver(
        config=ResolverConfig(model="test/model", web_search=False),
        model=FunctionModel(function),
        clock=lambda: NOW,
    )


def _submit(args: dict) -> ModelResponse:
    return ModelResponse(parts=[ToolCallPart(tool_name=SUBMIT_RESOLUTION_TOOL, args=args)])


def test_submit_resolution_call_becomes_result(make_market) -> None:
    system_prompts = []

    def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        system_prompts.extend(
            part.content for part in messages[0].parts if isinstance(part, SystemPromptPart)
        )
        return _submit(DECISION_ARGS)

    result = asyncio.run(_resolver(model).resolve(make_market("m1")))

    submission = result.submission
    assert submission.market_id == "m1"
    assert submission.outcome == ResolutionOutcome.YES
    assert submission.confidence == 0.92
    assert submission.sources[0].title == "Official announcement"
    assert submission.resolved_at.tzinfo is not None
    assert result.model_used == "test/model"
    assert any("Market ID: m1" in prompt for prompt in system_prompts)


def test_text_answer_is_no_decision(make_market) -> None:
    def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return ModelResponse(parts=[TextPart("I think the answer is probably yes.")])

    with pytest.raises(ResolverNoDecisionError) as exc_info:
        asyncio.run(_resolver(model).resolve(make_market("m1")))

    assert exc_info.value.code == ResolutionErrorCode.RESOLVER_NO_DECISION
    assert exc_info.value.market_id == "m1"


def test_provider_error_is_upstream_error(make_market) -> None:
    def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        raise ModelHTTPError(status_code=502, model_name="test/model", body="bad gateway")

    with pytest.raises(ResolverUpstreamError) as exc_info:
        asyncio.run(_resolver(model).resolve(make_market("m1")))

    assert isinstance(exc_info.value.__cause__, ModelHTTPError)


def test_invalid_payload_is_malformed_response(make_market) -> None:
    def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return _submit({**DECISION_ARGS, "outcome": "MAYBE"})

    with pytest.raises(ResolverMalformedResponseError):
        asyncio.run(_resolver(model).resolve(make_market("m1")))


def test_disallowed_outcome_is_retried(make_market) -> None:
    responses = iter(
        [
            _submit({**DECISION_ARGS, "outcome": "EARLY"}),
            _submit({**DECISION_ARGS, "outcome": "NO"}),
        ]
    )

    def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return next(responses)

    market = make_market(
        "m1", allowed_outcomes=[ResolutionOutcome.YES, ResolutionOutcome.NO]
    )
    result = asyncio.run(_resolver(model).resolve(market))

    assert result.submission.outcome == ResolutionOutcome.NO


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(1.7, 1.0), (-0.2, 0.0), ("0.35", 0.35), ("high", 0.0), (None, 0.0), (float("nan"), 0.0)],
)
def test_decision_confidence_is_clamped(raw, expected) -> None:
    decision = ResolutionDecision(outcome="NO", reasoning=None, confidence=raw)

    assert decision.confidence == expected
    assert decision.reasoning == ""
    assert decision.sources == []


def test_prompts_render_market_rules(make_market) -> None:
    market = make_market("m1")

    system_prompt = build_system_prompt(market, NOW)
    user_prompt = build_user_prompt(market)

    assert "Market ID: m1" in system_prompt
    assert "1. https://example.com/official" in system_prompt
    assert "1. Retractions within 24h count." in system_prompt
    assert "- EARLY" in system_prompt
    assert "Current Time: Sun, 01 Feb 2026 12:00:00 GMT" in system_prompt
    assert f'"{market.question}"' in user_prompt
    assert SUBMIT_RESOLUTION_TOOL in user_prompt


def test_format_timestamp_converts_to_utc() -> None:
    value = datetime.fromisoformat("2024-11-05T18:59:59-05:00")

    assert format_timestamp(value) == "Tue, 05 Nov 2024 23:59:59 GMT"
    assert format_timestamp(datetime(2024, 1, 1, tzinfo=timezone.utc)).endswith("00:00:00 GMT")


def test_agent_build_failure_is_upstream_error(make_market, monkeypatch) -> None:
    def model(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        return _submit(DECISION_ARGS)

    def broken_agent():
        raise TypeError("unexpected keyword argument")

    resolver = _resolver(model)
    monkeypatch.setattr(resolver._factory, "_create_fn", broken_agent)

    with pytest.raises(ResolverUpstreamError) as exc_info:
        asyncio.run(resolver.resolve(make_market("m1")))

    assert exc_info.value.code == ResolutionErrorCode.RESOLVER_UPSTREAM_ERROR
    assert isinstance(exc_info.value.__cause__, TypeError)
