"""Resolver Agent: asks an OpenRouter-hosted model to decide a market's outcome."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from pydantic_ai import Agent, ModelRetry, RunContext, ToolOutput
from pydantic_ai.exceptions import UnexpectedModelBehavior
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from arbiter.agents.agent_factory import AgentFactory
from arbiter.config import ResolverConfig
from arbiter.exceptions import (
    ResolverMalformedResponseError,
    ResolverNoDecisionError,
    ResolverUpstreamError,
)
from arbiter.llm_providers import get_model_string
from arbiter.models import Market, ResolutionSubmission, ResolverResult, utc_now

from .models import ResolutionDecision, ResolverDependencies
from .prompts import build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)

SUBMIT_RESOLUTION_TOOL = "submit_resolution"

ResolverOutput = ResolutionDecision | str


class AIResolver:
    """``Resolver`` backed by a pydantic-ai agent.

    The model must call ``submit_resolution``; a plain-text answer counts as
    no decision.
    """

    def __init__(
        self,
        config: ResolverConfig | None = None,
        api_key: str = "",
        model: Model | str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.config = config or ResolverConfig()
        self._model = model
        self._clock = clock
        self._factory: AgentFactory[ResolverDependencies, ResolverOutput] = AgentFactory(
            create_fn=self._create_agent,
            register_tools_fn=_register_tools,
            api_keys={"OPENROUTER_API_KEY": api_key} if model is None else None,
        )

    @property
    def model_name(self) -> str:
        return self.config.model

    def _create_agent(self) -> Agent[ResolverDependencies, ResolverOutput]:
        model_settings = ModelSettings(
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
            timeout=self.config.timeout_seconds,
        )
        if self.config.web_search:
            model_settings["extra_body"] = {
                "plugins": [{"id": "web", "max_results": self.config.max_web_results}]
            }

        return Agent(
            model=self._model
            or get_model_string(self.config.model, web_search=self.config.web_search),
            output_type=[
                ToolOutput(
                    ResolutionDecision,
                    name=SUBMIT_RESOLUTION_TOOL,
                    description=(
                        "Submit the final resolution decision for a prediction market. "
                        "Call exactly once after gathering evidence."
                    ),
                ),
                str,
            ],
            deps_type=ResolverDependencies,
            model_settings=model_settings,
            retries=self.config.output_retries,
        )

    def get_agent(self) -> Agent[ResolverDependencies, ResolverOutput]:
        return self._factory.get_agent()

    async def resolve(self, market: Market) -> ResolverResult:
        deps = ResolverDependencies(market=market, now=self._clock())

        logger.info(f"Resolver: asking {self.config.model} about {market.id}")
        try:
            agent = self.get_agent()
            result = await agent.run(build_user_prompt(market), deps=deps)
        except UnexpectedModelBehavior as e:
            raise ResolverMalformedResponseError(
                f"Malformed decision payload: {e}", market_id=market.id
            ) from e
        except Exception as e:
            raise ResolverUpstreamError(
                f"Model call failed: {e}", market_id=market.id
            ) from e

        decision = result.output
        if not isinstance(decision, ResolutionDecision):
            raise ResolverNoDecisionError(
                f"Resolver did not call {SUBMIT_RESOLUTION_TOOL}", market_id=market.id
            )

        usage = result.usage()
        submission = ResolutionSubmission(
            market_id=market.id,
            outcome=decision.outcome,
            reasoning=decision.reasoning,
            sources=decision.sources,
            confidence=decision.confidence,
            resolved_at=utc_now(),
        )

        logger.info(
            f"Resolver: {market.id} -> {submission.outcome} "
            f"(confidence={submission.confidence:.2f}, sources={len(submission.sources)})"
        )
        return ResolverResult(
            submission=submission,
            model_used=self.config.model,
            prompt_tokens=usage.input_tokens or None,
            completion_tokens=usage.output_tokens or None,
        )


def _register_tools(agent: Agent[ResolverDependencies, ResolverOutput]) -> None:
    """Register the market prompt and decision checks on the agent."""

    @agent.system_prompt
    def market_prompt(ctx: RunContext[ResolverDependencies]) -> str:
        return build_system_prompt(ctx.deps.market, ctx.deps.now)

    @agent.output_validator
    def check_allowed_outcome(
        ctx: RunContext[ResolverDependencies], output: ResolverOutput
    ) -> ResolverOutput:
        if isinstance(output, ResolutionDecision):
            allowed = ctx.deps.market.allowed_outcomes
            if allowed and output.outcome not in allowed:
                raise ModelRetry(
                    f"Outcome {output.outcome} is not allowed for this market. "
                    f"Choose one of: {', '.join(allowed)}."
                )
        return output
