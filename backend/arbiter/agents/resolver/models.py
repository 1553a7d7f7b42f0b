"""Data models for the Resolver agent."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from arbiter.models import Market, ResolutionOutcome, ResolutionSource


class ResolverDependencies(BaseModel):
    """Dependencies injected into the Resolver agent."""

    market: Market
    now: datetime


class ResolutionDecision(BaseModel):
    """Arguments of the submit_resolution tool."""

    outcome: ResolutionOutcome = Field(
        description=(
            "YES if the criteria are conclusively met, NO if conclusively not met, "
            "UNKNOWN if evidence is ambiguous or insufficient, EARLY if the market "
            "closed before the event could occur."
        )
    )
    reasoning: str = Field(
        description=(
            "What evidence was found, how it relates to the resolution criteria and "
            "why this outcome was chosen. Detailed enough for an audit."
        )
    )
    sources: list[ResolutionSource] = Field(
        default_factory=list,
        description="Every source consulted, including ones that conflicted.",
    )
    confidence: float = Field(
        description=(
            "Certainty from 0 to 1. 1.0 means clear evidence, 0.5 moderate; "
            "below 0.5 should usually be UNKNOWN."
        )
    )

    @field_validator("reasoning", mode="before")
    @classmethod
    def coerce_reasoning(cls, v: object) -> str:
        return "" if v is None else str(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v: object) -> float:
        """Coerce to a number in [0, 1]; anything unparseable counts as 0."""
        try:
            value = float(v)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 0.0
        if value != value:  # NaN
            return 0.0
        return max(0.0, min(1.0, value))
