"""Domain models for markets and their resolutions.

Python attributes are snake_case; the JSON representation uses the camelCase
names of the public HTTP contract (``marketId``, ``closeTime``, ...). Both
spellings are accepted when validating input.
"""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResolutionOutcome(StrEnum):
    """Final outcome values a market can resolve to."""

    YES = "YES"
    NO = "NO"
    UNKNOWN = "UNKNOWN"
    EARLY = "EARLY"


class MarketStatus(StrEnum):
    """Market lifecycle: ACTIVE -> CLOSED -> RESOLVING -> RESOLVED."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    RESOLVING = "RESOLVING"
    RESOLVED = "RESOLVED"


class ArbiterModel(BaseModel):
    """Base model with camelCase aliases, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class MarketRules(ArbiterModel):
    """Rules block the resolver must treat as binding."""

    description: str
    resolution_criteria: str
    primary_sources: list[str] = Field(default_factory=list)
    edge_cases: list[str] = Field(default_factory=list)


class Market(ArbiterModel):
    """A single prediction market question."""

    id: str = Field(min_length=1)
    question: str
    description: str
    category: str
    created_at: AwareDatetime
    close_time: AwareDatetime
    resolution_deadline: AwareDatetime
    status: MarketStatus
    rules: MarketRules
    allowed_outcomes: list[ResolutionOutcome]
    metadata: dict[str, Any] | None = None


class ResolutionSource(ArbiterModel):
    """Source consulted while resolving a market."""

    url: str
    title: str
    relevance: str


class ResolutionSubmission(ArbiterModel):
    """Outcome decision for a market, before persistence."""

    market_id: str = Field(min_length=1)
    outcome: ResolutionOutcome
    reasoning: str
    sources: list[ResolutionSource] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    resolved_at: AwareDatetime


class ResolutionMetadata(ArbiterModel):
    """Processing metadata attached to a submission when it is stored."""

    processing_time_ms: int = Field(ge=0)
    model_used: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class ResolutionRecord(ResolutionSubmission):
    """Persisted resolution. One per market, never mutated."""

    id: str
    processing_time_ms: int = Field(ge=0)
    model_used: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class ResolverResult(ArbiterModel):
    """What a resolver hands back for one market."""

    submission: ResolutionSubmission
    model_used: str
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
