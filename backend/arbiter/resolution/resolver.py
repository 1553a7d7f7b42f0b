"""Contract for anything that can propose a market resolution."""

from typing import Protocol, runtime_checkable

from arbiter.models import Market, ResolverResult


@runtime_checkable
class Resolver(Protocol):
    """Inspects a market and proposes an outcome with confidence and sources.

    Implementations raise ``ResolutionError`` subclasses on failure.
    """

    async def resolve(self, market: Market) -> ResolverResult: ...
