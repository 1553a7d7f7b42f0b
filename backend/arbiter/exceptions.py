"""Custom exceptions for market resolution."""

from enum import StrEnum


class ResolutionErrorCode(StrEnum):
    """Machine-readable failure codes."""

    MARKET_NOT_FOUND = "MARKET_NOT_FOUND"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    ALREADY_PROCESSING = "ALREADY_PROCESSING"
    RESOLVER_NO_DECISION = "RESOLVER_NO_DECISION"
    RESOLVER_UPSTREAM_ERROR = "RESOLVER_UPSTREAM_ERROR"
    RESOLVER_MALFORMED_RESPONSE = "RESOLVER_MALFORMED_RESPONSE"


class ResolutionError(Exception):
    """Base exception for resolution errors."""

    code: ResolutionErrorCode

    def __init__(
        self,
        message: str,
        code: ResolutionErrorCode | None = None,
        market_id: str | None = None,
    ):
        super().__init__(message)
        if code is not None:
            self.code = code
        self.market_id = market_id


class MarketNotFoundError(ResolutionError):
    """Resolution requested for an unknown market."""

    code = ResolutionErrorCode.MARKET_NOT_FOUND


class AlreadyResolvedError(ResolutionError):
    """A resolution record already exists for the market."""

    code = ResolutionErrorCode.ALREADY_RESOLVED


class AlreadyProcessingError(ResolutionError):
    """A resolution attempt is already in flight for the market."""

    code = ResolutionErrorCode.ALREADY_PROCESSING


class ResolverNoDecisionError(ResolutionError):
    """Resolver finished without submitting a decision."""

    code = ResolutionErrorCode.RESOLVER_NO_DECISION


class ResolverUpstreamError(ResolutionError):
    """The call to the model provider failed."""

    code = ResolutionErrorCode.RESOLVER_UPSTREAM_ERROR


class ResolverMalformedResponseError(ResolutionError):
    """Decision payload failed validation."""

    code = ResolutionErrorCode.RESOLVER_MALFORMED_RESPONSE
