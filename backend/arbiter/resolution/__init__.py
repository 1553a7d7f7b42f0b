"""Resolution orchestration: the resolver contract and the resolution service."""

from .resolver import Resolver
from .service import ResolutionService, apply_confidence_threshold

__all__ = ["Resolver", "ResolutionService", "apply_confidence_threshold"]
