"""Storage layer for Arbiter - in-process market and resolution state.

This package provides:
- Market registry (market records, closed/unresolved queries, status updates)
- Resolution store (one immutable resolution record per market)
- YAML seed loading for markets (data/markets.yaml)

All state lives in memory and is lost on restart.
"""

from .markets import MarketRegistry, load_markets
from .resolutions import ResolutionStore, generate_resolution_id

__all__ = [
    "MarketRegistry",
    "load_markets",
    "ResolutionStore",
    "generate_resolution_id",
]
