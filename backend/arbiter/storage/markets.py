"""In-memory market registry, optionally seeded from data/markets.yaml."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

import yaml
from pydantic import TypeAdapter

from arbiter.models import Market, MarketStatus, utc_now

logger = logging.getLogger(__name__)

_market_list = TypeAdapter(list[Market])


class MarketRegistry:
    """Holds market records keyed by id.

    Reads return ``None``/empty for unknown ids and status updates for unknown
    ids are ignored; nothing here raises.
    """

    def __init__(
        self,
        markets: Iterable[Market] = (),
        clock: Callable[[], datetime] = utc_now,
    ):
        self._markets: dict[str, Market] = {}
        self._clock = clock
        for market in markets:
            self.add(market)

    async def get(self, market_id: str) -> Market | None:
        return self._markets.get(market_id)

    async def get_closed(self) -> list[Market]:
        """Markets still ACTIVE whose close time has passed."""
        now = self._clock()
        return [
            market
            for market in self._markets.values()
            if market.status == MarketStatus.ACTIVE and market.close_time <= now
        ]

    async def get_unresolved(self) -> list[Market]:
        return [
            market
            for market in self._markets.values()
            if market.status in (MarketStatus.CLOSED, MarketStatus.ACTIVE)
        ]

    async def update_status(self, market_id: str, status: MarketStatus) -> None:
        """Replace the stored market with a copy carrying ``status``."""
        market = self._markets.get(market_id)
        if market is None:
            logger.debug(f"Ignoring status update for unknown market {market_id}")
            return

        self._markets[market_id] = market.model_copy(update={"status": status})
        logger.debug(f"Market {market_id}: {market.status} -> {status}")

    def add(self, market: Market) -> None:
        """Insert or replace a market by id."""
        self._markets[market.id] = market

    def get_all(self) -> list[Market]:
        return list(self._markets.values())

    def __len__(self) -> int:
        return len(self._markets)


def load_markets(path: Path) -> list[Market]:
    """Load a YAML list of markets. Missing file yields an empty list."""
    if not path.exists():
        logger.warning(
            f"Markets file not found: {path}. "
            "Run 'python -m arbiter init' to create it."
        )
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse markets file {path}: {e}")
        raise

    if not raw:
        logger.warning(f"Empty markets file: {path}")
        return []

    markets = _market_list.validate_python(raw)
    logger.info(f"Loaded {len(markets)} markets from {path}")
    return markets
