"""Arbiter CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from arbiter import __version__
from arbiter.agents.resolver import AIResolver
from arbiter.config import get_settings
from arbiter.events import EventBus
from arbiter.observability import register_event_logging
from arbiter.resolution import ResolutionService
from arbiter.storage import MarketRegistry, ResolutionStore, load_markets

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Arbiter Configuration
# Operational parameters for the resolution service.
# API keys and secrets belong in the .env file, not here.

scheduler:
  interval_ms: 30000

resolution:
  confidence_threshold: 0.6

resolver:
  model: x-ai/grok-4.1-fast
  web_search: true
  max_web_results: 10
  temperature: 0.4
  max_tokens: 4096

api:
  host: 0.0.0.0
  port: 3000
"""

MARKETS_TEMPLATE = """# Arbiter markets
# Loaded into memory at startup. Status changes are not written back.

- id: market-trump-2024-election
  question: Will Donald Trump win the 2024 US Presidential Election?
  description: This market resolves to YES if Donald Trump wins the 2024 United States Presidential Election.
  category: Politics
  created_at: "2024-01-01T00:00:00Z"
  close_time: "2024-11-05T23:59:59Z"
  resolution_deadline: "2024-12-20T23:59:59Z"
  status: CLOSED
  rules:
    description: Resolution is based on the official certification of electoral votes by the United States Congress.
    resolution_criteria: >-
      The market resolves YES if Donald Trump is certified as the winner of the 2024
      Presidential Election by the United States Congress, receiving at least 270
      electoral votes. The market resolves NO if any other candidate wins.
    primary_sources:
      - https://www.archives.gov/electoral-college
      - https://www.congress.gov
      - https://apnews.com
      - https://www.reuters.com
    edge_cases:
      - If the election outcome is contested and goes to the House of Representatives, the final House decision determines resolution.
      - Recounts do not affect resolution unless they change the certified winner.
      - The market resolves based on certification, not projected winners on election night.
  allowed_outcomes: ["YES", "NO", "UNKNOWN", "EARLY"]

- id: market-btc-100k-jan-2026
  question: Will Bitcoin reach $100,000 by January 31, 2026?
  description: This market resolves to YES if the price of Bitcoin (BTC) reaches or exceeds $100,000 USD at any point before the resolution deadline.
  category: Crypto
  created_at: "2025-12-01T00:00:00Z"
  close_time: "2026-01-31T23:59:59Z"
  resolution_deadline: "2026-02-02T23:59:59Z"
  status: ACTIVE
  rules:
    description: Resolution is based on the spot price of BTC/USD on major exchanges.
    resolution_criteria: >-
      The market resolves YES if Bitcoin's spot price reaches or exceeds $100,000 USD on
      Coinbase, Binance, or Kraken, sustained for at least 1 minute on the exchange's
      official price feed. Screenshots or archived exchange data are valid evidence.
    primary_sources:
      - https://www.coinbase.com
      - https://www.binance.com
      - https://www.kraken.com
      - https://coinmarketcap.com
      - https://www.coingecko.com
    edge_cases:
      - Flash crashes or spikes later reversed or marked erroneous by the exchange do not count.
      - If all listed exchanges are unavailable, the CoinMarketCap or CoinGecko aggregate price is used.
      - Price must be from spot markets, not futures or derivatives.
  allowed_outcomes: ["YES", "NO", "UNKNOWN", "EARLY"]

- id: market-fed-rate-cut-jan-2026
  question: Will the Federal Reserve cut interest rates at the January 2026 FOMC meeting?
  description: This market resolves to YES if the Federal Reserve announces a reduction in the federal funds target rate at the January 2026 FOMC meeting.
  category: Economics
  created_at: "2025-12-15T00:00:00Z"
  close_time: "2026-01-29T19:00:00Z"
  resolution_deadline: "2026-01-30T23:59:59Z"
  status: ACTIVE
  rules:
    description: Resolution is based on the official FOMC statement released after the January 2026 meeting.
    resolution_criteria: >-
      The market resolves YES if the Federal Reserve announces any reduction (of any size)
      to the federal funds target rate range. The market resolves NO if the rate is held
      steady or increased.
    primary_sources:
      - https://www.federalreserve.gov
      - https://www.reuters.com
      - https://www.bloomberg.com
    edge_cases:
      - Emergency rate decisions before the scheduled meeting count only if they explicitly replace the January decision.
      - If the meeting is postponed, resolution is based on the rescheduled meeting.
      - Technical corrections or clarifications to the announcement do not change the resolution.
  allowed_outcomes: ["YES", "NO", "UNKNOWN", "EARLY"]

- id: market-superbowl-lix-chiefs
  question: Will the Kansas City Chiefs win Super Bowl LIX?
  description: This market resolves to YES if the Kansas City Chiefs win Super Bowl LIX.
  category: Sports
  created_at: "2025-09-01T00:00:00Z"
  close_time: "2026-02-09T23:30:00Z"
  resolution_deadline: "2026-02-10T23:59:59Z"
  status: ACTIVE
  rules:
    description: Resolution is based on the official result of Super Bowl LIX.
    resolution_criteria: >-
      The market resolves YES if the Kansas City Chiefs are declared the official winner of
      Super Bowl LIX by the NFL. The market resolves NO if any other team wins or if the
      Chiefs do not participate.
    primary_sources:
      - https://www.nfl.com
      - https://www.espn.com
      - https://www.cbssports.com
    edge_cases:
      - If the game is cancelled and not rescheduled, the market resolves UNKNOWN.
      - If the result is overturned after the game, the final official NFL ruling is used.
      - Overtime victories count as a valid win.
  allowed_outcomes: ["YES", "NO", "UNKNOWN", "EARLY"]
"""


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from arbiter.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory and configuration files."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        for name, template in (
            ("config.yaml", CONFIG_TEMPLATE),
            ("markets.yaml", MARKETS_TEMPLATE),
        ):
            path = data_dir / name
            if path.exists():
                logger.info(f"File already exists: {path}")
                continue
            path.write_text(template, encoding="utf-8")
            logger.info(f"Created template: {path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Add OPENROUTER_API_KEY to the .env file")
        print("2. Review data/config.yaml and data/markets.yaml")
        print("3. Run 'python -m arbiter config' to verify configuration")
        print("4. Run 'python -m arbiter serve' to start the service\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Arbiter Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Scheduler:")
        print(f"  Interval: {settings.scheduler.interval_ms} ms\n")

        print("Resolution:")
        print(f"  Confidence Threshold: {settings.resolution.confidence_threshold}\n")

        print("Resolver:")
        print(f"  Model: {settings.resolver.model}")
        print(f"  Web Search: {settings.resolver.web_search}")
        print(f"  Max Web Results: {settings.resolver.max_web_results}")
        print(f"  Temperature: {settings.resolver.temperature}")
        print(f"  Max Tokens: {settings.resolver.max_tokens}\n")

        print("API:")
        print(f"  Listen: {settings.api.host}:{settings.api.port}\n")

        print("API Keys:")
        print(f"  OpenRouter: {'✓ Set' if settings.openrouter_api_key else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def cmd_markets(args: argparse.Namespace) -> int:
    """List markets from the seed file."""
    try:
        settings = get_settings()
        markets = load_markets(settings.markets_path)

        print(f"\n=== Markets ({len(markets)}) ===\n")
        if not markets:
            print("  (None)\n")
            return 0

        for market in markets:
            print(f"  {market.id}")
            print(f"    {market.question}")
            print(f"    Status: {market.status}  Closes: {market.close_time.isoformat()}")
        print()
        return 0

    except Exception as e:
        logger.error(f"Failed to list markets: {e}")
        print(f"\n❌ Failed to list markets: {e}\n")
        return 1


async def _resolve_once(market_id: str):
    settings = get_settings()
    event_bus = EventBus()
    register_event_logging(event_bus)

    registry = MarketRegistry(load_markets(settings.markets_path))
    service = ResolutionService(
        resolver=AIResolver(config=settings.resolver, api_key=settings.openrouter_api_key),
        registry=registry,
        store=ResolutionStore(event_bus),
        event_bus=event_bus,
        confidence_threshold=settings.resolution.confidence_threshold,
    )
    return await service.resolve_market(market_id)


def cmd_resolve(args: argparse.Namespace) -> int:
    """Run one AI resolution for a market from the seed file."""
    _init_logfire()

    try:
        market_id = args.market_id
        print("\n=== Market Resolution ===\n")
        print(f"Market ID: {market_id}\n")

        record = asyncio.run(_resolve_once(market_id))
        if record is None:
            print("No resolution recorded.\n")
            return 1

        print("✓ Resolution complete\n")
        print(f"Outcome: {record.outcome}")
        print(f"Confidence: {record.confidence:.0%}")
        print(f"Model: {record.model_used}")
        print(f"Processing Time: {record.processing_time_ms} ms")
        if record.prompt_tokens is not None:
            print(f"Tokens: {record.prompt_tokens} prompt / {record.completion_tokens} completion")
        print(f"\nReasoning:\n{record.reasoning}\n")

        if record.sources:
            print("Sources:")
            for source in record.sources:
                print(f"  • {source.title} - {source.url}")
            print()

        return 0

    except Exception as e:
        logger.error(f"Resolution failed: {e}", exc_info=True)
        print(f"\n❌ Resolution failed: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server with the resolution scheduler."""
    try:
        import uvicorn

        from arbiter.api.server import create_app_from_settings

        _init_logfire()

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()

        print("\n=== Arbiter Resolution Service ===\n")
        print(f"Version: {__version__}")
        print(f"Server: http://{settings.api.host}:{settings.api.port}")
        print(f"Model: {settings.resolver.model}")
        print(f"Scheduler: {settings.scheduler.interval_ms / 1000:g}s interval")
        print(f"Threshold: {settings.resolution.confidence_threshold} minimum confidence\n")

        app = create_app_from_settings(settings)
        uvicorn.run(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="debug" if args.debug else settings.log_level.lower(),
        )
        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Arbiter: AI resolution service for prediction markets",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Arbiter {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory, configuration and demo markets",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_markets = subparsers.add_parser(
        "markets",
        help="List markets from data/markets.yaml",
    )
    parser_markets.set_defaults(func=cmd_markets)

    parser_resolve = subparsers.add_parser(
        "resolve",
        help="Resolve one market with the AI resolver",
    )
    parser_resolve.add_argument("market_id", help="Market ID to resolve")
    parser_resolve.set_defaults(func=cmd_resolve)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Start the API server and resolution scheduler",
    )
    parser_serve.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
