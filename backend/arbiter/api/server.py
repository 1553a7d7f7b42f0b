"""FastAPI server for the Arbiter resolution system."""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from arbiter import __version__
from arbiter.agents.resolver import AIResolver
from arbiter.config import Settings
from arbiter.events import EventBus
from arbiter.exceptions import ResolutionError, ResolutionErrorCode
from arbiter.models import Market, ResolutionRecord, ResolutionSubmission, utc_now
from arbiter.observability import instrument_app, register_event_logging
from arbiter.resolution import ResolutionService, Resolver
from arbiter.scheduler import ResolutionScheduler
from arbiter.storage import MarketRegistry, ResolutionStore, load_markets

logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    ResolutionErrorCode.MARKET_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ResolutionErrorCode.ALREADY_RESOLVED: status.HTTP_409_CONFLICT,
    ResolutionErrorCode.ALREADY_PROCESSING: status.HTTP_409_CONFLICT,
}


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def _http_error(error: ResolutionError) -> HTTPException:
    return HTTPException(
        status_code=_ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail={"error": str(error), "code": error.code},
    )


def _resolution_summary(record: ResolutionRecord | None) -> dict[str, Any] | None:
    if record is None:
        return None
    return {
        "marketId": record.market_id,
        "outcome": record.outcome,
        "resolvedAt": record.resolved_at.isoformat(),
    }


def create_app(
    registry: MarketRegistry,
    service: ResolutionService,
    scheduler: ResolutionScheduler | None = None,
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """Build the API around already-wired components.

    The scheduler, when given, runs for the lifetime of the app.
    """
    started_at = utc_now()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.stop()

    app = FastAPI(title="Arbiter Resolution API", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms} ms)"
        )
        return response

    @app.get("/health")
    async def health():
        """System health, scheduler status and resolution stats."""
        resolutions = service.store.get_all()
        last = max(resolutions, key=lambda r: r.resolved_at) if resolutions else None
        return {
            "status": "healthy",
            "timestamp": utc_now().isoformat(),
            "uptime": started_at.isoformat(),
            "scheduler": _dump(scheduler.get_status()) if scheduler else None,
            "stats": {
                "totalMarkets": len(registry),
                "totalResolutions": len(resolutions),
                "lastResolution": _resolution_summary(last),
            },
        }

    @app.get("/markets")
    async def list_markets():
        markets = registry.get_all()
        return {"markets": [_dump(m) for m in markets], "count": len(markets)}

    @app.get("/market/{market_id}")
    async def get_market(market_id: str):
        market = await registry.get(market_id)
        if market is None:
            raise HTTPException(status_code=404, detail="Market not found")
        return _dump(market)

    @app.post("/markets", status_code=status.HTTP_201_CREATED)
    async def create_market(market: Market):
        registry.add(market)
        logger.info(f"Market created: {market.id}")
        return {"success": True, "market": _dump(market)}

    @app.post("/trigger/{market_id}", status_code=status.HTTP_202_ACCEPTED)
    async def trigger_resolution(market_id: str):
        """Start an AI resolution without waiting for it."""
        if await registry.get(market_id) is None:
            raise HTTPException(status_code=404, detail="Market not found")

        existing = service.store.get(market_id)
        if existing is not None:
            raise HTTPException(
                status_code=409,
                detail={"error": "Market already resolved", "resolution": _dump(existing)},
            )

        if service.is_processing(market_id):
            raise HTTPException(status_code=409, detail="Market resolution already in progress")

        logger.info(f"Manual resolution triggered for {market_id}")
        service.resolve_in_background(market_id)

        return {
            "success": True,
            "message": f"Resolution triggered for market {market_id}",
            "status": "processing",
        }

    @app.post("/resolve", status_code=status.HTTP_201_CREATED)
    async def submit_resolution(submission: ResolutionSubmission):
        """Record a resolution computed outside this service."""
        try:
            record = await service.submit_external(submission)
        except ResolutionError as e:
            raise _http_error(e) from e
        return {"success": True, "resolution": _dump(record)}

    @app.get("/resolutions")
    async def list_resolutions():
        resolutions = service.store.get_all()
        return {"resolutions": [_dump(r) for r in resolutions], "count": len(resolutions)}

    @app.get("/resolution/{market_id}")
    async def get_resolution(market_id: str):
        record = service.store.get(market_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Resolution not found")
        return _dump(record)

    return app


def create_app_from_settings(settings: Settings, resolver: Resolver | None = None) -> FastAPI:
    """Wire the event bus, storage, resolver, service and scheduler from settings."""
    event_bus = EventBus()
    register_event_logging(event_bus)

    registry = MarketRegistry(load_markets(settings.markets_path))
    store = ResolutionStore(event_bus)
    resolver = resolver or AIResolver(
        config=settings.resolver,
        api_key=settings.openrouter_api_key,
    )
    service = ResolutionService(
        resolver=resolver,
        registry=registry,
        store=store,
        event_bus=event_bus,
        confidence_threshold=settings.resolution.confidence_threshold,
    )
    scheduler = ResolutionScheduler(
        registry=registry,
        service=service,
        event_bus=event_bus,
        interval_ms=settings.scheduler.interval_ms,
    )

    app = create_app(registry, service, scheduler, cors_origins=settings.api.cors_origins)
    if settings.logfire_token:
        instrument_app(app)
    return app
