from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .analytics.aggregator import compute_analytics
from .analytics.store import get_events
from .cache.config import DEFAULT_CACHE_CONFIG
from .cache.lookup import CacheLookup, get_lookup_stats
from .cache.seed import seed_store
from .cache.store import build_store, utcnow
from .chat.models import ChatRequest
from .chat.multiplexer import ChatMultiplexer
from .errors import DiscoveryError, ProviderUnavailable, StoreUnavailable
from .extraction.extractor import extract_restaurants
from .places.client import PlacesClient
from .places.discovery import DiscoveryReport, DiscoveryRequest, discover_neighborhood
from .search.models import ExtractRequest, ExtractResponse, SearchRequest, SearchResponse
from .search.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)

_store = build_store(DEFAULT_CACHE_CONFIG)
_lookup = CacheLookup(_store)
_places = PlacesClient(_store)
_orchestrator = SearchOrchestrator(_lookup, _places)
_multiplexer = ChatMultiplexer(_orchestrator)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if DEFAULT_CACHE_CONFIG.seed_csv:
        try:
            report = await seed_store(_store, DEFAULT_CACHE_CONFIG.seed_csv)
            logger.info("Seed import finished: %s", report)
        except (OSError, ValueError):
            logger.error("Could not seed the cache from %s", DEFAULT_CACHE_CONFIG.seed_csv, exc_info=True)
    yield


app = FastAPI(title="Restaurant Discovery API", version="1.0.0", lifespan=lifespan)


def _status_for(exc: DiscoveryError) -> int:
    if isinstance(exc, StoreUnavailable):
        return 503
    if isinstance(exc, ProviderUnavailable):
        return 502
    return 500


@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
    logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/search", response_model=SearchResponse)
async def search(body: SearchRequest) -> SearchResponse:
    if body.neighborhoods:
        queries = [(body.query, body.neighborhood)] if body.neighborhood else []
        queries += [(body.query, nb) for nb in body.neighborhoods if nb != body.neighborhood]
        result = await _orchestrator.search_many(queries, body.filters)
    else:
        result = await _orchestrator.search(body.query, body.neighborhood, body.filters)

    return SearchResponse(
        restaurants=result.records,
        source=result.source,
        stale=result.stale,
        count=len(result.records),
        cached=result.source == "cache",
    )


@app.post("/chat")
async def chat(body: ChatRequest, request: Request) -> StreamingResponse:
    return StreamingResponse(
        _multiplexer.stream(body, request.is_disconnected),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.post("/extract", response_model=ExtractResponse)
def extract(body: ExtractRequest) -> ExtractResponse:
    records = extract_restaurants(body.text, _store.region)
    return ExtractResponse(restaurants=records, count=len(records))


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.post("/discover", response_model=DiscoveryReport)
async def discover(body: DiscoveryRequest) -> DiscoveryReport:
    return await discover_neighborhood(_places, body)


@app.get("/cache/stats")
async def cache_stats() -> dict:
    counts = await _store.counts(utcnow())
    return {**counts, **get_lookup_stats()}


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())
