"""
Hybrid search orchestrator.

Responsibilities:
- Answer a query from fresh cache when possible (cache-aside, never live-first).
- Fall back to the live place-search provider on a miss.
- Degrade to stale cache when the provider is down, and to an empty result
  (no results, not an error) when that is empty too.
- Apply the in-memory filters (price, neighborhood, rating, open now).
"""
from __future__ import annotations

import asyncio
import logging
import time

from ..analytics.store import record_event
from ..cache.lookup import CacheLookup
from ..cache.models import RestaurantRecord, SearchFilters, SearchResult
from ..errors import ProviderUnavailable
from ..places.client import PlacesClient

logger = logging.getLogger(__name__)


def apply_filters(
    records: list[RestaurantRecord],
    filters: SearchFilters | None,
) -> list[RestaurantRecord]:
    """AND together every filter that is set."""
    if filters is None:
        return list(records)

    result = list(records)

    if filters.price_levels:
        allowed = set(filters.price_levels)
        result = [r for r in result if r.price_level in allowed]

    if filters.neighborhood:
        needle = filters.neighborhood.strip().lower()
        result = [
            r for r in result
            if needle in (r.formatted_address or "").lower()
            or needle in (r.neighborhood or "").lower()
        ]

    if filters.min_rating is not None:
        result = [r for r in result if r.rating is not None and r.rating >= filters.min_rating]

    if filters.open_now is not None:
        result = [r for r in result if r.open_now is filters.open_now]

    return result


class SearchOrchestrator:
    def __init__(
        self,
        lookup: CacheLookup,
        places: PlacesClient,
        max_results: int = 10,
    ) -> None:
        self.lookup = lookup
        self.places = places
        self.max_results = max_results

    async def search(
        self,
        query: str,
        neighborhood: str | None = None,
        filters: SearchFilters | None = None,
    ) -> SearchResult:
        start_time = time.time()

        # --- Tier 1: fresh cache ---
        cached = await self.lookup.lookup(query, neighborhood)
        if cached:
            result = SearchResult(records=apply_filters(cached, filters), source="cache")
        else:
            # --- Tier 2: live provider ---
            try:
                live = await self.places.fetch_live(query, neighborhood, self.max_results)
                result = SearchResult(records=apply_filters(live, filters), source="live")
            except ProviderUnavailable:
                # --- Tier 3: stale cache ---
                logger.warning(
                    "Live search failed for %r, falling back to stale cache", query, exc_info=True,
                )
                stale = await self.lookup.lookup(query, neighborhood, include_stale=True)
                result = SearchResult(
                    records=apply_filters(stale, filters), source="cache", stale=True,
                )

        if result.is_empty:
            logger.info("No results for %r (%s)", query, neighborhood)

        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        record_event("search", {
            "query": query,
            "neighborhood": neighborhood,
            "price_levels": [p.value for p in filters.price_levels or []] if filters else [],
            "min_rating": filters.min_rating if filters else None,
            "open_now": filters.open_now if filters else None,
            "source": result.source,
            "stale": result.stale,
            "results_returned": len(result.records),
            "response_time_ms": elapsed_ms,
        })
        return result

    async def search_many(
        self,
        queries: list[tuple[str, str | None]],
        filters: SearchFilters | None = None,
    ) -> SearchResult:
        """Run several ``(query, neighborhood)`` searches concurrently and
        merge them, first occurrence of each ``place_id`` wins."""
        if not queries:
            return SearchResult(records=[], source="cache")

        results = await asyncio.gather(
            *(self.search(query, neighborhood, filters) for query, neighborhood in queries)
        )

        seen: set[str] = set()
        merged: list[RestaurantRecord] = []
        for result in results:
            for record in result.records:
                if record.place_id not in seen:
                    seen.add(record.place_id)
                    merged.append(record)

        source = "live" if any(r.source == "live" for r in results) else "cache"
        stale = any(r.stale for r in results) and source == "cache"
        return SearchResult(records=merged, source=source, stale=stale)
