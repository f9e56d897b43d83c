from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from .config import DEFAULT_CACHE_CONFIG, CacheConfig
from .models import RestaurantRecord
from .store import CacheQuery, EntityStore, utcnow

logger = logging.getLogger(__name__)

_hits: int = 0
_misses: int = 0


def search_terms(query: str, min_length: int = 3) -> tuple[str, ...]:
    """Split a free-text query into the words worth matching on."""
    return tuple(t for t in query.lower().split() if len(t) >= min_length)


class CacheLookup:
    """Read side of the cache-aside pattern.

    ``lookup`` never raises for a miss: an empty list is the miss signal.
    """

    def __init__(
        self,
        store: EntityStore,
        config: CacheConfig = DEFAULT_CACHE_CONFIG,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.config = config
        self.clock = clock

    def build_query(
        self,
        query: str,
        neighborhood: str | None = None,
        *,
        include_stale: bool = False,
    ) -> CacheQuery:
        text = query.strip()
        return CacheQuery(
            text=text or None,
            terms=search_terms(text, self.config.min_term_length),
            neighborhood=neighborhood or None,
            fresh_at=None if include_stale else self.clock(),
            limit=self.config.lookup_limit,
        )

    async def lookup(
        self,
        query: str,
        neighborhood: str | None = None,
        *,
        include_stale: bool = False,
    ) -> list[RestaurantRecord]:
        global _hits, _misses
        records = await self.store.read(
            self.build_query(query, neighborhood, include_stale=include_stale)
        )
        if include_stale:
            return records

        if records:
            _hits += 1
            logger.info("Cache hit for %r (%s): %d records", query, neighborhood, len(records))
        else:
            _misses += 1
            logger.info("Cache miss for %r (%s)", query, neighborhood)
        return records


def get_lookup_stats() -> dict:
    total = _hits + _misses
    return {
        "hits": _hits,
        "misses": _misses,
        "hit_rate": round(_hits / total * 100, 1) if total > 0 else 0.0,
    }


def reset_lookup_stats() -> None:
    global _hits, _misses
    _hits = 0
    _misses = 0
