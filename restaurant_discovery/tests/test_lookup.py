from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from restaurant_discovery.cache.lookup import CacheLookup, get_lookup_stats, search_terms
from restaurant_discovery.cache.store import InMemoryEntityStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _lookup_with(*records) -> CacheLookup:
    store = InMemoryEntityStore()
    for record in records:
        asyncio.run(store.upsert(record))
    return CacheLookup(store, clock=lambda: NOW)


def test_search_terms_drop_short_words():
    assert search_terms("Pizza de la casa") == ("pizza", "casa")
    assert search_terms("  ") == ()


def test_fresh_record_is_a_hit(make_record):
    lookup = _lookup_with(make_record("a"))
    records = asyncio.run(lookup.lookup("italiano"))
    assert [r.place_id for r in records] == ["a"]
    assert get_lookup_stats()["hits"] == 1


def test_expired_record_is_a_miss(make_record):
    expired = make_record("a", cached_at=NOW - timedelta(days=8), expires_at=NOW - timedelta(days=1))
    lookup = _lookup_with(expired)

    assert asyncio.run(lookup.lookup("italiano")) == []
    stats = get_lookup_stats()
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 0.0


def test_include_stale_returns_expired_without_counting(make_record):
    expired = make_record("a", cached_at=NOW - timedelta(days=8), expires_at=NOW - timedelta(days=1))
    lookup = _lookup_with(expired)

    records = asyncio.run(lookup.lookup("italiano", include_stale=True))

    assert [r.place_id for r in records] == ["a"]
    assert get_lookup_stats() == {"hits": 0, "misses": 0, "hit_rate": 0.0}


def test_freshness_boundary_is_exclusive(make_record):
    # expires_at == now is already stale
    edge = make_record("a", cached_at=NOW - timedelta(days=7), expires_at=NOW)
    lookup = _lookup_with(edge)
    assert asyncio.run(lookup.lookup("italiano")) == []


def test_neighborhood_narrows_lookup(make_record):
    lookup = _lookup_with(
        make_record("a", neighborhood="Chapinero"),
        make_record("b", neighborhood="Usaquén"),
    )
    records = asyncio.run(lookup.lookup("italiano", "usaquén"))
    assert [r.place_id for r in records] == ["b"]


def test_query_matches_name_when_search_query_differs(make_record):
    lookup = _lookup_with(make_record("a", name="Andrés Carne de Res", search_query="carne asada"))
    records = asyncio.run(lookup.lookup("andrés"))
    assert [r.place_id for r in records] == ["a"]
