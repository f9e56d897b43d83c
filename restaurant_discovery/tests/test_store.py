from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from restaurant_discovery.cache.config import CacheConfig
from restaurant_discovery.cache.store import (
    CacheQuery,
    InMemoryEntityStore,
    SupabaseEntityStore,
    build_store,
)
from restaurant_discovery.errors import StoreUnavailable, StoreWriteFailed

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _run(coro):
    return asyncio.run(coro)


class TestInMemoryStore:
    def test_upsert_then_read(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("a")))
        records = _run(store.read(CacheQuery(text="italiano")))
        assert [r.place_id for r in records] == ["a"]

    def test_upsert_is_idempotent(self, make_record):
        store = InMemoryEntityStore()
        record = make_record("a")
        _run(store.upsert(record))
        _run(store.upsert(record))
        assert len(store) == 1
        assert _run(store.get("a")) == record

    def test_last_write_wins(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("a", name="Viejo")))
        _run(store.upsert(make_record("a", name="Nuevo")))
        assert _run(store.get("a")).name == "Nuevo"

    def test_concurrent_upserts_same_place(self, make_record):
        store = InMemoryEntityStore()

        async def _write_all():
            await asyncio.gather(*(store.upsert(make_record("a", rating=r)) for r in (3.0, 4.0, 5.0)))

        _run(_write_all())
        assert len(store) == 1
        assert _run(store.get("a")).rating in (3.0, 4.0, 5.0)

    def test_rejects_missing_timestamps(self, make_record):
        store = InMemoryEntityStore()
        with pytest.raises(StoreWriteFailed):
            _run(store.upsert(make_record("a", cached_at=None, expires_at=None)))
        assert len(store) == 0

    def test_rejects_location_outside_region(self, make_record):
        store = InMemoryEntityStore()
        # Medellín
        with pytest.raises(StoreWriteFailed) as exc_info:
            _run(store.upsert(make_record("a", location={"lat": 6.24, "lng": -75.58})))
        assert exc_info.value.place_id == "a"

    def test_fresh_read_excludes_expired(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("fresh")))
        _run(store.upsert(make_record(
            "old", cached_at=NOW - timedelta(days=10), expires_at=NOW - timedelta(days=3),
        )))

        fresh = _run(store.read(CacheQuery(fresh_at=NOW)))
        everything = _run(store.read(CacheQuery()))

        assert [r.place_id for r in fresh] == ["fresh"]
        assert {r.place_id for r in everything} == {"fresh", "old"}

    def test_neighborhood_is_exact_and_case_insensitive(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("a", neighborhood="Chapinero")))
        _run(store.upsert(make_record("b", neighborhood="Chapinero Alto")))

        records = _run(store.read(CacheQuery(neighborhood="chapinero")))
        assert [r.place_id for r in records] == ["a"]

    def test_min_rating_excludes_unrated(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("good", rating=4.6)))
        _run(store.upsert(make_record("low", rating=3.1)))
        _run(store.upsert(make_record("unrated", rating=None)))

        records = _run(store.read(CacheQuery(min_rating=4.0)))
        assert [r.place_id for r in records] == ["good"]

    def test_terms_match_name_cuisine_or_address(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("a", name="La Trattoria", search_query="otra")))
        _run(store.upsert(make_record("b", cuisine="sushi", search_query="otra")))

        by_name = _run(store.read(CacheQuery(terms=("trattoria",))))
        by_cuisine = _run(store.read(CacheQuery(terms=("sushi",))))

        assert [r.place_id for r in by_name] == ["a"]
        assert [r.place_id for r in by_cuisine] == ["b"]

    def test_ordered_by_rating_with_limit(self, make_record):
        store = InMemoryEntityStore()
        for pid, rating in [("a", 3.9), ("b", 4.8), ("c", 4.2)]:
            _run(store.upsert(make_record(pid, rating=rating)))

        records = _run(store.read(CacheQuery(limit=2)))
        assert [r.place_id for r in records] == ["b", "c"]

    def test_capacity_evicts_oldest(self, make_record):
        store = InMemoryEntityStore(max_records=2)
        _run(store.upsert(make_record("old", cached_at=NOW - timedelta(days=3))))
        _run(store.upsert(make_record("mid", cached_at=NOW - timedelta(days=2))))
        _run(store.upsert(make_record("new", cached_at=NOW - timedelta(days=1))))

        assert len(store) == 2
        assert _run(store.get("old")) is None

    def test_counts(self, make_record):
        store = InMemoryEntityStore()
        _run(store.upsert(make_record("fresh")))
        _run(store.upsert(make_record(
            "old", cached_at=NOW - timedelta(days=10), expires_at=NOW - timedelta(days=3),
        )))
        assert _run(store.counts(NOW)) == {"total": 2, "fresh": 1, "stale": 1}


class TestSupabaseStore:
    def _builder(self, rows=None, count=None, error=None):
        builder = MagicMock()
        for method in ("select", "gt", "ilike", "gte", "or_", "order", "limit", "eq", "upsert"):
            getattr(builder, method).return_value = builder
        if error is not None:
            builder.execute.side_effect = error
        else:
            builder.execute.return_value = MagicMock(data=rows or [], count=count)
        client = MagicMock()
        client.table.return_value = builder
        return client, builder

    def test_from_config_requires_credentials(self):
        with pytest.raises(StoreUnavailable):
            SupabaseEntityStore.from_config(CacheConfig(supabase_url="", supabase_key=""))

    def test_build_store_defaults_to_memory(self):
        assert isinstance(build_store(CacheConfig(backend="memory")), InMemoryEntityStore)

    def test_read_builds_filters_and_parses_rows(self, make_record):
        row = make_record("a").model_dump(mode="json")
        client, builder = self._builder(rows=[row])
        store = SupabaseEntityStore(client)

        records = _run(store.read(CacheQuery(
            text="italiano", terms=("italiano",), neighborhood="Chapinero",
            fresh_at=NOW, min_rating=4.0, limit=5,
        )))

        assert [r.place_id for r in records] == ["a"]
        client.table.assert_called_with("restaurant_cache")
        builder.gt.assert_called_once_with("expires_at", "2026-03-01T12:00:00Z")
        builder.ilike.assert_called_once_with("neighborhood", "Chapinero")
        builder.gte.assert_called_once_with("rating", 4.0)
        or_clause = builder.or_.call_args[0][0]
        assert "search_query.ilike.*italiano*" in or_clause
        assert "name.ilike.*italiano*" in or_clause
        builder.order.assert_called_once_with("rating", desc=True)
        builder.limit.assert_called_once_with(5)

    def test_read_skips_malformed_and_out_of_region_rows(self, make_record):
        good = make_record("good").model_dump(mode="json")
        outside = make_record("outside").model_dump(mode="json")
        outside["location"] = {"lat": 6.24, "lng": -75.58}
        broken = {"place_id": "broken", "rating": 9}
        client, _ = self._builder(rows=[good, outside, broken])

        records = _run(SupabaseEntityStore(client).read(CacheQuery()))
        assert [r.place_id for r in records] == ["good"]

    def test_read_failure_is_store_unavailable(self):
        client, _ = self._builder(error=RuntimeError("connection refused"))
        with pytest.raises(StoreUnavailable):
            _run(SupabaseEntityStore(client).read(CacheQuery()))

    def test_upsert_uses_place_id_conflict(self, make_record):
        client, builder = self._builder()
        _run(SupabaseEntityStore(client).upsert(make_record("a")))
        row = builder.upsert.call_args[0][0]
        assert row["place_id"] == "a"
        assert builder.upsert.call_args[1] == {"on_conflict": "place_id"}

    def test_upsert_failure_is_store_write_failed(self, make_record):
        client, _ = self._builder(error=RuntimeError("duplicate"))
        with pytest.raises(StoreWriteFailed):
            _run(SupabaseEntityStore(client).upsert(make_record("a")))

    def test_counts(self):
        client, _ = self._builder(count=4)
        assert _run(SupabaseEntityStore(client).counts(NOW)) == {"total": 4, "fresh": 4, "stale": 0}
