"""
Entity store for cached restaurant records.

Responsibilities:
- Filtered reads over the ``restaurant_cache`` records (text match, exact
  match, TTL inequality, rating range).
- Idempotent upserts keyed on ``place_id``.
- Refuse records that break the caching invariants (missing or inverted
  timestamps, coordinates outside the service region).
"""
from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import ValidationError
from supabase import Client, create_client

from ..errors import StoreUnavailable, StoreWriteFailed
from ..extraction.region import BOGOTA_REGION, BoundingRegion
from .config import DEFAULT_CACHE_CONFIG, CacheConfig
from .models import RestaurantRecord

logger = logging.getLogger(__name__)

# Characters with meaning inside a PostgREST or=() expression
_POSTGREST_RESERVED = str.maketrans("", "", ",()*%")


@dataclass(frozen=True)
class CacheQuery:
    """Filter predicate understood by every store backend.

    ``text`` matches ``search_query`` as a substring; ``terms`` match any of
    ``name``, ``cuisine`` or ``formatted_address``.  A record passes the text
    filter if either side matches (or if neither is given).
    """

    text: str | None = None
    terms: tuple[str, ...] = field(default_factory=tuple)
    neighborhood: str | None = None
    fresh_at: datetime | None = None
    min_rating: float | None = None
    limit: int | None = None

    def matches(self, record: RestaurantRecord) -> bool:
        if self.fresh_at is not None and not record.is_fresh(self.fresh_at):
            return False
        if self.neighborhood:
            if (record.neighborhood or "").strip().lower() != self.neighborhood.strip().lower():
                return False
        if self.min_rating is not None:
            if record.rating is None or record.rating < self.min_rating:
                return False
        return self._matches_text(record)

    def _matches_text(self, record: RestaurantRecord) -> bool:
        if not self.text and not self.terms:
            return True
        if self.text and self.text.lower() in (record.search_query or "").lower():
            return True
        haystacks = [
            (record.name or "").lower(),
            (record.cuisine or "").lower(),
            (record.formatted_address or "").lower(),
        ]
        return any(term.lower() in h for term in self.terms for h in haystacks)


def _sort_key(record: RestaurantRecord) -> float:
    return record.rating if record.rating is not None else -1.0


class EntityStore(abc.ABC):
    def __init__(self, region: BoundingRegion = BOGOTA_REGION) -> None:
        self.region = region

    @abc.abstractmethod
    async def read(self, query: CacheQuery) -> list[RestaurantRecord]:
        """Return matching records ordered by rating, best first."""

    @abc.abstractmethod
    async def get(self, place_id: str) -> RestaurantRecord | None:
        ...

    @abc.abstractmethod
    async def upsert(self, record: RestaurantRecord) -> RestaurantRecord:
        """Insert or replace the record keyed on ``place_id``.

        Raises :class:`StoreWriteFailed` when the record cannot be written.
        """

    @abc.abstractmethod
    async def counts(self, now: datetime) -> dict[str, int]:
        """Return ``{"total", "fresh", "stale"}`` record counts."""

    def _check_writable(self, record: RestaurantRecord) -> None:
        if record.cached_at is None or record.expires_at is None:
            raise StoreWriteFailed(record.place_id, "cached_at and expires_at are required")
        if record.expires_at <= record.cached_at:
            raise StoreWriteFailed(record.place_id, "expires_at must be later than cached_at")
        if record.location is not None and not self.region.contains_location(record.location):
            raise StoreWriteFailed(
                record.place_id,
                f"location {record.location.lat},{record.location.lng} outside {self.region.name}",
            )


# ---------------------------------------------------------------------------
# In-process backend
# ---------------------------------------------------------------------------


class InMemoryEntityStore(EntityStore):
    """Dict-backed store keyed on ``place_id``.

    Each upsert runs without suspending, so it is atomic on the event loop
    and concurrent writers for the same place resolve last-write-wins.
    ``max_records`` bounds memory by evicting the oldest ``cached_at`` first.
    """

    def __init__(
        self,
        region: BoundingRegion = BOGOTA_REGION,
        max_records: int | None = None,
    ) -> None:
        super().__init__(region)
        self.max_records = max_records
        self._records: dict[str, RestaurantRecord] = {}

    async def read(self, query: CacheQuery) -> list[RestaurantRecord]:
        matched = [r for r in self._records.values() if query.matches(r)]
        matched.sort(key=_sort_key, reverse=True)
        if query.limit is not None:
            matched = matched[: query.limit]
        return matched

    async def get(self, place_id: str) -> RestaurantRecord | None:
        return self._records.get(place_id)

    async def upsert(self, record: RestaurantRecord) -> RestaurantRecord:
        self._check_writable(record)
        stored = record.model_copy(deep=True)
        if (
            self.max_records is not None
            and record.place_id not in self._records
            and len(self._records) >= self.max_records
        ):
            self._evict_oldest()
        self._records[record.place_id] = stored
        return stored

    async def counts(self, now: datetime) -> dict[str, int]:
        fresh = sum(1 for r in self._records.values() if r.is_fresh(now))
        return {"total": len(self._records), "fresh": fresh, "stale": len(self._records) - fresh}

    def _evict_oldest(self) -> None:
        oldest = min(self._records.values(), key=lambda r: r.cached_at)
        del self._records[oldest.place_id]
        logger.info("Evicted %s from cache (capacity %s)", oldest.place_id, self.max_records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


# ---------------------------------------------------------------------------
# Supabase backend
# ---------------------------------------------------------------------------


class SupabaseEntityStore(EntityStore):
    """``restaurant_cache`` table behind PostgREST.

    The supabase client is synchronous, so every call is pushed onto a
    worker thread to keep the event loop free.
    """

    def __init__(
        self,
        client: Client,
        table: str = "restaurant_cache",
        region: BoundingRegion = BOGOTA_REGION,
    ) -> None:
        super().__init__(region)
        self.client = client
        self.table = table

    @classmethod
    def from_config(cls, config: CacheConfig = DEFAULT_CACHE_CONFIG) -> "SupabaseEntityStore":
        if not config.supabase_url or not config.supabase_key:
            raise StoreUnavailable(
                "Supabase cache backend is not configured",
                details="SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required",
            )
        return cls(create_client(config.supabase_url, config.supabase_key), table=config.table)

    async def read(self, query: CacheQuery) -> list[RestaurantRecord]:
        return await asyncio.to_thread(self._read_sync, query)

    async def get(self, place_id: str) -> RestaurantRecord | None:
        return await asyncio.to_thread(self._get_sync, place_id)

    async def upsert(self, record: RestaurantRecord) -> RestaurantRecord:
        self._check_writable(record)
        await asyncio.to_thread(self._upsert_sync, record)
        return record

    async def counts(self, now: datetime) -> dict[str, int]:
        return await asyncio.to_thread(self._counts_sync, now)

    def _read_sync(self, query: CacheQuery) -> list[RestaurantRecord]:
        builder = self.client.table(self.table).select("*")
        if query.fresh_at is not None:
            builder = builder.gt("expires_at", _iso(query.fresh_at))
        if query.neighborhood:
            # ilike without wildcards is a case-insensitive equality
            builder = builder.ilike("neighborhood", query.neighborhood.translate(_POSTGREST_RESERVED))
        if query.min_rating is not None:
            builder = builder.gte("rating", query.min_rating)

        clauses: list[str] = []
        if query.text:
            clauses.append(f"search_query.ilike.*{query.text.translate(_POSTGREST_RESERVED)}*")
        for term in query.terms:
            term = term.translate(_POSTGREST_RESERVED)
            if not term:
                continue
            clauses.extend([
                f"name.ilike.*{term}*",
                f"cuisine.ilike.*{term}*",
                f"formatted_address.ilike.*{term}*",
            ])
        if clauses:
            builder = builder.or_(",".join(clauses))

        builder = builder.order("rating", desc=True)
        if query.limit is not None:
            builder = builder.limit(query.limit)

        try:
            response = builder.execute()
        except Exception as exc:
            raise StoreUnavailable("Restaurant cache query failed", details=str(exc)) from exc

        return self._parse_rows(response.data or [])

    def _get_sync(self, place_id: str) -> RestaurantRecord | None:
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("place_id", place_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailable("Restaurant cache query failed", details=str(exc)) from exc
        rows = self._parse_rows(response.data or [])
        return rows[0] if rows else None

    def _upsert_sync(self, record: RestaurantRecord) -> None:
        row = record.model_dump(mode="json")
        try:
            self.client.table(self.table).upsert(row, on_conflict="place_id").execute()
        except Exception as exc:
            raise StoreWriteFailed(record.place_id, f"upsert failed: {exc}") from exc

    def _counts_sync(self, now: datetime) -> dict[str, int]:
        try:
            total = (
                self.client.table(self.table)
                .select("place_id", count="exact")
                .limit(1)
                .execute()
            ).count or 0
            fresh = (
                self.client.table(self.table)
                .select("place_id", count="exact")
                .gt("expires_at", _iso(now))
                .limit(1)
                .execute()
            ).count or 0
        except Exception as exc:
            raise StoreUnavailable("Restaurant cache count failed", details=str(exc)) from exc
        return {"total": total, "fresh": fresh, "stale": total - fresh}

    def _parse_rows(self, rows: list[dict]) -> list[RestaurantRecord]:
        records: list[RestaurantRecord] = []
        for row in rows:
            try:
                record = RestaurantRecord.model_validate(row)
            except ValidationError:
                logger.warning("Skipping malformed cache row %s", row.get("place_id"), exc_info=True)
                continue
            if record.location is not None and not self.region.contains_location(record.location):
                logger.warning("Skipping cache row %s outside %s", record.place_id, self.region.name)
                continue
            records.append(record)
        return records


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_store(config: CacheConfig = DEFAULT_CACHE_CONFIG) -> EntityStore:
    if config.backend == "supabase":
        return SupabaseEntityStore.from_config(config)
    return InMemoryEntityStore()
