from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List

import pandas as pd
from pydantic import ValidationError

from ..errors import StoreWriteFailed
from ..extraction.region import BOGOTA_REGION, BoundingRegion
from .config import DEFAULT_CACHE_CONFIG, CacheConfig
from .models import RestaurantRecord
from .store import EntityStore, utcnow

logger = logging.getLogger(__name__)


SEED_COLUMNS: List[str] = [
    "place_id",
    "name",
    "rating",
    "address",
    "zone",
    "price_level",
    "latitude",
    "longitude",
    "cuisine",
    "description",
    "min_price",
    "max_price",
    "currency",
]


def _value(raw: Any) -> Any:
    """Empty cells come back from pandas as NaN; turn them into None."""
    if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        return raw or None
    return raw


def _int_or_none(raw: Any) -> int | None:
    value = _value(raw)
    return int(value) if value is not None else None


def load_seed_frame(path: str | Path) -> pd.DataFrame:
    """Read an import CSV and coerce the numeric columns.

    Missing optional columns are added empty; ``place_id``, ``name``,
    ``latitude`` and ``longitude`` are required.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=True)
    df.columns = [c.strip() for c in df.columns]

    missing = {"place_id", "name", "latitude", "longitude"} - set(df.columns)
    if missing:
        raise ValueError(f"Seed CSV is missing columns: {sorted(missing)}")

    for col in SEED_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA

    for col in ("rating", "latitude", "longitude", "min_price", "max_price"):
        df[col] = pd.to_numeric(df[col], errors="coerce")

    return df[SEED_COLUMNS]


def records_from_frame(
    df: pd.DataFrame,
    *,
    now: datetime,
    config: CacheConfig = DEFAULT_CACHE_CONFIG,
    region: BoundingRegion = BOGOTA_REGION,
) -> list[RestaurantRecord]:
    """Turn seed rows into cache records; invalid or out-of-region rows are skipped."""
    expires_at = now + config.import_ttl
    records: list[RestaurantRecord] = []

    for row in df.to_dict(orient="records"):
        lat, lng = _value(row["latitude"]), _value(row["longitude"])
        if lat is None or lng is None or not region.contains(lat, lng):
            logger.warning("Skipping seed row %s: no coordinates inside the region", row["place_id"])
            continue

        rating = _value(row["rating"])
        cuisine = _value(row["cuisine"])
        try:
            records.append(RestaurantRecord(
                place_id=_value(row["place_id"]),
                name=_value(row["name"]),
                formatted_address=_value(row["address"]),
                neighborhood=_value(row["zone"]),
                rating=rating,
                user_ratings_total=round(rating * 100) if rating is not None else 0,
                price_level=_value(row["price_level"]),
                location={"lat": lat, "lng": lng},
                types=[t.strip() for t in cuisine.split("/") if t.strip()] if cuisine else [],
                cuisine=cuisine,
                description=_value(row["description"]),
                min_price=_int_or_none(row["min_price"]),
                max_price=_int_or_none(row["max_price"]),
                currency=_value(row["currency"]),
                cached_at=now,
                expires_at=expires_at,
            ))
        except ValidationError:
            logger.warning("Skipping invalid seed row %s", row["place_id"], exc_info=True)

    return records


async def seed_store(
    store: EntityStore,
    path: str | Path,
    config: CacheConfig = DEFAULT_CACHE_CONFIG,
    clock: Callable[[], datetime] = utcnow,
) -> dict[str, int]:
    """Load a CSV into the store with the import TTL.

    Returns counts of rows read, records imported and rows skipped.
    """
    df = load_seed_frame(path)
    records = records_from_frame(df, now=clock(), config=config, region=store.region)

    imported = 0
    for record in records:
        try:
            await store.upsert(record)
        except StoreWriteFailed:
            logger.warning("Seed upsert failed for %s", record.place_id, exc_info=True)
            continue
        imported += 1

    logger.info("Seeded %d of %d rows from %s", imported, len(df), path)
    return {"rows": len(df), "imported": imported, "skipped": len(df) - imported}
