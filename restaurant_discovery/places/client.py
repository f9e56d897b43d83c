"""
Live place-search fallback.

Responsibilities:
- Build a text query for the Google Places API (New) and call ``places:searchText``.
- Normalize provider places into :class:`RestaurantRecord`, dropping malformed
  items one by one instead of failing the batch.
- Write every normalized record back into the entity store (warm-on-read).
- Surface provider failures as :class:`ProviderUnavailable`; retries are the
  caller's concern.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from ..cache.config import DEFAULT_CACHE_CONFIG, CacheConfig
from ..cache.models import Location, RestaurantRecord
from ..cache.store import EntityStore, utcnow
from ..errors import ProviderQuotaExceeded, ProviderUnavailable, StoreWriteFailed
from ..extraction.region import BOGOTA_REGION, BoundingRegion
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig

logger = logging.getLogger(__name__)

_NEIGHBORHOOD_RE = re.compile(r",\s*([^,]+),\s*Bogot[aá]", re.IGNORECASE)
_GENERIC_TYPES = {"restaurant", "food", "point_of_interest", "establishment"}


def extract_neighborhood(address: str | None, default: str = "Bogotá") -> str:
    """Pull the neighborhood out of a ``..., <barrio>, Bogotá, ...`` address."""
    if not address:
        return default
    match = _NEIGHBORHOOD_RE.search(address)
    return match.group(1).strip() if match else default


def _cuisine_from_types(types: list[str]) -> str | None:
    for place_type in types:
        if place_type.endswith("_restaurant") and place_type not in _GENERIC_TYPES:
            return place_type[: -len("_restaurant")].replace("_", " ")
    return None


def _object_field(place: dict[str, Any], key: str) -> dict[str, Any]:
    value = place.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"place field {key} is not an object: {value!r}")
    return value


def _list_field(place: dict[str, Any], key: str, item_type: type) -> list[Any]:
    value = place.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, item_type) for item in value):
        raise ValueError(f"place field {key} is not a list of {item_type.__name__}")
    return value


def normalize_place(
    place: dict[str, Any],
    *,
    search_query: str | None,
    cached_at: datetime,
    expires_at: datetime,
    neighborhood: str | None = None,
    max_photos: int = 5,
) -> RestaurantRecord:
    """Map one Places API (New) result onto the cached record shape.

    Raises ``ValueError`` (or pydantic's ``ValidationError``) for a place
    that cannot be represented: no id, a half-present coordinate pair, or a
    subfield of the wrong shape.
    """
    place_id = place.get("id")
    if not place_id or not isinstance(place_id, str):
        raise ValueError("place has no id")
    if place_id.startswith("places/"):
        place_id = place_id.split("/", 1)[1]

    raw_location = _object_field(place, "location")
    lat, lng = raw_location.get("latitude"), raw_location.get("longitude")
    if (lat is None) != (lng is None):
        raise ValueError(f"place {place_id} has a partial coordinate pair")
    location = Location(lat=lat, lng=lng) if lat is not None else None

    hours = _object_field(place, "currentOpeningHours")
    types = _list_field(place, "types", str)
    address = place.get("formattedAddress")
    photos = _list_field(place, "photos", dict)

    return RestaurantRecord(
        place_id=place_id,
        name=_object_field(place, "displayName").get("text") or "Sin nombre",
        formatted_address=address,
        neighborhood=neighborhood or extract_neighborhood(address),
        cuisine=_cuisine_from_types(types),
        types=types,
        rating=place.get("rating"),
        user_ratings_total=place.get("userRatingCount") or 0,
        price_level=place.get("priceLevel"),
        location=location,
        photos=[p.get("name") for p in photos[:max_photos] if p.get("name")],
        opening_hours=hours.get("weekdayDescriptions"),
        open_now=hours.get("openNow") if hours else None,
        phone_number=place.get("internationalPhoneNumber") or place.get("nationalPhoneNumber"),
        website=place.get("websiteUri"),
        search_query=search_query,
        cached_at=cached_at,
        expires_at=expires_at,
    )


class PlacesClient:
    def __init__(
        self,
        store: EntityStore,
        config: PlacesConfig = DEFAULT_PLACES_CONFIG,
        cache_config: CacheConfig = DEFAULT_CACHE_CONFIG,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = utcnow,
        region: BoundingRegion = BOGOTA_REGION,
    ) -> None:
        self.store = store
        self.config = config
        self.cache_config = cache_config
        self.clock = clock
        self.region = region
        self._http = http_client

    def build_text_query(self, query: str, neighborhood: str | None = None) -> str:
        query = query.strip() or "restaurante"
        if neighborhood:
            return f"{query} restaurant in {neighborhood}, {self.config.city_suffix}"
        return f"{query} restaurant in {self.config.city_suffix}"

    async def search_text(
        self,
        text_query: str,
        *,
        max_results: int = 10,
        bias_center: tuple[float, float] | None = None,
        bias_radius_m: float | None = None,
        included_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """Run one text search and return the raw provider places."""
        if not self.config.api_key:
            raise ProviderUnavailable(
                "Place search is not available",
                details="GOOGLE_MAPS_API_KEY is not configured",
            )

        lat, lng = bias_center or (self.config.bias_lat, self.config.bias_lng)
        payload: dict[str, Any] = {
            "textQuery": text_query,
            "languageCode": self.config.language_code,
            "regionCode": self.config.region_code,
            "locationBias": {
                "circle": {
                    "center": {"latitude": lat, "longitude": lng},
                    "radius": bias_radius_m or self.config.bias_radius_m,
                }
            },
            "maxResultCount": max_results,
        }
        if included_type:
            payload["includedType"] = included_type

        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.config.api_key,
            "X-Goog-FieldMask": self.config.field_mask,
        }
        url = f"{self.config.base_url}/places:searchText"

        try:
            response = await self._post(url, headers, payload)
        except httpx.HTTPError as exc:
            raise ProviderUnavailable("Place search provider unreachable", details=str(exc)) from exc

        if response.status_code == 429:
            raise ProviderQuotaExceeded(
                "Place search quota exceeded",
                status_code=429,
                details=response.text[:200],
            )
        if not response.is_success:
            raise ProviderUnavailable(
                "Place search provider returned an error",
                status_code=response.status_code,
                details=response.text[:200],
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("Place search returned invalid JSON", details=str(exc)) from exc

        places = data.get("places") or []
        logger.info("Places API returned %d results for %r", len(places), text_query)
        return places

    async def fetch_live(
        self,
        query: str,
        neighborhood: str | None = None,
        max_results: int = 10,
        *,
        ttl: timedelta | None = None,
    ) -> list[RestaurantRecord]:
        places = await self.search_text(
            self.build_text_query(query, neighborhood), max_results=max_results,
        )
        records = self.normalize_batch(
            places,
            search_query=query,
            neighborhood=neighborhood,
            ttl=ttl or self.cache_config.search_ttl,
        )
        return await self.persist(records)

    def normalize_batch(
        self,
        places: list[dict[str, Any]],
        *,
        search_query: str | None,
        ttl: timedelta,
        neighborhood: str | None = None,
    ) -> list[RestaurantRecord]:
        now = self.clock()
        records: list[RestaurantRecord] = []
        for place in places:
            if not isinstance(place, dict):
                logger.warning("Dropping non-object place entry %r", place)
                continue
            try:
                record = normalize_place(
                    place,
                    search_query=search_query,
                    neighborhood=neighborhood,
                    cached_at=now,
                    expires_at=now + ttl,
                    max_photos=self.config.max_photos,
                )
            except (ValueError, TypeError, ValidationError):
                logger.warning("Dropping malformed place %r", place.get("id"), exc_info=True)
                continue
            if record.location is not None and not self.region.contains_location(record.location):
                logger.warning(
                    "Dropping %s: location %s,%s outside %s",
                    record.place_id, record.location.lat, record.location.lng, self.region.name,
                )
                continue
            records.append(record)
        return records

    async def persist(self, records: list[RestaurantRecord]) -> list[RestaurantRecord]:
        """Upsert concurrently; records whose write fails are dropped."""
        stored = await asyncio.gather(*(self._upsert_one(r) for r in records))
        return [r for r in stored if r is not None]

    async def _upsert_one(self, record: RestaurantRecord) -> RestaurantRecord | None:
        try:
            return await self.store.upsert(record)
        except StoreWriteFailed:
            logger.warning("Could not cache %s", record.place_id, exc_info=True)
            return None

    async def _post(self, url: str, headers: dict[str, str], payload: dict[str, Any]) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, headers=headers, json=payload)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            return await client.post(url, headers=headers, json=payload)
