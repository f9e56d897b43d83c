from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from ..cache.models import Location
from ..errors import StoreWriteFailed
from .client import PlacesClient

logger = logging.getLogger(__name__)


class DiscoveryRequest(BaseModel):
    neighborhood: str = Field(..., min_length=1)
    location: Location
    radius: float = Field(default=2000.0, gt=0, le=50000)
    min_rating: float = Field(default=4.0, ge=0.0, le=5.0)
    max_results: int = Field(default=20, ge=1, le=20)


class DiscoveredRestaurant(BaseModel):
    name: str
    rating: float | None
    photos: int


class DiscoveryReport(BaseModel):
    discovered: int = 0
    new: int = 0
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    restaurants: list[DiscoveredRestaurant] = Field(default_factory=list)


def _below_rating(place: object, min_rating: float) -> bool:
    rating = place.get("rating") if isinstance(place, dict) else None
    return isinstance(rating, (int, float)) and rating < min_rating


async def discover_neighborhood(
    client: PlacesClient,
    request: DiscoveryRequest,
) -> DiscoveryReport:
    """Bulk-populate the cache with the well-rated places of one neighborhood.

    Uses the discovery TTL rather than the interactive search TTL.  Provider
    failures propagate; per-record write failures are collected in
    ``errors``.
    """
    places = await client.search_text(
        f"restaurantes en {request.neighborhood}, {client.config.city_suffix}",
        max_results=request.max_results,
        bias_center=(request.location.lat, request.location.lng),
        bias_radius_m=request.radius,
        included_type="restaurant",
    )

    # Unrated places are kept, only known low ratings are skipped
    places = [p for p in places if not _below_rating(p, request.min_rating)]

    records = client.normalize_batch(
        places,
        search_query=f"API:{request.neighborhood}",
        neighborhood=request.neighborhood,
        ttl=client.cache_config.discovery_ttl,
    )

    report = DiscoveryReport()
    for record in records:
        existing = await client.store.get(record.place_id)
        try:
            await client.store.upsert(record)
        except StoreWriteFailed as exc:
            message = f"Error processing {record.name}: {exc.message}"
            logger.warning(message)
            report.errors.append(message)
            continue

        if existing is None:
            report.new += 1
        else:
            report.updated += 1
        report.discovered += 1
        report.restaurants.append(DiscoveredRestaurant(
            name=record.name, rating=record.rating, photos=len(record.photos),
        ))
        logger.info("%s %s (%s)", "Updated" if existing else "Added", record.name, record.rating)

    return report
