from __future__ import annotations

from dataclasses import dataclass

from ..cache.models import Location


@dataclass(frozen=True)
class BoundingRegion:
    name: str
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    def contains_location(self, location: Location | None) -> bool:
        if location is None:
            return False
        return self.contains(location.lat, location.lng)

    @property
    def center(self) -> tuple[float, float]:
        return (
            round((self.min_lat + self.max_lat) / 2, 4),
            round((self.min_lng + self.max_lng) / 2, 4),
        )


# Urban Bogotá, from Usme in the south to Torca in the north
BOGOTA_REGION = BoundingRegion(
    name="Bogotá",
    min_lat=4.45,
    max_lat=4.85,
    min_lng=-74.25,
    max_lng=-73.98,
)
