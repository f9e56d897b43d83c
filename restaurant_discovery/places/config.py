from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")

SEARCH_FIELD_MASK = ",".join([
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.rating",
    "places.userRatingCount",
    "places.priceLevel",
    "places.types",
    "places.currentOpeningHours",
    "places.internationalPhoneNumber",
    "places.nationalPhoneNumber",
    "places.websiteUri",
    "places.photos",
])


@dataclass(frozen=True)
class PlacesConfig:
    api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    base_url: str = "https://places.googleapis.com/v1"
    field_mask: str = SEARCH_FIELD_MASK
    language_code: str = "es"
    region_code: str = "CO"
    city_suffix: str = "Bogotá, Colombia"
    # Centre of Bogotá, wide enough to cover the whole city
    bias_lat: float = 4.7110
    bias_lng: float = -74.0721
    bias_radius_m: float = 25000.0
    max_photos: int = 5
    timeout: float = 10.0


DEFAULT_PLACES_CONFIG = PlacesConfig()
