from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class PriceLevel(str, Enum):
    FREE = "FREE"
    INEXPENSIVE = "INEXPENSIVE"
    MODERATE = "MODERATE"
    EXPENSIVE = "EXPENSIVE"
    VERY_EXPENSIVE = "VERY_EXPENSIVE"
    UNSPECIFIED = "UNSPECIFIED"


_PRICE_TIERS = [
    PriceLevel.FREE,
    PriceLevel.INEXPENSIVE,
    PriceLevel.MODERATE,
    PriceLevel.EXPENSIVE,
    PriceLevel.VERY_EXPENSIVE,
]


def coerce_price_level(value: Any) -> PriceLevel | None:
    """Map provider strings (``PRICE_LEVEL_MODERATE``), bare names and
    numeric tiers (``"2"``, ``2``, ``"$$"``) onto :class:`PriceLevel`."""
    if value is None or value == "":
        return None
    if isinstance(value, PriceLevel):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        tier = int(value)
        return _PRICE_TIERS[tier] if 0 <= tier < len(_PRICE_TIERS) else None

    raw = str(value).strip().upper()
    if raw.startswith("PRICE_LEVEL_"):
        raw = raw[len("PRICE_LEVEL_"):]
    if raw.isdigit():
        return coerce_price_level(int(raw))
    if raw and set(raw) == {"$"}:
        return coerce_price_level(min(len(raw), 4))
    try:
        return PriceLevel(raw)
    except ValueError:
        return None


class Location(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)


class RestaurantRecord(BaseModel):
    place_id: str = Field(..., min_length=1)
    name: str
    formatted_address: str | None = None
    neighborhood: str | None = None
    cuisine: str | None = None
    types: list[str] = Field(default_factory=list)
    description: str | None = None

    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    user_ratings_total: int = Field(default=0, ge=0)

    price_level: PriceLevel | None = None
    min_price: int | None = None
    max_price: int | None = None
    currency: str | None = None

    location: Location | None = None

    photos: list[str] = Field(default_factory=list)
    opening_hours: list[str] | None = None
    open_now: bool | None = None
    phone_number: str | None = None
    website: str | None = None

    search_query: str | None = None
    cached_at: datetime | None = None
    expires_at: datetime | None = None

    @field_validator("price_level", mode="before")
    @classmethod
    def _coerce_price_level(cls, value: Any) -> PriceLevel | None:
        return coerce_price_level(value)

    @field_validator("photos", mode="before")
    @classmethod
    def _photo_references(cls, value: Any) -> list[str]:
        # Discovery rows store [{"photo_reference": ...}], search rows store names
        refs: list[str] = []
        for photo in value or []:
            if isinstance(photo, dict):
                photo = photo.get("photo_reference") or photo.get("name")
            if photo:
                refs.append(str(photo))
        return refs

    @field_validator("opening_hours", mode="before")
    @classmethod
    def _weekday_text(cls, value: Any) -> list[str] | None:
        if isinstance(value, dict):
            return value.get("weekday_text") or value.get("weekdayDescriptions")
        return value

    @field_validator("types", mode="before")
    @classmethod
    def _types_list(cls, value: Any) -> list[str]:
        return list(value or [])

    @model_validator(mode="after")
    def _check_expiry(self) -> "RestaurantRecord":
        if self.cached_at and self.expires_at and self.expires_at <= self.cached_at:
            raise ValueError("expires_at must be later than cached_at")
        return self

    def is_fresh(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at > now


class SearchFilters(BaseModel):
    price_levels: list[PriceLevel] | None = None
    neighborhood: str | None = None
    min_rating: float | None = Field(default=None, ge=0.0, le=5.0)
    open_now: bool | None = None

    @field_validator("price_levels", mode="before")
    @classmethod
    def _coerce_levels(cls, value: Any) -> list[PriceLevel] | None:
        if value is None:
            return None
        levels = [coerce_price_level(v) for v in value]
        return [lvl for lvl in levels if lvl is not None]


class SearchResult(BaseModel):
    records: list[RestaurantRecord]
    source: Literal["cache", "live"]
    stale: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.records
