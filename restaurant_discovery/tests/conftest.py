from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from restaurant_discovery.analytics.store import clear_events
from restaurant_discovery.cache.lookup import reset_lookup_stats
from restaurant_discovery.cache.models import RestaurantRecord

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_counters():
    clear_events()
    reset_lookup_stats()
    yield


@pytest.fixture
def make_record():
    """Factory for valid, fresh, in-region records."""

    def _make(place_id: str = "p1", **overrides) -> RestaurantRecord:
        fields = {
            "place_id": place_id,
            "name": f"Restaurante {place_id}",
            "formatted_address": "Cra. 7 #71-21, Chapinero, Bogotá, Colombia",
            "neighborhood": "Chapinero",
            "cuisine": "italiano",
            "rating": 4.5,
            "price_level": "MODERATE",
            "location": {"lat": 4.65, "lng": -74.06},
            "search_query": "italiano",
            "cached_at": NOW - timedelta(days=1),
            "expires_at": NOW + timedelta(days=6),
        }
        fields.update(overrides)
        return RestaurantRecord(**fields)

    return _make
