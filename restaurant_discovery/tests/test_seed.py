from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from restaurant_discovery.cache.models import PriceLevel
from restaurant_discovery.cache.seed import load_seed_frame, records_from_frame, seed_store
from restaurant_discovery.cache.store import InMemoryEntityStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

CSV = """place_id,name,rating,address,zone,price_level,latitude,longitude,cuisine,description,min_price,max_price,currency
ChIJ1,Andrés D.C.,4.6,Calle 82 #12-21,Zona Rosa,3,4.6668,-74.0531,Colombiana / Parrilla,Clásico bogotano,60000,120000,COP
ChIJ2,Café San Alberto,,Cra. 4 #70-12,Chapinero,1,4.6519,-74.0562,Café,,15000,30000,COP
ChIJ3,Fuera de Bogotá,4.9,Cra. 43A,El Poblado,2,6.2088,-75.5676,Colombiana,,,,
ChIJ4,Sin coordenadas,4.2,Calle 1,Centro,2,,,Pizza,,,,
"""


@pytest.fixture
def seed_csv(tmp_path):
    path = tmp_path / "seed.csv"
    path.write_text(CSV, encoding="utf-8")
    return path


def test_records_from_frame(seed_csv):
    records = records_from_frame(load_seed_frame(seed_csv), now=NOW)

    assert [r.place_id for r in records] == ["ChIJ1", "ChIJ2"]
    andres = records[0]
    assert andres.neighborhood == "Zona Rosa"
    assert andres.price_level == PriceLevel.EXPENSIVE
    assert andres.types == ["Colombiana", "Parrilla"]
    assert andres.user_ratings_total == 460
    assert andres.min_price == 60000
    assert andres.expires_at == NOW + timedelta(days=90)

    cafe = records[1]
    assert cafe.rating is None
    assert cafe.user_ratings_total == 0
    assert cafe.description is None


def test_seed_store_reports_counts(seed_csv):
    store = InMemoryEntityStore()
    report = asyncio.run(seed_store(store, seed_csv, clock=lambda: NOW))

    assert report == {"rows": 4, "imported": 2, "skipped": 2}
    assert len(store) == 2


def test_missing_required_columns(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("name,rating\nAlgo,4.0\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_seed_frame(path)
