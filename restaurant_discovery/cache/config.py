from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class CacheConfig:
    # On-demand search results
    search_ttl: timedelta = timedelta(days=7)
    # Bulk neighborhood discovery
    discovery_ttl: timedelta = timedelta(days=30)
    # CSV imports
    import_ttl: timedelta = timedelta(days=90)

    lookup_limit: int = 20
    # Minimum number of significant characters for a search term
    min_term_length: int = 3

    backend: str = os.getenv("CACHE_BACKEND", "memory")
    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    table: str = "restaurant_cache"
    seed_csv: str = os.getenv("SEED_CSV", "")


DEFAULT_CACHE_CONFIG = CacheConfig()
