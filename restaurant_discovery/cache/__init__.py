"""
Restaurant cache.

Responsibilities:
- Validated restaurant records with TTL metadata.
- Entity store backends (in-process and Supabase) keyed on place_id.
- Fresh and stale cache lookups, plus hit/miss counters.
- Bulk seeding from an import CSV.
"""
