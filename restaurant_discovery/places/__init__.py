"""
Live place-search provider (Google Places API, New).

Responsibilities:
- Text search over HTTP with a location bias around Bogotá.
- Normalize provider places into cache records and persist them.
- Bulk neighborhood discovery with the longer discovery TTL.
"""
