"""
Display-time recovery of restaurants from assistant free text.

Responsibilities:
- Split an answer into per-restaurant sections.
- Keep only sections with a coordinate pair inside the service region.
- Fill missing fields with marked placeholders.
"""
