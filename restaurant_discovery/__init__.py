"""
Restaurant discovery service for Bogotá.

Hybrid search over a TTL cache and a live place-search provider, with a
streamed conversational assistant layered on top.
"""
