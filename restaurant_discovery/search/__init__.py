"""
Search orchestration: fresh cache, then live provider, then stale cache.
"""
