from __future__ import annotations

from collections import Counter
from typing import Any


def _top(counter: Counter[str], n: int = 10) -> list[dict[str, Any]]:
    return [{"name": name, "count": count} for name, count in counter.most_common(n)]


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    searches = [e for e in events if e["type"] == "search"]
    chats = [e for e in events if e["type"] == "chat"]
    total = len(searches)

    times = [s["response_time_ms"] for s in searches if "response_time_ms" in s]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    # Source split: fresh cache, live provider, stale cache fallback
    sources = {"cache": 0, "live": 0, "stale": 0}
    for s in searches:
        if s.get("stale"):
            sources["stale"] += 1
        elif s.get("source") in sources:
            sources[s["source"]] += 1

    query_counter: Counter[str] = Counter()
    neighborhood_counter: Counter[str] = Counter()
    for s in searches:
        query_counter[(s.get("query") or "").lower() or "unknown"] += 1
        if s.get("neighborhood"):
            neighborhood_counter[s["neighborhood"].lower()] += 1

    empty = sum(1 for s in searches if not s.get("results_returned"))

    with_metadata = sum(1 for c in chats if c.get("metadata_sent"))
    chat_errors = sum(1 for c in chats if c.get("error"))

    return {
        "total_searches": total,
        "avg_response_time_ms": avg_time,
        "sources": sources,
        "cache_hit_rate": round(sources["cache"] / total * 100, 1) if total else 0.0,
        "no_results_rate": round(empty / total * 100, 1) if total else 0.0,
        "top_queries": _top(query_counter),
        "top_neighborhoods": _top(neighborhood_counter),
        "chat": {
            "total": len(chats),
            "with_metadata": with_metadata,
            "metadata_rate": round(with_metadata / len(chats) * 100, 1) if chats else 0.0,
            "errors": chat_errors,
        },
    }
