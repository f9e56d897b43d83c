from __future__ import annotations

from restaurant_discovery.analytics.aggregator import compute_analytics
from restaurant_discovery.analytics.store import clear_events, get_events, record_event


def _search(query, source="cache", stale=False, results=3, neighborhood=None, ms=10.0):
    record_event("search", {
        "query": query,
        "neighborhood": neighborhood,
        "source": source,
        "stale": stale,
        "results_returned": results,
        "response_time_ms": ms,
    })


def test_analytics_empty():
    body = compute_analytics(get_events())
    assert body["total_searches"] == 0
    assert body["avg_response_time_ms"] == 0.0
    assert body["chat"]["total"] == 0


def test_source_split_and_rates():
    _search("pizza", source="cache", ms=10.0)
    _search("pizza", source="live", ms=30.0)
    _search("sushi", source="cache", stale=True, results=0, ms=20.0)
    _search("Pizza", source="cache", neighborhood="Chapinero", ms=20.0)

    body = compute_analytics(get_events())

    assert body["total_searches"] == 4
    assert body["avg_response_time_ms"] == 20.0
    assert body["sources"] == {"cache": 2, "live": 1, "stale": 1}
    assert body["cache_hit_rate"] == 50.0
    assert body["no_results_rate"] == 25.0
    assert body["top_queries"][0] == {"name": "pizza", "count": 3}
    assert body["top_neighborhoods"] == [{"name": "chapinero", "count": 1}]


def test_chat_metadata_rate():
    record_event("chat", {"metadata_sent": True, "error": None})
    record_event("chat", {"metadata_sent": False, "error": "timeout"})

    chat = compute_analytics(get_events())["chat"]

    assert chat == {"total": 2, "with_metadata": 1, "metadata_rate": 50.0, "errors": 1}


def test_get_events_filters_by_type():
    _search("pizza")
    record_event("chat", {"metadata_sent": False})
    assert len(get_events("search")) == 1
    assert len(get_events()) == 2
    clear_events()
    assert get_events() == []
