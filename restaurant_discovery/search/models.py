from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ..cache.models import RestaurantRecord, SearchFilters


class SearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=200)
    neighborhood: str | None = Field(default=None, max_length=100)
    # Extra neighborhoods searched concurrently and merged with the first
    neighborhoods: list[str] | None = Field(default=None, max_length=10)
    filters: SearchFilters | None = None


class SearchResponse(BaseModel):
    restaurants: list[RestaurantRecord]
    source: Literal["cache", "live"]
    stale: bool = False
    count: int
    cached: bool


class ExtractRequest(BaseModel):
    text: str = Field(..., max_length=50_000)


class ExtractResponse(BaseModel):
    restaurants: list[RestaurantRecord]
    count: int
