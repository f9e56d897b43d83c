from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=8000)


class UserPreferences(BaseModel):
    cuisines: list[str] = Field(default_factory=list)
    budget: str | None = None
    location: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.cuisines or self.budget or self.location)


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1, max_length=50)
    system_prompt: str | None = Field(default=None, max_length=8000)
    user_preferences: UserPreferences | None = None


class SearchParams(BaseModel):
    query: str
    neighborhood: str | None = None


class MultiplexerState(str, Enum):
    AWAIT_METADATA = "AWAIT_METADATA"
    STREAM_PASSTHROUGH = "STREAM_PASSTHROUGH"
    DONE = "DONE"
