from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class LLMConfig:
    api_key: str = os.getenv("GROQ_API_KEY", "")
    model: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    # Per HTTP operation, including the wait for each streamed chunk
    timeout: float = 20.0
    # Upper bound for one whole streamed answer
    stream_timeout: float = 90.0
    max_tokens: int = 2048
    temperature: float = 1.0
    top_p: float = 0.95
    enabled: bool = True


DEFAULT_LLM_CONFIG = LLMConfig()
