from __future__ import annotations

import logging
from typing import AsyncIterator

import groq
import httpx
from groq import AsyncGroq

from ..errors import GenerativeServiceFailure
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)


def _to_failure(exc: Exception) -> GenerativeServiceFailure:
    if isinstance(exc, groq.RateLimitError):
        return GenerativeServiceFailure(
            "Too many requests to the assistant, try again in a moment",
            retryable=True,
            details=str(exc),
        )
    if isinstance(exc, groq.APIStatusError):
        return GenerativeServiceFailure(
            "The assistant is not available right now",
            retryable=exc.status_code >= 500,
            details=f"Error {exc.status_code}",
        )
    return GenerativeServiceFailure(
        "Could not reach the assistant",
        retryable=True,
        details=str(exc),
    )


async def stream_chat(
    system_prompt: str,
    messages: list[dict[str, str]],
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> AsyncIterator[str]:
    """
    Stream a chat completion from Groq, yielding text deltas as they arrive.

    The client and its stream are opened lazily on first iteration and both
    closed when the generator finishes, fails or is closed early
    (``aclose``), so an abandoned consumer releases the connection.

    Raises :class:`GenerativeServiceFailure` on any API error, before or
    during streaming.
    """
    if not config.enabled or not config.api_key:
        raise GenerativeServiceFailure(
            "The assistant is not available",
            details="GROQ_API_KEY is not configured",
        )

    client = AsyncGroq(api_key=config.api_key, timeout=config.timeout)
    payload = [{"role": "system", "content": system_prompt}, *messages] if system_prompt else messages

    stream = None
    try:
        stream = await client.chat.completions.create(
            model=config.model,
            messages=payload,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            top_p=config.top_p,
            stream=True,
        )
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
    except (groq.APIError, httpx.HTTPError) as exc:
        logger.warning("Groq chat stream failed", exc_info=True)
        raise _to_failure(exc) from exc
    finally:
        if stream is not None:
            await stream.close()
        await client.close()
