"""
Conversational response multiplexer.

Merges two sources into one server-sent event stream:
- a single ``metadata`` event with real restaurant records from the search
  orchestrator, written before any token;
- the assistant's answer, forwarded delta by delta as it arrives.

The stream always terminates with ``data: [DONE]`` or with one ``error``
event.  A client disconnect or the overall deadline closes the upstream
generative stream.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Awaitable, Callable

from ..analytics.store import record_event
from ..cache.models import RestaurantRecord
from ..errors import DiscoveryError, GenerativeServiceFailure
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import stream_chat
from ..search.orchestrator import SearchOrchestrator
from .intent import detect_preference_confirmation, detect_restaurant_query, extract_search_params
from .models import ChatRequest, MultiplexerState, UserPreferences

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "Eres un asistente experto en restaurantes de Bogotá, Colombia. "
    "Ayudas a las personas a descubrir dónde comer según sus gustos, "
    "presupuesto y ubicación. Responde en español, de forma amable y concisa."
)

DONE_EVENT = "data: [DONE]\n\n"

StreamFn = Callable[[str, list[dict[str, str]], LLMConfig], AsyncIterator[str]]
DisconnectCheck = Callable[[], Awaitable[bool]]


def sse_event(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


# ---------------------------------------------------------------------------
# Prompt building
# ---------------------------------------------------------------------------


def greeting_prompt(base_prompt: str, preferences: UserPreferences) -> str:
    cuisines = ", ".join(preferences.cuisines) or "sus gustos"
    budget = f", presupuesto: {preferences.budget}" if preferences.budget else ""
    return (
        f"{base_prompt}\n\n"
        "**IMPORTANTE - PRIMER MENSAJE:**\n"
        "El usuario acaba de iniciar la conversación. Antes de recomendar:\n"
        "1. Salúdalo amigablemente.\n"
        "2. Pregúntale si prefiere recomendaciones basadas en sus preferencias "
        f"guardadas ({cuisines}{budget}) o algo diferente.\n"
        "3. No hagas recomendaciones hasta que responda.\n"
        "4. Mantén el mensaje corto."
    )


def enriched_prompt(base_prompt: str, records: list[RestaurantRecord], source: str) -> str:
    label = "CACHÉ LOCAL" if source == "cache" else "GOOGLE PLACES API"
    data = json.dumps(
        [r.model_dump(mode="json", exclude_none=True) for r in records],
        ensure_ascii=False,
        indent=2,
    )
    mention = min(8, len(records))
    return (
        f"{base_prompt}\n\n"
        f"**DATOS REALES DE RESTAURANTES ({label}):**\n"
        f"Tienes acceso a {len(records)} restaurantes verificados. Estos datos se "
        "envían aparte a la interfaz, así que no incluyas coordenadas.\n\n"
        f"{data}\n\n"
        "**INSTRUCCIONES:**\n"
        f"1. Menciona al menos {mention} restaurantes de la lista.\n"
        "2. Usa solo los datos reales (calificación, precios, tipo de cocina).\n"
        "3. Describe el ambiente y las especialidades de cada uno.\n"
        "4. Mantén un tono amigable y organiza la respuesta con claridad."
    )


# ---------------------------------------------------------------------------
# Multiplexer
# ---------------------------------------------------------------------------


class ChatMultiplexer:
    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        config: LLMConfig = DEFAULT_LLM_CONFIG,
        stream_fn: StreamFn = stream_chat,
    ) -> None:
        self.orchestrator = orchestrator
        self.config = config
        self.stream_fn = stream_fn

    def wants_search(self, request: ChatRequest) -> bool:
        last = request.messages[-1]
        if last.role != "user":
            return False
        if detect_restaurant_query(last.content):
            return True
        # Second user turn answering the preference greeting
        user_turns = sum(1 for m in request.messages if m.role == "user")
        return user_turns == 2 and detect_preference_confirmation(last.content)

    @staticmethod
    def wants_greeting(request: ChatRequest) -> bool:
        prefs = request.user_preferences
        return (
            len(request.messages) == 1
            and prefs is not None
            and bool(prefs.cuisines or prefs.budget)
        )

    async def prepare(self, request: ChatRequest) -> tuple[str, list[RestaurantRecord]]:
        """Resolve the system prompt and the metadata records for a turn.

        Search failures are logged and the turn continues without metadata.
        """
        base_prompt = request.system_prompt or DEFAULT_SYSTEM_PROMPT

        if self.wants_greeting(request):
            return greeting_prompt(base_prompt, request.user_preferences), []

        if not self.wants_search(request):
            return base_prompt, []

        params = extract_search_params(request.messages[-1].content, request.user_preferences)
        try:
            result = await self.orchestrator.search(params.query, params.neighborhood)
        except DiscoveryError:
            logger.warning(
                "Search for chat failed, answering without restaurant data", exc_info=True,
            )
            return base_prompt, []
        except Exception:
            logger.exception("Unexpected error searching for chat, answering without restaurant data")
            return base_prompt, []

        if result.is_empty:
            return base_prompt, []
        return enriched_prompt(base_prompt, result.records, result.source), result.records

    async def stream(
        self,
        request: ChatRequest,
        is_disconnected: DisconnectCheck | None = None,
    ) -> AsyncIterator[str]:
        """Yield SSE-formatted events for one chat turn."""
        start_time = time.time()
        state = MultiplexerState.AWAIT_METADATA
        error: GenerativeServiceFailure | None = None
        disconnected = False
        chunks = 0

        system_prompt, records = await self.prepare(request)
        if records:
            yield sse_event({
                "type": "metadata",
                "restaurants": [r.model_dump(mode="json") for r in records],
            })

        state = MultiplexerState.STREAM_PASSTHROUGH
        messages = [m.model_dump() for m in request.messages]
        upstream = self.stream_fn(system_prompt, messages, self.config)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.stream_timeout

        try:
            while state is MultiplexerState.STREAM_PASSTHROUGH:
                if is_disconnected is not None and await is_disconnected():
                    logger.info("Client disconnected, closing upstream stream")
                    disconnected = True
                    break

                remaining = deadline - loop.time()
                try:
                    if remaining <= 0:
                        raise asyncio.TimeoutError
                    delta = await asyncio.wait_for(upstream.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    state = MultiplexerState.DONE
                    continue
                except asyncio.TimeoutError:
                    error = GenerativeServiceFailure(
                        "The assistant took too long to answer",
                        retryable=True,
                        details=f"No complete answer within {self.config.stream_timeout}s",
                    )
                    break
                except GenerativeServiceFailure as exc:
                    error = exc
                    break
                except Exception as exc:
                    logger.exception("Unexpected error from the assistant stream")
                    error = GenerativeServiceFailure(
                        "The assistant stream failed unexpectedly",
                        retryable=True,
                        details=type(exc).__name__,
                    )
                    break

                chunks += 1
                yield sse_event({"type": "delta", "content": delta})
        finally:
            await upstream.aclose()
            record_event("chat", {
                "restaurant_query": bool(records) or self.wants_search(request),
                "metadata_sent": bool(records),
                "restaurants": len(records),
                "chunks": chunks,
                "error": error.message if error else None,
                "disconnected": disconnected,
                "response_time_ms": round((time.time() - start_time) * 1000, 1),
            })

        if error is not None:
            logger.warning("Chat stream failed: %s", error.message)
            yield sse_event({"type": "error", **error.to_dict()})
        elif not disconnected:
            yield DONE_EVENT
