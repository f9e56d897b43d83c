from __future__ import annotations

import re
import unicodedata

from .models import SearchParams, UserPreferences

DEFAULT_QUERY = "restaurante"

# ---------------------------------------------------------------------------
# Keyword lists
# ---------------------------------------------------------------------------

_RESTAURANT_KEYWORDS = [
    "restaurante", "restaurant", "comida", "comer", "almorzar", "almuerzo",
    "cenar", "cena", "desayunar", "brunch",
    "italiano", "mexicano", "japones", "chino", "colombiano", "peruano",
    "pizza", "sushi", "tacos", "hamburguesa", "pasta",
    "recomendacion", "recomienda", "recomiendas", "donde", "lugar", "sitio",
    "mejor", "bueno", "rico", "delicioso",
]

_CONFIRMATION_PHRASES = [
    "si", "claro", "dale", "ok", "okay", "perfecto", "de acuerdo", "por favor",
    "mis preferencias", "mis gustos", "lo que me gusta", "yes",
]

_NEIGHBORHOODS = [
    "Usaquén", "Chapinero", "Chapinero Alto", "Santa Fe", "San Cristóbal", "Usme",
    "Tunjuelito", "Bosa", "Kennedy", "Fontibón", "Engativá",
    "Suba", "Barrios Unidos", "Teusaquillo", "Los Mártires", "Antonio Nariño",
    "Puente Aranda", "La Candelaria", "Rafael Uribe Uribe", "Ciudad Bolívar",
    "Zona Rosa", "Zona G", "Zona T", "Parque 93", "Chicó", "Rosales",
    "Quinta Camacho", "Cedritos", "La Macarena",
]

_CUISINES = [
    "italiano", "mexicano", "japonés", "chino", "colombiano", "peruano",
    "pizza", "sushi", "tacos", "hamburguesa", "pasta", "árabe", "thai",
    "vegetariano", "vegano", "mariscos", "carne", "pollo", "café", "panadería",
]


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower()


# Matched on folded text, longest first so "chapinero alto" wins over "chapinero"
_NEIGHBORHOOD_KEYS = sorted(
    ((_fold(n), n) for n in _NEIGHBORHOODS), key=lambda kv: len(kv[0]), reverse=True,
)
_CUISINE_KEYS = [(_fold(c), c) for c in _CUISINES]


def _contains_word(haystack: str, phrase: str) -> bool:
    return re.search(rf"(?<!\w){re.escape(phrase)}(?!\w)", haystack) is not None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def detect_restaurant_query(message: str) -> bool:
    """Keyword heuristic: does this message ask for restaurants?"""
    text = _fold(message)
    return any(keyword in text for keyword in _RESTAURANT_KEYWORDS)


def detect_preference_confirmation(message: str) -> bool:
    """Short "yes, use my preferences" style reply.

    Phrases must appear as whole words, and only short messages count, so a
    passing "sí" inside a long unrelated message does not trigger a search.
    """
    text = _fold(message).strip()
    if len(text.split()) > 12:
        return False
    return any(_contains_word(text, phrase) for phrase in _CONFIRMATION_PHRASES)


# ---------------------------------------------------------------------------
# Search parameters
# ---------------------------------------------------------------------------


def extract_search_params(
    message: str,
    preferences: UserPreferences | None = None,
) -> SearchParams:
    text = _fold(message)

    neighborhood = next(
        (name for key, name in _NEIGHBORHOOD_KEYS if _contains_word(text, key)), None,
    )
    query = next((name for key, name in _CUISINE_KEYS if key in text), None)

    if preferences is not None:
        if query is None and preferences.cuisines:
            query = preferences.cuisines[0].strip().lower() or None
        if neighborhood is None and preferences.location:
            neighborhood = preferences.location.strip() or None

    return SearchParams(query=query or DEFAULT_QUERY, neighborhood=neighborhood)
