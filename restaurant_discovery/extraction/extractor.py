"""
Display-time fallback that recovers restaurants from assistant free text.

One entry per marker line (a markdown heading or a numbered item).  An entry
is only kept when it carries a coordinate pair inside the service region;
everything else about it is best effort and defaults to a placeholder.

Nothing produced here is ever written to the entity store.
"""
from __future__ import annotations

import re
import unicodedata

from ..cache.models import Location, PriceLevel, RestaurantRecord, coerce_price_level
from .region import BOGOTA_REGION, BoundingRegion

PLACEHOLDER_NAME = "Restaurante sin nombre"
PLACEHOLDER_ADDRESS = "Dirección no disponible"
PLACEHOLDER_CATEGORY = "Restaurante"
PLACEHOLDER_DESCRIPTION = "Sin descripción"

_MARKER_RE = re.compile(r"^\s*(?:#{1,4}\s+|(?:\*\*)?\s*\d{1,2}[.)]\s+)(?P<title>.+)$")

_LABELED_COORDS_RE = re.compile(
    r"(?:coordenadas|coordinates|coords|ubicaci[oó]n|location|gps)[^\w-]{0,6}"
    r"\(?\s*(?P<lat>-?\d{1,3}\.\d+)\s*[,;]\s*(?P<lng>-?\d{1,3}\.\d+)",
    re.IGNORECASE,
)
_LAT_LNG_RE = re.compile(
    r"lat(?:itud|itude)?[^\w-]{0,4}(?P<lat>-?\d{1,3}\.\d+)"
    r".{0,20}?(?:lng|lon|long|longitud|longitude)[^\w-]{0,4}(?P<lng>-?\d{1,3}\.\d+)",
    re.IGNORECASE,
)
# Unlabeled pairs need four decimals so "$45.000, $60.000" is not a coordinate
_BARE_COORDS_RE = re.compile(r"\(?\s*(?P<lat>-?\d{1,2}\.\d{4,})\s*,\s*(?P<lng>-?\d{1,3}\.\d{4,})")

_LABEL_RE = re.compile(r"^(?P<label>[^\W\d][\w ]{1,25}?)\s*:\s*(?P<value>.+)$")

_FIELD_LABELS = {
    "direccion": "address",
    "ubicacion": "address",
    "address": "address",
    "tipo": "category",
    "tipo de comida": "category",
    "tipo de cocina": "category",
    "cocina": "category",
    "comida": "category",
    "cuisine": "category",
    "category": "category",
    "categoria": "category",
    "precio": "price",
    "precios": "price",
    "rango de precio": "price",
    "rango de precios": "price",
    "price": "price",
    "presupuesto": "price",
    "descripcion": "description",
    "description": "description",
    "por que": "description",
    "why": "description",
    "barrio": "neighborhood",
    "zona": "neighborhood",
    "neighborhood": "neighborhood",
}

_PRICE_WORDS = {
    "gratis": PriceLevel.FREE,
    "free": PriceLevel.FREE,
    "economico": PriceLevel.INEXPENSIVE,
    "barato": PriceLevel.INEXPENSIVE,
    "cheap": PriceLevel.INEXPENSIVE,
    "moderado": PriceLevel.MODERATE,
    "medio": PriceLevel.MODERATE,
    "moderate": PriceLevel.MODERATE,
    "caro": PriceLevel.EXPENSIVE,
    "alto": PriceLevel.EXPENSIVE,
    "expensive": PriceLevel.EXPENSIVE,
    "lujo": PriceLevel.VERY_EXPENSIVE,
}


def _fold(text: str) -> str:
    """Lowercase and strip accents for label comparison."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).lower().strip()


def _clean(text: str) -> str:
    """Drop markdown emphasis, list bullets and leading emoji."""
    text = text.replace("**", "").replace("__", "").strip()
    text = re.sub(r"^[-*•·>\s]+", "", text)
    # Leading symbols such as 📍 or ⭐ before a label
    text = re.sub(r"^[^\w¿¡$(]+", "", text)
    return text.strip()


def split_sections(text: str) -> list[tuple[str, list[str]]]:
    """Return ``(title, body_lines)`` for every marker; preamble is dropped."""
    sections: list[tuple[str, list[str]]] = []
    for line in text.splitlines():
        match = _MARKER_RE.match(line)
        if match:
            sections.append((match.group("title"), []))
        elif sections:
            sections[-1][1].append(line)
    return sections


def parse_coordinates(text: str) -> tuple[float, float] | None:
    for pattern in (_LABELED_COORDS_RE, _LAT_LNG_RE, _BARE_COORDS_RE):
        match = pattern.search(text)
        if match:
            lat, lng = float(match.group("lat")), float(match.group("lng"))
            if -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0:
                return lat, lng
    return None


def parse_price(value: str) -> PriceLevel:
    dollars = len(re.findall(r"\$(?!\s*\d)", value))
    if 1 <= dollars <= 4:
        return coerce_price_level("$" * dollars) or PriceLevel.UNSPECIFIED
    folded = _fold(value)
    for word, level in _PRICE_WORDS.items():
        if word in folded:
            return level
    return PriceLevel.UNSPECIFIED


def _parse_name(title: str) -> str:
    bold = re.search(r"\*\*(.+?)\*\*", title)
    name = bold.group(1) if bold else re.split(r"\s+[-–—|]\s+", title, maxsplit=1)[0]
    name = re.sub(r"^\d{1,2}[.)]\s+", "", _clean(name)).rstrip(":").strip()
    return name or PLACEHOLDER_NAME


def _parse_fields(lines: list[str]) -> tuple[dict[str, str], str | None]:
    fields: dict[str, str] = {}
    first_prose: str | None = None
    for raw in lines:
        line = _clean(raw)
        if not line:
            continue
        match = _LABEL_RE.match(line)
        if match:
            key = _FIELD_LABELS.get(_fold(match.group("label")))
            value = _clean(match.group("value"))
            if key == "address" and parse_coordinates(value) is not None:
                continue
            if key and key not in fields:
                fields[key] = value
            continue
        if first_prose is None and parse_coordinates(line) is None:
            first_prose = line
    return fields, first_prose


def _parse_section(
    index: int,
    title: str,
    lines: list[str],
    region: BoundingRegion,
) -> RestaurantRecord | None:
    coords = parse_coordinates("\n".join([title, *lines]))
    if coords is None or not region.contains(*coords):
        return None

    fields, first_prose = _parse_fields(lines)
    description = fields.get("description") or first_prose or PLACEHOLDER_DESCRIPTION
    category = fields.get("category") or PLACEHOLDER_CATEGORY

    return RestaurantRecord(
        place_id=f"extracted-{index}",
        name=_parse_name(title),
        formatted_address=fields.get("address") or PLACEHOLDER_ADDRESS,
        neighborhood=fields.get("neighborhood"),
        cuisine=category,
        types=[category],
        description=description.splitlines()[0],
        price_level=parse_price(fields["price"]) if "price" in fields else PriceLevel.UNSPECIFIED,
        location=Location(lat=coords[0], lng=coords[1]),
    )


def extract_restaurants(
    free_text: str,
    region: BoundingRegion = BOGOTA_REGION,
) -> list[RestaurantRecord]:
    """Recover display-only restaurant records from assistant text.

    Sections without a coordinate pair, or whose coordinates fall outside
    ``region``, are dropped.  An empty list means there is nothing to show.
    """
    if not free_text or not free_text.strip():
        return []

    records: list[RestaurantRecord] = []
    for title, lines in split_sections(free_text):
        record = _parse_section(len(records) + 1, title, lines, region)
        if record is not None:
            records.append(record)
    return records
