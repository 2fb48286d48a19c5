"""
normalizer.py — Valida y repara un documento de contenido arbitrario.

El documento llega del editor, de un JSON importado, del cache local
o de content.json publicado por una versión anterior. No confiamos en
ninguno: normalize() acepta cualquier cosa y SIEMPRE devuelve un
ContentDocument estructuralmente válido. Nunca lanza excepciones.

Política:
    - Si raw no es un objeto → documento por defecto.
    - Fallback por campo: un subtitle inválido no tira el title válido.
    - Números coercionados y acotados (zoom 1..18, slotMinutes >= 10,
      cols/rows 1..64, dow 1..7, height >= 0).
    - type desconocido → "text".
    - Celdas de grid normalizadas recursivamente y ajustadas a cols*rows.
    - IDs conservados si son strings no vacíos; si no, se generan.

Uso:
    from vitrina.content.normalizer import normalize
    doc = normalize(json.loads(texto))
"""

from __future__ import annotations

import math
import secrets
import time
from typing import Any, Mapping

from vitrina.content.models import (
    ALIGNMENTS,
    BACKGROUND_TYPES,
    BLOCK_TYPES,
    CONTENT_VERSION,
    Background,
    Block,
    BookingContent,
    BookingDay,
    ButtonContent,
    ContactsContent,
    ContentDocument,
    Gradient,
    GridContent,
    MapContent,
    MediaContent,
    SpacerContent,
    Site,
    TextContent,
    TextStyle,
    default_block_background,
    default_booking_days,
)

# Límites de los campos numéricos
MIN_ZOOM = 1
MAX_ZOOM = 18
MIN_SLOT_MINUTES = 10
DEFAULT_SLOT_MINUTES = 60
DEFAULT_GRID_SIZE = 2

# cols y rows se acotan a este máximo: cols*rows celdas se reservan siempre
MAX_GRID_SIDE = 64

# Un grid anidado más profundo que esto se guarda con celdas vacías.
# JSON hostil podría anidar miles de niveles y agotar la pila.
MAX_GRID_DEPTH = 16


def new_block_id() -> str:
    """
    Genera un ID de bloque: componente de tiempo + componente aleatorio.

    Formato: b_<ms en hex>_<12 hex aleatorios>. No se verifica colisión;
    48 bits aleatorios dentro del mismo milisegundo la hacen impracticable.
    """
    ms = int(time.time() * 1000)
    return f"b_{ms:x}_{secrets.token_hex(6)}"


# ============================================================
# Coerción de primitivos
# ============================================================

def _is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def _to_number(value: Any) -> int | float | None:
    """
    Convierte a número finito o devuelve None.

    Acepta int, float y strings numéricos. bool y None se rechazan
    (True no es un zoom válido).
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # Enteros JSON con cientos de dígitos
            return None
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    if number.is_integer():
        return int(number)
    return number


def _clamp(value: int | float, low: float | None = None, high: float | None = None) -> int | float:
    if low is not None and value < low:
        value = low
    if high is not None and value > high:
        value = high
    return value


def _str_or(value: Any, default: str) -> str:
    return value if isinstance(value, str) else default


# ============================================================
# Documento
# ============================================================

def normalize(raw: Any) -> ContentDocument:
    """
    Normaliza un documento arbitrario.

    Args:
        raw: Cualquier valor (normalmente el resultado de json.loads).

    Returns:
        ContentDocument que cumple todos los invariantes.
    """
    base = ContentDocument()
    if not _is_mapping(raw):
        return base

    site_raw = raw.get("site")
    if not _is_mapping(site_raw):
        site_raw = {}

    site = Site(
        title=_str_or(site_raw.get("title"), base.site.title),
        subtitle=_str_or(site_raw.get("subtitle"), base.site.subtitle),
        background=normalize_background(site_raw.get("background"), base.site.background),
    )

    blocks_raw = raw.get("blocks")
    blocks: list[Block] = []
    if isinstance(blocks_raw, list):
        for item in blocks_raw:
            block = normalize_block(item)
            if block is not None:
                blocks.append(block)

    return ContentDocument(version=CONTENT_VERSION, site=site, blocks=blocks)


def normalize_background(raw: Any, fallback: Background) -> Background:
    """
    Normaliza un fondo campo por campo usando `fallback` como default.

    Todas las variantes se conservan; `type` solo elige la activa.
    """
    if not _is_mapping(raw):
        return Background(
            type=fallback.type,
            solid=fallback.solid,
            gradient=Gradient(
                from_color=fallback.gradient.from_color,
                to_color=fallback.gradient.to_color,
                angle=fallback.gradient.angle,
            ),
            image_data_url=fallback.image_data_url,
        )

    bg_type = raw.get("type")
    if bg_type not in BACKGROUND_TYPES:
        bg_type = fallback.type

    gradient_raw = raw.get("gradient")
    if not _is_mapping(gradient_raw):
        gradient_raw = {}
    angle = _to_number(gradient_raw.get("angle"))

    image = raw.get("imageDataUrl")

    return Background(
        type=bg_type,
        solid=_str_or(raw.get("solid"), fallback.solid),
        gradient=Gradient(
            from_color=_str_or(gradient_raw.get("from"), fallback.gradient.from_color),
            to_color=_str_or(gradient_raw.get("to"), fallback.gradient.to_color),
            angle=angle if angle is not None else fallback.gradient.angle,
        ),
        image_data_url=image if isinstance(image, str) else None,
    )


# ============================================================
# Bloques
# ============================================================

def normalize_block(raw: Any, _depth: int = 0) -> Block | None:
    """
    Normaliza un bloque. Devuelve None si raw no es un objeto.

    Los payloads inválidos quedan en None; el bloque sobrevive.
    """
    if not _is_mapping(raw):
        return None

    block_type = raw.get("type")
    if block_type not in BLOCK_TYPES:
        block_type = "text"

    raw_id = raw.get("id")
    block_id = raw_id if isinstance(raw_id, str) and raw_id.strip() else new_block_id()

    align = raw.get("align")
    if align not in ALIGNMENTS:
        align = "left"

    grid_raw = raw.get("grid")

    return Block(
        id=block_id,
        type=block_type,
        align=align,
        background=normalize_background(raw.get("background"), default_block_background()),
        text=_normalize_text(raw.get("text")),
        image=_normalize_media(raw.get("image")),
        video=_normalize_media(raw.get("video")),
        grid=_normalize_grid(grid_raw, _depth) if _is_mapping(grid_raw) else None,
        map=_normalize_map(raw.get("map")),
        booking=_normalize_booking(raw.get("booking")),
        button=_normalize_button(raw.get("button")),
        spacer=_normalize_spacer(raw.get("spacer")),
        contacts=_normalize_contacts(raw.get("contacts")),
    )


def _normalize_text(raw: Any) -> TextContent | None:
    if not _is_mapping(raw):
        return None
    style = raw.get("style")
    if not _is_mapping(style):
        style = {}
    return TextContent(
        value=_str_or(raw.get("value"), ""),
        style=TextStyle(
            bold=bool(style.get("bold")),
            italic=bool(style.get("italic")),
            underline=bool(style.get("underline")),
        ),
    )


def _normalize_media(raw: Any) -> MediaContent | None:
    if not _is_mapping(raw) or not isinstance(raw.get("src"), str):
        return None
    return MediaContent(src=raw["src"], alt=_str_or(raw.get("alt"), ""))


def _normalize_grid(raw: Mapping[str, Any], depth: int) -> GridContent:
    """
    Normaliza un grid y fuerza len(cells) == cols * rows.

    cols/rows se truncan a entero y se acotan a 1..MAX_GRID_SIDE.
    """
    cols = _to_number(raw.get("cols"))
    rows = _to_number(raw.get("rows"))
    cols = int(_clamp(cols, 1, MAX_GRID_SIDE)) if cols is not None else DEFAULT_GRID_SIZE
    rows = int(_clamp(rows, 1, MAX_GRID_SIDE)) if rows is not None else DEFAULT_GRID_SIZE
    needed = cols * rows

    cells_raw = raw.get("cells")
    if not isinstance(cells_raw, list):
        cells_raw = []

    cells: list[Block | None] = []
    for cell in cells_raw[:needed]:
        if not _is_mapping(cell) or depth >= MAX_GRID_DEPTH:
            cells.append(None)
        else:
            cells.append(normalize_block(cell, depth + 1))

    # Padding con celdas vacías
    cells.extend([None] * (needed - len(cells)))

    return GridContent(cols=cols, rows=rows, cells=cells)


def _normalize_map(raw: Any) -> MapContent | None:
    if not _is_mapping(raw):
        return None
    lat = _to_number(raw.get("lat"))
    lon = _to_number(raw.get("lon"))
    zoom = _to_number(raw.get("zoom"))
    if lat is None or lon is None or zoom is None:
        return None
    return MapContent(lat=lat, lon=lon, zoom=_clamp(zoom, MIN_ZOOM, MAX_ZOOM))


def _normalize_booking(raw: Any) -> BookingContent | None:
    if not _is_mapping(raw) or not isinstance(raw.get("title"), str):
        return None

    slot = _to_number(raw.get("slotMinutes"))
    slot_minutes = _clamp(slot, MIN_SLOT_MINUTES) if slot is not None else DEFAULT_SLOT_MINUTES

    days_raw = raw.get("days")
    if isinstance(days_raw, list):
        days = []
        for day in days_raw:
            if not _is_mapping(day):
                continue
            dow = _to_number(day.get("dow"))
            start, end = day.get("start"), day.get("end")
            if dow is None or not isinstance(start, str) or not isinstance(end, str):
                continue
            days.append(BookingDay(dow=int(_clamp(dow, 1, 7)), start=start, end=end))
    else:
        days = default_booking_days()

    return BookingContent(title=raw["title"], slot_minutes=slot_minutes, days=days)


def _normalize_button(raw: Any) -> ButtonContent | None:
    if not _is_mapping(raw):
        return None
    label, url = raw.get("label"), raw.get("url")
    if not isinstance(label, str) or not isinstance(url, str):
        return None
    return ButtonContent(label=label, url=url)


def _normalize_spacer(raw: Any) -> SpacerContent | None:
    if not _is_mapping(raw):
        return None
    height = _to_number(raw.get("height"))
    if height is None:
        return None
    return SpacerContent(height=_clamp(height, 0))


def _normalize_contacts(raw: Any) -> ContactsContent | None:
    if not _is_mapping(raw):
        return None
    base = ContactsContent()
    return ContactsContent(
        title=_str_or(raw.get("title"), base.title),
        phone=_str_or(raw.get("phone"), base.phone),
        address=_str_or(raw.get("address"), base.address),
        instagram=_str_or(raw.get("instagram"), base.instagram),
    )
