"""
models.py — Modelo de datos del documento de contenido.

El editor construye un documento con esta forma:

    ContentDocument
    ├── version: 1
    ├── site: Site (title, subtitle, background)
    └── blocks: [Block, ...]

Cada Block tiene un discriminante `type`, pero TODOS los campos de
payload existen en todos los bloques (pueden ser None). Así el editor
puede cambiar un bloque de "image" a "text" y de regreso sin perder
la imagen: switch_type() solo cambia el discriminante.

Lo mismo pasa con Background: solid, gradient e imageDataUrl siempre
están presentes, `type` solo dice cuál está activo.

El único caso recursivo es el grid: una matriz cols x rows de bloques
opcionales, que a su vez pueden ser grids.

Las claves JSON conservan el formato del editor (camelCase:
imageDataUrl, slotMinutes) para que content.json sea compatible
con el renderer público.

Uso:
    from vitrina.content.models import ContentDocument
    doc = ContentDocument()
    doc.to_json()
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterator

CONTENT_VERSION = 1

ALIGNMENTS = ("left", "center", "right")
BACKGROUND_TYPES = ("solid", "gradient", "image")
BLOCK_TYPES = (
    "text",
    "image",
    "video",
    "mixed",
    "grid",
    "map",
    "booking",
    "button",
    "contacts",
    "divider",
    "spacer",
)


# ============================================================
# Fondos
# ============================================================

@dataclass
class Gradient:
    """Gradiente lineal de dos colores."""
    from_color: str = "#11111a"
    to_color: str = "#1d1633"
    angle: float = 20

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_color, "to": self.to_color, "angle": self.angle}


@dataclass
class Background:
    """
    Fondo de un bloque o del sitio.

    Campos:
        type: Variante activa ("solid", "gradient", "image").
        solid: Color sólido (también fallback si falta la imagen).
        gradient: Configuración del gradiente.
        image_data_url: data: URL (antes de publicar) o ruta "/assets/..."
                        (después de publicar). Nunca ambos.
    """
    type: str = "solid"
    solid: str = "#11111a"
    gradient: Gradient = field(default_factory=Gradient)
    image_data_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "solid": self.solid,
            "gradient": self.gradient.to_dict(),
            "imageDataUrl": self.image_data_url,
        }


def default_block_background() -> Background:
    return Background()


def default_site_background() -> Background:
    return Background(
        type="gradient",
        solid="#0b0b10",
        gradient=Gradient(from_color="#0b0b10", to_color="#1b1330", angle=25),
        image_data_url=None,
    )


# ============================================================
# Payloads de bloque
# ============================================================

@dataclass
class TextStyle:
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"bold": self.bold, "italic": self.italic, "underline": self.underline}


@dataclass
class TextContent:
    value: str = ""
    style: TextStyle = field(default_factory=TextStyle)

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value, "style": self.style.to_dict()}


@dataclass
class MediaContent:
    """Imagen o video: src puede ser data: URL, ruta del repo o URL externa."""
    src: str = ""
    alt: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"src": self.src, "alt": self.alt}


@dataclass
class MapContent:
    lat: float = 0.0
    lon: float = 0.0
    zoom: float = 12

    def to_dict(self) -> dict[str, Any]:
        return {"lat": self.lat, "lon": self.lon, "zoom": self.zoom}


@dataclass
class BookingDay:
    """Horario de un día. dow: 1..7 (lunes..domingo), start/end "HH:MM"."""
    dow: int = 1
    start: str = "10:00"
    end: str = "18:00"

    def to_dict(self) -> dict[str, Any]:
        return {"dow": self.dow, "start": self.start, "end": self.end}


def default_booking_days() -> list[BookingDay]:
    """Lunes a viernes, 10:00-18:00."""
    return [BookingDay(dow=d, start="10:00", end="18:00") for d in range(1, 6)]


@dataclass
class BookingContent:
    title: str = ""
    slot_minutes: float = 60
    days: list[BookingDay] = field(default_factory=default_booking_days)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "slotMinutes": self.slot_minutes,
            "days": [d.to_dict() for d in self.days],
        }


@dataclass
class ButtonContent:
    label: str = ""
    url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "url": self.url}


@dataclass
class SpacerContent:
    height: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {"height": self.height}


@dataclass
class ContactsContent:
    title: str = "Контакты"
    phone: str = ""
    address: str = ""
    instagram: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "phone": self.phone,
            "address": self.address,
            "instagram": self.instagram,
        }


@dataclass
class GridContent:
    """
    Matriz cols x rows de bloques opcionales, en orden row-major.

    Invariante (después de normalizar): len(cells) == cols * rows.
    """
    cols: int = 2
    rows: int = 2
    cells: list[Block | None] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cols": self.cols,
            "rows": self.rows,
            "cells": [c.to_dict() if c is not None else None for c in self.cells],
        }


# ============================================================
# Bloque y documento
# ============================================================

@dataclass
class Block:
    """
    Bloque de contenido.

    Solo los campos que corresponden a `type` son semánticamente
    relevantes, pero todos existen para mantener la forma uniforme.
    """
    id: str
    type: str = "text"
    align: str = "left"
    background: Background = field(default_factory=default_block_background)
    text: TextContent | None = None
    image: MediaContent | None = None
    video: MediaContent | None = None
    grid: GridContent | None = None
    map: MapContent | None = None
    booking: BookingContent | None = None
    button: ButtonContent | None = None
    spacer: SpacerContent | None = None
    contacts: ContactsContent | None = None

    def switch_type(self, new_type: str) -> None:
        """
        Cambia la variante activa sin borrar datos de las demás.

        Raises:
            ValueError: Si el tipo no existe.
        """
        if new_type not in BLOCK_TYPES:
            raise ValueError(f"Tipo de bloque desconocido: {new_type}")
        self.type = new_type

    def to_dict(self) -> dict[str, Any]:
        def _opt(value: Any) -> Any:
            return value.to_dict() if value is not None else None

        return {
            "id": self.id,
            "type": self.type,
            "align": self.align,
            "background": self.background.to_dict(),
            "text": _opt(self.text),
            "image": _opt(self.image),
            "video": _opt(self.video),
            "grid": _opt(self.grid),
            "map": _opt(self.map),
            "booking": _opt(self.booking),
            "button": _opt(self.button),
            "spacer": _opt(self.spacer),
            "contacts": _opt(self.contacts),
        }


@dataclass
class Site:
    title: str = "Булочки & Тортики"
    subtitle: str = "Домашняя выпечка на заказ"
    background: Background = field(default_factory=default_site_background)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "subtitle": self.subtitle,
            "background": self.background.to_dict(),
        }


@dataclass
class ContentDocument:
    """Raíz del documento. version siempre es CONTENT_VERSION."""
    version: int = CONTENT_VERSION
    site: Site = field(default_factory=Site)
    blocks: list[Block] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "site": self.site.to_dict(),
            "blocks": [b.to_dict() for b in self.blocks],
        }

    def to_json(self) -> str:
        """Serializa como JSON indentado (formato de content.json)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)


def iter_blocks(blocks: list[Block | None]) -> Iterator[Block]:
    """
    Recorre bloques en profundidad: cada bloque y luego sus celdas de grid
    (row-major, izquierda a derecha). Las celdas vacías se saltan.
    """
    for block in blocks:
        if block is None:
            continue
        yield block
        if block.grid is not None:
            yield from iter_blocks(block.grid.cells)
