"""
assets.py — Extrae imágenes inline (data: URLs) del documento.

El editor guarda las imágenes subidas como data: URLs dentro del
documento. Antes de publicar hay que sacarlas a archivos propios:

    "data:image/png;base64,iVBORw0..."  →  "/assets/uploads/1718000000000-0.png"

Este módulo es transformación pura: NO hace llamadas de red. Produce
la lista de trabajo (ruta, bytes, mime) que el commit builder sube
en el mismo commit atómico que content.json.

Orden de recorrido (define el sufijo del nombre de archivo):
    1. Fondo del sitio
    2. Bloques en orden; por bloque: image.src, luego background,
       luego las celdas del grid (profundidad primero, row-major)

El documento recibido SE MUTA. El que llama es responsable de pasar
una copia profunda (el publisher lo hace).

Uso:
    from vitrina.content.assets import extract_assets
    resultado = extract_assets(copia)
    for asset in resultado.assets:
        print(asset.path, len(asset.data))
"""

from __future__ import annotations

import base64
import binascii
import re
import time
from dataclasses import dataclass, field

from vitrina.content.models import Background, Block, ContentDocument, iter_blocks
from vitrina.errors import AssetTooLargeError, ValidationError

# Límite por asset decodificado: 6 MiB
MAX_ASSET_BYTES = 6 * 1024 * 1024
UPLOAD_DIR = "assets/uploads"

# Solo estos MIME se extraen. Cualquier otro data: URL se deja intacto.
ALLOWED_MIME_TYPES: dict[str, str] = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

DATA_URL_PATTERN = re.compile(
    r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$",
    re.DOTALL,
)


@dataclass
class InlineImage:
    """Resultado de parsear un data: URL válido."""
    mime_type: str
    extension: str
    data: bytes


@dataclass
class ExtractedAsset:
    """Un archivo listo para subir al repo."""
    path: str
    data: bytes
    mime_type: str


@dataclass
class ExtractionResult:
    """Documento reescrito + assets extraídos en orden de recorrido."""
    document: ContentDocument
    assets: list[ExtractedAsset] = field(default_factory=list)


def _match_inline(value: object) -> re.Match[str] | None:
    if not isinstance(value, str):
        return None
    match = DATA_URL_PATTERN.match(value)
    if match is None or match.group(1) not in ALLOWED_MIME_TYPES:
        return None
    return match


def is_inline_asset(value: object) -> bool:
    """True si el valor es un data: URL de imagen con MIME permitido."""
    return _match_inline(value) is not None


def parse_inline_image(
    value: object,
    max_bytes: int = MAX_ASSET_BYTES,
    field_name: str | None = None,
) -> InlineImage | None:
    """
    Parsea un data: URL de imagen.

    Args:
        value: Valor del campo (cualquier tipo).
        max_bytes: Límite del payload decodificado.
        field_name: Nombre del campo, para el mensaje de error.

    Returns:
        InlineImage, o None si el valor no es un asset pendiente.

    Raises:
        AssetTooLargeError: Si el payload supera max_bytes.
        ValidationError: Si el MIME es válido pero el base64 no, o está vacío.
    """
    match = _match_inline(value)
    if match is None:
        return None

    mime_type = match.group(1)
    payload = "".join(match.group(2).split())

    # Estimar antes de decodificar: no vale la pena decodificar 50 MB
    # para luego rechazarlos
    estimated = (len(payload) * 3) // 4 - payload[-2:].count("=")
    if estimated > max_bytes:
        raise AssetTooLargeError(estimated, max_bytes, path=field_name)

    # El editor a veces omite el padding final
    payload += "=" * (-len(payload) % 4)
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(
            f"Malformed inline image ({mime_type}): {e}",
            stage="extract_assets",
            path=field_name,
        ) from e

    if not data:
        raise ValidationError(
            f"Malformed inline image ({mime_type}): empty payload",
            stage="extract_assets",
            path=field_name,
        )

    if len(data) > max_bytes:
        raise AssetTooLargeError(len(data), max_bytes, path=field_name)

    return InlineImage(
        mime_type=mime_type,
        extension=ALLOWED_MIME_TYPES[mime_type],
        data=data,
    )


class _Extractor:
    """Acumula assets y asigna rutas <upload_dir>/<timestamp>-<index>.<ext>."""

    def __init__(self, timestamp_ms: int, upload_dir: str, max_bytes: int):
        self._timestamp_ms = timestamp_ms
        self._upload_dir = upload_dir.strip("/")
        self._max_bytes = max_bytes
        self.assets: list[ExtractedAsset] = []

    def take(self, value: object, field_name: str) -> str | None:
        """Si value es un asset pendiente, lo registra y devuelve la nueva referencia."""
        image = parse_inline_image(value, self._max_bytes, field_name)
        if image is None:
            return None

        index = len(self.assets)
        path = f"{self._upload_dir}/{self._timestamp_ms}-{index}.{image.extension}"
        self.assets.append(ExtractedAsset(path=path, data=image.data, mime_type=image.mime_type))
        return f"/{path}"

    def visit_background(self, background: Background, field_name: str) -> None:
        # También fondos inactivos: el dato se conserva para volver a "image"
        nueva = self.take(background.image_data_url, f"{field_name}.imageDataUrl")
        if nueva is not None:
            background.image_data_url = nueva

    def visit_blocks(self, blocks: list[Block | None], prefix: str) -> None:
        for i, block in enumerate(blocks):
            if block is None:
                continue
            nombre = f"{prefix}[{i}]"

            if block.image is not None:
                nueva = self.take(block.image.src, f"{nombre}.image.src")
                if nueva is not None:
                    block.image.src = nueva

            self.visit_background(block.background, f"{nombre}.background")

            if block.grid is not None:
                self.visit_blocks(block.grid.cells, f"{nombre}.grid.cells")


def extract_assets(
    doc: ContentDocument,
    *,
    timestamp_ms: int | None = None,
    upload_dir: str = UPLOAD_DIR,
    max_bytes: int = MAX_ASSET_BYTES,
) -> ExtractionResult:
    """
    Extrae todos los assets inline y reescribe sus referencias.

    Args:
        doc: Documento a mutar (pasar una copia profunda).
        timestamp_ms: Marca de tiempo de esta publicación. Se fija una
                      sola vez por pasada; default: ahora.
        upload_dir: Directorio del repo donde van los assets.
        max_bytes: Límite por asset.

    Returns:
        ExtractionResult con el mismo documento (ya reescrito) y los assets.

    Raises:
        ValidationError: Asset demasiado grande o base64 inválido.
            Se lanza antes de cualquier llamada de red.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    extractor = _Extractor(timestamp_ms, upload_dir, max_bytes)
    extractor.visit_background(doc.site.background, "site.background")
    extractor.visit_blocks(doc.blocks, "blocks")

    return ExtractionResult(document=doc, assets=extractor.assets)


def contains_inline_assets(doc: ContentDocument) -> bool:
    """
    True si queda algún asset pendiente en cualquier parte del árbol.

    Revisa todos los campos que pueden llevar imagen, sin importar la
    variante activa del fondo.
    """
    if is_inline_asset(doc.site.background.image_data_url):
        return True

    for block in iter_blocks(doc.blocks):
        if block.image is not None and is_inline_asset(block.image.src):
            return True
        if is_inline_asset(block.background.image_data_url):
            return True
    return False
