"""
edit_cache.py — Cache local de ediciones en SQLite.

El editor guarda el documento en curso después de cada cambio para
no perder trabajo si se cierra la sesión. Es persistencia clave-valor
plana: una tabla, una fila por clave, el valor es JSON.

Al leer SIEMPRE se normaliza: el cache puede venir de una versión
anterior del editor o estar corrupto. Un JSON ilegible cuenta como
"no hay cache" (None), igual que una clave inexistente.

Uso:
    cache = EditCache("data/vitrina.db")
    cache.save(doc)
    doc = cache.load()   # ContentDocument | None
    cache.clear()
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path

from vitrina.content.models import ContentDocument
from vitrina.content.normalizer import normalize
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.storage")

DEFAULT_KEY = "bakery.site.content.v1"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
)
"""


class EditCache:
    """
    Almacén clave-valor para el documento en edición.

    Args:
        db_path: Ruta a la base SQLite (se crea si no existe).
        key: Clave bajo la que se guarda el documento.
    """

    def __init__(self, db_path: str | Path = "data/vitrina.db", key: str = DEFAULT_KEY):
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._key = key
        self._ensure_initialized()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), check_same_thread=False)

    def _ensure_initialized(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute(_SCHEMA)
            conn.commit()
        finally:
            conn.close()

    # ================================================================
    # Clave-valor crudo
    # ================================================================

    def get_raw(self, key: str) -> str | None:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set_raw(self, key: str, value: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = datetime('now')",
                (key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    # ================================================================
    # Documento
    # ================================================================

    def save(self, doc: ContentDocument) -> None:
        """Guarda el documento (sobrescribe lo anterior)."""
        self.set_raw(self._key, json.dumps(doc.to_dict(), ensure_ascii=False))

    def load(self) -> ContentDocument | None:
        """
        Lee y normaliza el documento guardado.

        Returns:
            ContentDocument, o None si no hay cache o el JSON está roto.
        """
        raw = self.get_raw(self._key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Cache ilegible en '{self._key}', se ignora")
            return None
        return normalize(data)

    def clear(self) -> None:
        """Borra el documento guardado."""
        self.delete(self._key)
