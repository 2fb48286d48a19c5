"""
logger.py — Logging de Vitrina: consola Rich + archivo opcional.

Cada mensaje sale dos veces:
- Consola Rich con el tema de Vitrina (CLI, serve)
- logging estándar bajo "vitrina.*": sin handler no va a ningún lado;
  configure_file_logging() lo manda a un archivo rotativo

La CLI activa el archivo si existe VITRINA_LOG_FILE.

Uso:
    from vitrina.utils.logger import get_logger, console
    logger = get_logger("vitrina.publishing")
    logger.step(3, 4, "Creando blobs")
    logger.success("Commit publicado")
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.theme import Theme

ROOT_LOGGER = "vitrina"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

console = Console(theme=Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "step": "bold magenta",
}))

# Sin esto, logging.lastResort repetiría warnings y errores en stderr
_root = logging.getLogger(ROOT_LOGGER)
_root.addHandler(logging.NullHandler())
_root.propagate = False


def configure_file_logging(
    path: str | Path | None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 5,
) -> RotatingFileHandler | None:
    """
    Replica todos los loggers "vitrina.*" a un archivo rotativo.

    Llamarla dos veces con el mismo archivo no duplica líneas.

    Args:
        path: Ruta del archivo (ej: logs/vitrina.log). None o "" no hace nada.
        max_bytes: Tamaño antes de rotar.
        backup_count: Archivos viejos que se conservan.

    Returns:
        El handler instalado, o None si no se pidió archivo.
    """
    if not path:
        return None

    ruta = Path(os.path.abspath(path))
    for handler in _root.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == ruta:
            return handler

    ruta.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(ruta, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    _root.addHandler(handler)
    _root.setLevel(logging.DEBUG)
    return handler


class VitrinaLogger:
    """
    Fachada sobre logging.getLogger(name) que además imprime con Rich.

    Args:
        name: Nombre jerárquico (ej: "vitrina.committer").
    """

    def __init__(self, name: str):
        self.name = name
        self._log = logging.getLogger(name)

    def info(self, message: str) -> None:
        console.print(f"[info]i  {message}[/info]", highlight=False)
        self._log.info(message)

    def success(self, message: str) -> None:
        console.print(f"[success][OK] {message}[/success]", highlight=False)
        self._log.info(f"OK: {message}")

    def warning(self, message: str) -> None:
        console.print(f"[warning][!] {message}[/warning]", highlight=False)
        self._log.warning(message)

    def error(self, message: str) -> None:
        console.print(f"[error][X] {message}[/error]", highlight=False)
        self._log.error(message)

    def step(self, number: int, total: int, message: str) -> None:
        """Paso numerado de un proceso (ej: las 4 etapas del commit)."""
        console.print(f"[step]  [{number}/{total}] {message}[/step]", highlight=False)
        self._log.info(f"[{number}/{total}] {message}")


def get_logger(name: str = ROOT_LOGGER) -> VitrinaLogger:
    """Logger para un módulo. Usar nombres bajo "vitrina." para heredar el archivo."""
    return VitrinaLogger(name)
