"""
errors.py — Jerarquía de errores del pipeline de publicación.

Cada etapa falla rápido y propaga hacia arriba con contexto suficiente
(etapa y archivo) para que el log tenga sentido:

    PublishError
    ├── ValidationError          → antes de cualquier llamada de red
    │   └── AssetTooLargeError
    ├── RemoteError              → la API de GitHub respondió con error
    │   ├── RemoteReadError      → leer ref / commit / tree
    │   ├── RemoteWriteError     → crear blob / tree / commit / ref
    │   │   └── ConflictError    → el branch se movió (CAS rechazado)
    │   └── RemoteTimeoutError   → no hubo respuesta a tiempo
    ├── ConfigError              → falta una credencial o variable
    └── RelayError               → falló el relay de notificaciones

ConflictError hereda de RemoteWriteError pero se atrapa primero:
es el único error que justifica reintentar la secuencia completa.
"""

from __future__ import annotations

from typing import Any


class PublishError(Exception):
    """
    Error base de Vitrina.

    Args:
        message: Causa legible para humanos.
        stage: Etapa donde falló (ej: "create_blob").
        path: Archivo involucrado, si aplica.
    """

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.path = path

    def __str__(self) -> str:
        contexto = []
        if self.stage:
            contexto.append(f"etapa={self.stage}")
        if self.path:
            contexto.append(f"archivo={self.path}")
        if not contexto:
            return self.message
        return f"{self.message} ({', '.join(contexto)})"


class ValidationError(PublishError):
    """Documento o asset inválido. Nunca se llega a la red."""


class AssetTooLargeError(ValidationError):
    """Un asset decodificado supera el limite por archivo."""

    def __init__(self, size: int, limit: int, *, path: str | None = None):
        super().__init__(
            f"Image too large ({size} bytes). Limit is {limit}.",
            stage="extract_assets",
            path=path,
        )
        self.size = size
        self.limit = limit


class RemoteError(PublishError):
    """La API del object store respondió con un error."""

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        path: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, stage=stage, path=path)
        self.status_code = status_code


class RemoteReadError(RemoteError):
    """Fallo al leer branch, commit o tree."""


class RemoteWriteError(RemoteError):
    """Fallo al crear un objeto o al mover el branch."""


class ConflictError(RemoteWriteError):
    """El branch ya no apunta al baseline: alguien publicó en medio."""


class RemoteTimeoutError(RemoteError):
    """
    La llamada no respondió dentro del timeout.

    Si outcome_uncertain es True, la llamada era el update del branch:
    pudo haberse aplicado del lado remoto aunque no vimos la respuesta.
    En ese caso el commit builder deja en pending_commit el commit que
    intentaba publicar, para verificarlo releyendo el branch.
    """

    pending_commit: Any = None

    def __init__(
        self,
        message: str,
        *,
        stage: str | None = None,
        path: str | None = None,
        outcome_uncertain: bool = False,
    ):
        super().__init__(message, stage=stage, path=path)
        self.outcome_uncertain = outcome_uncertain


class ConfigError(PublishError):
    """Falta configuración obligatoria (token, owner, repo...)."""


class RelayError(PublishError):
    """El relay de notificaciones (Telegram) no aceptó el mensaje."""
