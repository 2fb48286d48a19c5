"""
github_auth.py — Credenciales bearer para la API de GitHub.

Dos formas de autenticarse, ambas producen un bearer token:

1. StaticTokenProvider: fine-grained PAT (GITHUB_TOKEN) con permiso
   Contents: Read/Write sobre el repo del sitio. Lo más simple.

2. GitHubAppTokenProvider: el repo está instalado en una GitHub App.
       1. Leer private key (.pem)
       2. Firmar JWT RS256 (válido 10 min)
       3. Cambiar JWT por Installation Access Token (válido 1 hora)
       4. Renovar automáticamente 5 min antes de expirar

El token nunca sale del servidor.

Uso:
    from vitrina.publishing.github_auth import build_token_provider
    provider = build_token_provider(config)
    token = provider.get_token()
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from pathlib import Path

import jwt
import requests

from vitrina.config import AppConfig
from vitrina.errors import ConfigError
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.github_auth")


class TokenProvider(ABC):
    """Interfaz: algo que entrega un bearer token vigente."""

    @abstractmethod
    def get_token(self) -> str:
        ...


class StaticTokenProvider(TokenProvider):
    """Token fijo (PAT)."""

    def __init__(self, token: str):
        if not token:
            raise ConfigError("Missing env var: GITHUB_TOKEN")
        self._token = token

    def get_token(self) -> str:
        return self._token


class GitHubAppTokenProvider(TokenProvider):
    """
    Installation token de una GitHub App, cacheado hasta poco antes de expirar.

    Args:
        app_id: ID numérico de la GitHub App
        private_key: Ruta al .pem o el PEM como string (CI/CD)
        installation_id: ID de la instalación en el repo
        api_base: URL base de la API
        timeout: Timeout de la llamada de intercambio
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        installation_id: str,
        api_base: str = "https://api.github.com",
        timeout: float = 30.0,
    ):
        self._app_id = app_id
        self._installation_id = installation_id
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._private_key = self._load_private_key(private_key)

        self._token: str | None = None
        self._token_expires_at: float = 0

    @staticmethod
    def _load_private_key(private_key: str) -> str:
        """
        Carga la private key desde archivo, o la acepta como string PEM.

        Raises:
            ConfigError: Si no es un archivo existente ni un PEM.
        """
        if private_key.startswith("-----BEGIN"):
            return private_key
        ruta = Path(private_key)
        if not ruta.exists():
            raise ConfigError(f"No se encontró la private key en: {ruta}")
        return ruta.read_text(encoding="utf-8")

    def _generate_jwt(self) -> str:
        """JWT RS256: iss = app id, iat con 60 s de margen, exp a 10 min."""
        ahora = int(time.time())
        payload = {
            "iss": self._app_id,
            "iat": ahora - 60,
            "exp": ahora + (10 * 60),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    def get_token(self) -> str:
        """
        Devuelve un Installation Access Token vigente.

        Raises:
            ConfigError: Si GitHub rechaza el intercambio.
        """
        if self._token and time.time() < self._token_expires_at:
            return self._token

        url = (
            f"{self._api_base}/app/installations/"
            f"{self._installation_id}/access_tokens"
        )
        headers = {
            "Authorization": f"Bearer {self._generate_jwt()}",
            "Accept": "application/vnd.github+json",
        }

        try:
            response = requests.post(url, headers=headers, timeout=self._timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ConfigError(
                f"Error al obtener Installation Token: {e}. "
                "Verifica GITHUB_APP_ID, GITHUB_APP_INSTALLATION_ID y la private key."
            ) from e

        self._token = response.json()["token"]
        # El token dura 1 hora; renovamos 5 min antes
        self._token_expires_at = time.time() + (55 * 60)

        logger.success("Autenticación GitHub App exitosa")
        return self._token  # type: ignore[return-value]


def build_token_provider(config: AppConfig) -> TokenProvider:
    """
    Elige el proveedor según la configuración.

    GitHub App tiene prioridad; si no está configurada se usa GITHUB_TOKEN.

    Raises:
        ConfigError: Si no hay ninguna credencial.
    """
    if config.uses_github_app:
        return GitHubAppTokenProvider(
            app_id=config.github_app_id,
            private_key=config.github_app_private_key_path,
            installation_id=config.github_app_installation_id,
            api_base=config.github.api_base,
            timeout=config.github.timeout_seconds,
        )
    return StaticTokenProvider(config.require("GITHUB_TOKEN"))
