"""
config.py — Carga y gestiona la configuración de Vitrina.

Se encarga de:
1. Cargar config.yaml (configuración general, se versiona)
2. Cargar .env (secretos: tokens de GitHub y Telegram, NUNCA se versiona)
3. Resolver ${VARIABLES} de entorno dentro de config.yaml
4. Exponer todo como dataclasses tipadas

El token de GitHub vive solo del lado servidor: el editor en el
navegador nunca lo ve, solo llama a /api/publish.

Uso:
    from vitrina.config import load_config
    config = load_config()
    print(config.github.branch)  # "main"
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from vitrina.errors import ConfigError


# ============================================================
# Dataclasses de configuración
# ============================================================

@dataclass
class GitHubConfig:
    """Repositorio destino y cliente HTTP."""
    owner: str = ""
    repo: str = ""
    branch: str = "main"
    api_base: str = "https://api.github.com"
    timeout_seconds: float = 30.0


@dataclass
class PublishConfig:
    """Política del pipeline de publicación."""
    content_path: str = "content.json"
    upload_dir: str = "assets/uploads"
    max_asset_bytes: int = 6 * 1024 * 1024
    max_conflict_retries: int = 2
    blob_workers: int = 4
    commit_message: str = "Publish content ({timestamp})"


@dataclass
class TelegramConfig:
    """Relay de notificaciones (reservas y publicaciones)."""
    enabled: bool = False
    notify_on: list[str] = field(default_factory=lambda: [
        "site_published", "publish_failed",
    ])


@dataclass
class CacheConfig:
    """Cache local de ediciones (SQLite clave-valor)."""
    path: str = "data/vitrina.db"
    key: str = "bakery.site.content.v1"


@dataclass
class AppConfig:
    """Configuración completa de la aplicación."""
    github: GitHubConfig = field(default_factory=GitHubConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    # Valores del .env (no están en config.yaml)
    github_token: str = ""
    github_app_id: str = ""
    github_app_private_key_path: str = ""
    github_app_installation_id: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    def require(self, name: str) -> str:
        """
        Devuelve un valor obligatorio o lanza ConfigError.

        Args:
            name: Nombre de la variable de entorno (ej: "GITHUB_TOKEN").

        Raises:
            ConfigError: "Missing env var: NAME" si está vacío.
        """
        valores = {
            "GITHUB_TOKEN": self.github_token,
            "GITHUB_OWNER": self.github.owner,
            "GITHUB_REPO": self.github.repo,
            "GITHUB_APP_ID": self.github_app_id,
            "GITHUB_APP_PRIVATE_KEY_PATH": self.github_app_private_key_path,
            "GITHUB_APP_INSTALLATION_ID": self.github_app_installation_id,
            "TELEGRAM_BOT_TOKEN": self.telegram_bot_token,
            "TELEGRAM_CHAT_ID": self.telegram_chat_id,
        }
        if name not in valores:
            raise KeyError(f"Variable desconocida: {name}")
        valor = valores[name]
        if not valor:
            raise ConfigError(f"Missing env var: {name}")
        return valor

    @property
    def uses_github_app(self) -> bool:
        """True si hay credenciales de GitHub App (tienen prioridad sobre el PAT)."""
        return bool(
            self.github_app_id
            and self.github_app_private_key_path
            and self.github_app_installation_id
        )


# ============================================================
# Funciones de carga
# ============================================================

def _resolve_env_vars(value: str) -> str:
    """
    Resuelve variables de entorno en un string.

    Ejemplo:
        "${GITHUB_OWNER}" → "mi-usuario"

    Si la variable no existe se deja el placeholder tal cual.
    """
    patron = re.compile(r"\$\{(\w+)\}")

    def reemplazar(match: re.Match) -> str:
        return os.environ.get(match.group(1), match.group(0))

    return patron.sub(reemplazar, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Resuelve ${VARIABLES} recursivamente en dicts y listas del YAML."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


def _dict_to_dataclass(data: Any, cls: type) -> Any:
    """
    Convierte un diccionario a una dataclass, ignorando keys desconocidas.

    Una key nueva en el YAML que el código aún no conoce no debe
    impedir que arranque el servidor.
    """
    if not isinstance(data, dict):
        return cls()
    campos_validos = {f.name for f in cls.__dataclass_fields__.values()}
    datos_filtrados = {k: v for k, v in data.items() if k in campos_validos}
    return cls(**datos_filtrados)


def _find_config_dir() -> Path:
    """
    Busca hacia arriba desde el cwd el directorio que contiene config.yaml.

    Si no lo encuentra, usa el directorio actual.
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / "config.yaml").exists():
            return parent
    return current


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Carga la configuración completa de Vitrina.

    Pasos:
    1. Carga .env para tener las variables de entorno disponibles
    2. Lee config.yaml (si no existe, valores por defecto)
    3. Resuelve ${VARIABLES} en los valores del YAML
    4. Convierte cada sección a su dataclass
    5. Agrega secretos y overrides del entorno

    Args:
        config_path: Ruta al config.yaml. Si es None, busca automáticamente.

    Returns:
        AppConfig lista para usar.
    """
    proyecto_dir = _find_config_dir()
    env_path = proyecto_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = proyecto_dir / "config.yaml"

    raw_config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}

    config_resuelto = _resolve_env_recursive(raw_config)

    app_config = AppConfig(
        github=_dict_to_dataclass(config_resuelto.get("github", {}), GitHubConfig),
        publish=_dict_to_dataclass(config_resuelto.get("publish", {}), PublishConfig),
        telegram=_dict_to_dataclass(config_resuelto.get("telegram", {}), TelegramConfig),
        cache=_dict_to_dataclass(config_resuelto.get("cache", {}), CacheConfig),
    )

    # Las variables de entorno ganan sobre config.yaml (así se despliega)
    app_config.github.owner = os.environ.get("GITHUB_OWNER", app_config.github.owner)
    app_config.github.repo = os.environ.get("GITHUB_REPO", app_config.github.repo)
    app_config.github.branch = os.environ.get("GITHUB_BRANCH") or app_config.github.branch

    app_config.github_token = os.environ.get("GITHUB_TOKEN", "")
    app_config.github_app_id = os.environ.get("GITHUB_APP_ID", "")
    app_config.github_app_private_key_path = os.environ.get(
        "GITHUB_APP_PRIVATE_KEY_PATH", ""
    )
    app_config.github_app_installation_id = os.environ.get(
        "GITHUB_APP_INSTALLATION_ID", ""
    )
    app_config.telegram_bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    app_config.telegram_chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")

    return app_config
