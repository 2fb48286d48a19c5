"""
api.py — Servidor FastAPI de Vitrina.

El editor en el navegador nunca ve el token de GitHub: manda el
documento a /api/publish y el servidor hace el commit.

Endpoints:
    GET  /health               — Health check para monitoreo
    POST /api/publish          — Publica {content} como un commit atómico
    GET  /api/github-status    — Metadata del repo destino
    POST /api/booking-request  — Reenvía una reserva al operador (Telegram)

Errores → {"error": "..."} con status según el tipo:
    400 ValidationError · 409 ConflictError · 504 RemoteTimeoutError
    502 RemoteError / RelayError · 500 ConfigError y el resto

Uso:
    python -m vitrina serve
    python -m vitrina serve --port 8080
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from vitrina import __version__
from vitrina.config import AppConfig, load_config
from vitrina.errors import (
    ConflictError,
    PublishError,
    RelayError,
    RemoteError,
    RemoteTimeoutError,
    ValidationError,
)
from vitrina.notifications.booking import BookingRelay, BookingRequest
from vitrina.notifications.telegram import TelegramChannel
from vitrina.publishing.github_store import GitHubObjectStore, build_store
from vitrina.publishing.publisher import SitePublisher, build_publisher
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.api")

# ================================================================
# App factory
# ================================================================

_start_time: float = 0.0


def create_app(
    config: AppConfig | None = None,
    publisher: SitePublisher | None = None,
    store: GitHubObjectStore | None = None,
    relay: BookingRelay | None = None,
) -> FastAPI:
    """
    Crea la app FastAPI de Vitrina.

    Lo que no se pasa se arma desde la configuración en el primer
    request que lo necesita: así el servidor arranca aunque falte un
    secreto, y el endpoint afectado responde con el error.

    Args:
        config: Configuración (default: load_config()).
        publisher: Pipeline de publicación ya armado.
        store: Store para /api/github-status.
        relay: Relay de reservas.

    Returns:
        FastAPI app lista para servir.
    """
    global _start_time
    _start_time = time.time()

    app = FastAPI(
        title="Vitrina API",
        description="Publicación atómica del sitio y relay de reservas",
        version=__version__,
    )

    app.state.config = config or load_config()
    app.state.publisher = publisher
    app.state.store = store
    app.state.relay = relay

    _register_routes(app)

    return app


def _error_response(error: PublishError) -> JSONResponse:
    """Traduce un error del pipeline a {"error"} con su status HTTP."""
    if isinstance(error, ValidationError):
        status_code = 400
    elif isinstance(error, ConflictError):
        status_code = 409
    elif isinstance(error, RemoteTimeoutError):
        status_code = 504
    elif isinstance(error, (RemoteError, RelayError)):
        status_code = 502
    else:
        status_code = 500
    return JSONResponse(content={"error": str(error)}, status_code=status_code)


async def _read_json(request: Request) -> Any:
    """Body JSON o None si no se puede leer."""
    try:
        return await request.json()
    except ValueError:
        return None


# ================================================================
# Routes
# ================================================================


def _register_routes(app: FastAPI) -> None:
    """Registra todos los endpoints."""

    def get_publisher() -> SitePublisher:
        if app.state.publisher is None:
            app.state.publisher = build_publisher(app.state.config)
        return app.state.publisher

    def get_store() -> GitHubObjectStore:
        if app.state.store is None:
            app.state.store = build_store(app.state.config)
        return app.state.store

    def get_relay() -> BookingRelay:
        if app.state.relay is None:
            config: AppConfig = app.state.config
            app.state.relay = BookingRelay(TelegramChannel(
                bot_token=config.require("TELEGRAM_BOT_TOKEN"),
                chat_id=config.require("TELEGRAM_CHAT_ID"),
            ))
        return app.state.relay

    @app.get("/health")
    async def health():
        """Health check para monitoreo."""
        return {
            "status": "healthy",
            "version": __version__,
            "uptime_seconds": int(time.time() - _start_time),
            "timestamp": datetime.now().isoformat(),
        }

    @app.post("/api/publish")
    async def publish(request: Request):
        """
        Publica el documento del editor.

        Body: {"content": {...}}
        Respuesta: {ok, commitUrl, commitSha, assets}
        """
        body = await _read_json(request)
        content = body.get("content") if isinstance(body, dict) else None
        if not isinstance(content, dict):
            return JSONResponse(content={"error": "Missing content"}, status_code=400)

        try:
            publisher = get_publisher()
            outcome = await run_in_threadpool(publisher.publish, content)
        except PublishError as e:
            return _error_response(e)

        return {
            "ok": True,
            "commitUrl": outcome.commit_url,
            "commitSha": outcome.commit_sha,
            "assets": outcome.asset_paths,
        }

    @app.get("/api/github-status")
    async def github_status():
        """Verifica que el token tenga acceso al repo destino."""
        config: AppConfig = app.state.config
        try:
            store = get_store()
            data = await run_in_threadpool(store.get_repository)
        except PublishError as e:
            return _error_response(e)

        return {
            "owner": config.github.owner,
            "repo": config.github.repo,
            "branch": config.github.branch,
            "defaultBranch": data.get("default_branch"),
            "private": data.get("private"),
        }

    @app.post("/api/booking-request")
    async def booking_request(request: Request):
        """Reenvía una solicitud de reserva del sitio público."""
        body = await _read_json(request)
        try:
            relay = get_relay()
            booking = BookingRequest.from_payload(body)
            await run_in_threadpool(relay.submit, booking)
        except PublishError as e:
            logger.warning(f"Reserva rechazada: {e}")
            return _error_response(e)

        return {"ok": True}
