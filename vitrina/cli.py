"""
cli.py — Punto de entrada de Vitrina por línea de comandos.

Comandos disponibles:
    python -m vitrina publish content.json            → Publica (commit atómico)
    python -m vitrina publish content.json --dry-run  → Muestra qué se subiría
    python -m vitrina normalize draft.json -o out.json → Solo normaliza
    python -m vitrina status                          → Verifica acceso al repo
    python -m vitrina config --show                   → Muestra configuración
    python -m vitrina config --validate               → Valida configuración
    python -m vitrina cache save|load|clear           → Cache local de ediciones
    python -m vitrina serve                           → Servidor HTTP

Uso desde código (testing):
    from vitrina.cli import main
    main(["publish", "content.json", "--dry-run"])
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
from rich.panel import Panel
from rich.table import Table

from vitrina import __version__
from vitrina.config import load_config
from vitrina.content.normalizer import normalize
from vitrina.errors import PublishError
from vitrina.publishing.github_store import build_store
from vitrina.publishing.publisher import build_publisher, prepare_publish
from vitrina.storage.edit_cache import EditCache
from vitrina.utils.logger import console as rich_console
from vitrina.utils.logger import configure_file_logging, get_logger

logger = get_logger("vitrina.cli")


@click.group()
@click.version_option(version=__version__, prog_name="Vitrina")
@click.option(
    "--log-file",
    envvar="VITRINA_LOG_FILE",
    default=None,
    type=click.Path(dir_okay=False),
    help="Replica el log a este archivo rotativo (env: VITRINA_LOG_FILE)",
)
def main(log_file):
    """🌐 Vitrina — Publica el sitio de una página en GitHub."""
    configure_file_logging(log_file)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--message", "-m", default=None, help="Mensaje del commit")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Normaliza y extrae imágenes, NO llama a GitHub",
)
def publish(file: Path, message: str | None, dry_run: bool):
    """🚀 Publica un documento como un solo commit."""
    raw = _read_json(file)

    try:
        cfg = load_config()

        if dry_run:
            preparado = prepare_publish(raw, cfg.publish)
            tabla = Table(title="Archivos del commit (dry-run)")
            tabla.add_column("Ruta", style="cyan")
            tabla.add_column("Bytes", style="green", justify="right")
            for f in preparado.files:
                tabla.add_row(f.path, str(len(f.data)))
            rich_console.print(tabla)
            logger.success(f"{len(preparado.asset_paths)} imagen(es) extraída(s), nada se publicó")
            return

        publisher = build_publisher(cfg)
        outcome = publisher.publish(raw, message=message)

    except PublishError as e:
        logger.error(str(e))
        sys.exit(1)

    rich_console.print(Panel(
        f"[bold]Commit:[/bold] {outcome.commit_sha[:7]}\n"
        f"[bold]URL:[/bold] {outcome.commit_url}\n"
        f"[bold]Imágenes:[/bold] {len(outcome.asset_paths)}\n"
        f"[bold]Intentos:[/bold] {outcome.attempts}",
        title="🌐 ¡Sitio publicado!",
        border_style="green",
    ))


@main.command("normalize")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Archivo destino (default: stdout)")
def normalize_cmd(file: Path, output: Path | None):
    """🧹 Normaliza un documento sin publicarlo."""
    doc = normalize(_read_json(file))
    texto = doc.to_json() + "\n"

    if output is None:
        click.echo(texto, nl=False)
        return

    output.write_text(texto, encoding="utf-8")
    logger.success(f"Documento normalizado en {output} ({len(doc.blocks)} bloque(s))")


@main.command()
def status():
    """🏥 Verifica que el token tenga acceso al repo."""
    cfg = load_config()
    try:
        data = build_store(cfg).get_repository()
    except PublishError as e:
        logger.error(str(e))
        sys.exit(1)

    tabla = Table(title="Repositorio destino")
    tabla.add_column("Parámetro", style="cyan")
    tabla.add_column("Valor", style="green")
    tabla.add_row("Owner", cfg.github.owner)
    tabla.add_row("Repo", cfg.github.repo)
    tabla.add_row("Branch", cfg.github.branch)
    tabla.add_row("Default branch", str(data.get("default_branch")))
    tabla.add_row("Privado", "Sí" if data.get("private") else "No")
    rich_console.print(tabla)


@main.command()
@click.option("--show", is_flag=True, help="Muestra la configuración actual")
@click.option("--validate", is_flag=True, help="Valida la configuración")
def config(show: bool, validate: bool):
    """⚙️ Gestiona la configuración de Vitrina."""
    cfg = load_config()

    if show:
        tabla = Table(title="Configuración de Vitrina")
        tabla.add_column("Parámetro", style="cyan")
        tabla.add_column("Valor", style="green")

        tabla.add_row("Repo", f"{cfg.github.owner or '?'}/{cfg.github.repo or '?'}")
        tabla.add_row("Branch", cfg.github.branch)
        tabla.add_row("Timeout (s)", str(cfg.github.timeout_seconds))
        tabla.add_row("content.json", cfg.publish.content_path)
        tabla.add_row("Uploads", cfg.publish.upload_dir)
        tabla.add_row("Límite por imagen", f"{cfg.publish.max_asset_bytes} bytes")
        tabla.add_row("Reintentos por conflicto", str(cfg.publish.max_conflict_retries))
        tabla.add_row("Telegram", "✅ Activo" if cfg.telegram.enabled else "❌ Inactivo")
        tabla.add_row("GitHub Token", "✅ Configurado" if cfg.github_token else "❌ Falta")
        tabla.add_row("GitHub App", "✅ Configurada" if cfg.uses_github_app else "❌ Falta")

        rich_console.print(tabla)

    if validate:
        _validate_config(cfg)


@main.group()
def cache():
    """💾 Cache local del documento en edición."""
    pass


@cache.command("save")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def cache_save(file: Path):
    """Guarda (normalizado) un documento en el cache."""
    cfg = load_config()
    doc = normalize(_read_json(file))
    EditCache(cfg.cache.path, key=cfg.cache.key).save(doc)
    logger.success(f"Documento guardado en cache ({cfg.cache.key})")


@cache.command("load")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Archivo destino (default: stdout)")
def cache_load(output: Path | None):
    """Lee el documento del cache."""
    cfg = load_config()
    doc = EditCache(cfg.cache.path, key=cfg.cache.key).load()
    if doc is None:
        logger.warning("No hay documento en cache")
        sys.exit(1)

    texto = doc.to_json() + "\n"
    if output is None:
        click.echo(texto, nl=False)
    else:
        output.write_text(texto, encoding="utf-8")
        logger.success(f"Cache escrito en {output}")


@cache.command("clear")
def cache_clear():
    """Borra el documento del cache."""
    cfg = load_config()
    EditCache(cfg.cache.path, key=cfg.cache.key).clear()
    logger.success("Cache borrado")


@main.command()
@click.option("--host", default="127.0.0.1", help="Interfaz donde escuchar")
@click.option("--port", "-p", default=8000, type=int, help="Puerto")
def serve(host: str, port: int):
    """🌐 Levanta el servidor HTTP (FastAPI)."""
    import uvicorn

    from vitrina.api import create_app

    logger.info(f"Servidor en http://{host}:{port}")
    uvicorn.run(create_app(), host=host, port=port)


# ============================================================
# Funciones auxiliares (privadas)
# ============================================================

def _read_json(path: Path) -> Any:
    """Lee un JSON o termina con exit 1."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"No se pudo leer {path}: {e}")
        sys.exit(1)


def _validate_config(cfg):
    """Valida la configuración y muestra resultado."""
    problemas = []

    if not cfg.github.owner:
        problemas.append("GITHUB_OWNER no configurado")
    if not cfg.github.repo:
        problemas.append("GITHUB_REPO no configurado")
    if not cfg.github_token and not cfg.uses_github_app:
        problemas.append("GITHUB_TOKEN no configurado (ni GitHub App)")
    if cfg.telegram.enabled and not (cfg.telegram_bot_token and cfg.telegram_chat_id):
        problemas.append("Telegram activo pero falta TELEGRAM_BOT_TOKEN o TELEGRAM_CHAT_ID")

    if problemas:
        for p in problemas:
            logger.error(p)
        sys.exit(1)
    else:
        logger.success("Configuración válida")


if __name__ == "__main__":
    main()
