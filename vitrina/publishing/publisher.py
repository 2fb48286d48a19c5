"""
publisher.py — Orquesta una publicación completa del sitio.

    documento crudo
      → normalize()                  (nunca falla)
      → copia profunda               (el documento vivo no se toca)
      → extract_assets()             (puede fallar: ValidationError)
      → content.json + assets        (mismo conjunto de archivos)
      → AtomicCommitBuilder.publish  (un solo commit, CAS del branch)

El flujo va siempre hacia adelante. Si algo falla, el branch queda
como estaba y el editor conserva su documento sin cambios.

Reintentos:
    - ConflictError: otro escritor movió el branch. Se repite la
      secuencia completa de 4 etapas con un baseline fresco.
    - RemoteTimeoutError al mover el branch: el resultado es incierto.
      Primero se relee el branch; si ya apunta a nuestro commit, la
      publicación fue exitosa. Si no, se reintenta como un conflicto.

Uso:
    publisher = SitePublisher(builder, branch="main", settings=config.publish)
    outcome = publisher.publish(documento)
    print(outcome.commit_url)
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from vitrina.config import AppConfig, PublishConfig
from vitrina.content.assets import contains_inline_assets, extract_assets
from vitrina.content.models import ContentDocument
from vitrina.content.normalizer import normalize
from vitrina.errors import ConflictError, PublishError, RemoteTimeoutError, ValidationError
from vitrina.notifications.notifier import Event, Notifier
from vitrina.notifications.telegram import build_notifier
from vitrina.publishing.committer import AtomicCommitBuilder, CommitResult, RepoFile
from vitrina.publishing.github_store import build_store
from vitrina.publishing.store import ObjectStore
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.publisher")


@dataclass
class PreparedPublish:
    """Documento reescrito + archivos listos para el commit."""
    document: ContentDocument
    files: list[RepoFile]
    asset_paths: list[str] = field(default_factory=list)


@dataclass
class PublishOutcome:
    """Resultado consolidado de una publicación exitosa."""
    commit_sha: str
    commit_url: str
    asset_paths: list[str]
    attempts: int
    document: ContentDocument


def default_commit_message(template: str = "Publish content ({timestamp})") -> str:
    """Ej: 'Publish content (2026-10-18T12:00:00.000Z)'."""
    ahora = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return template.format(timestamp=ahora.replace("+00:00", "Z"))


def prepare_publish(
    raw_document: Any,
    settings: PublishConfig,
    *,
    timestamp_ms: int | None = None,
) -> PreparedPublish:
    """
    Normaliza, copia, extrae assets y serializa content.json.

    No hace llamadas de red; la CLI lo usa para --dry-run.

    Raises:
        ValidationError: Asset demasiado grande o mal codificado.
    """
    if isinstance(raw_document, ContentDocument):
        raw_document = raw_document.to_dict()

    documento = copy.deepcopy(normalize(raw_document))

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    extraccion = extract_assets(
        documento,
        timestamp_ms=timestamp_ms,
        upload_dir=settings.upload_dir,
        max_bytes=settings.max_asset_bytes,
    )
    if contains_inline_assets(extraccion.document):
        raise ValidationError(
            "Inline image left in document after extraction",
            stage="extract_assets",
        )

    files = [RepoFile(path=a.path, data=a.data) for a in extraccion.assets]
    # content.json va en el MISMO conjunto que sus assets
    files.append(RepoFile(
        path=settings.content_path,
        data=(extraccion.document.to_json() + "\n").encode("utf-8"),
    ))

    return PreparedPublish(
        document=extraccion.document,
        files=files,
        asset_paths=[a.path for a in extraccion.assets],
    )


class SitePublisher:
    """
    Publica el documento del sitio como un commit atómico.

    Args:
        builder: Commit builder sobre el object store.
        branch: Branch donde vive el sitio publicado.
        settings: Política de publicación (rutas, límites, reintentos).
        notifier: Opcional, avisa éxito o fallo al operador.
    """

    def __init__(
        self,
        builder: AtomicCommitBuilder,
        branch: str = "main",
        settings: PublishConfig | None = None,
        notifier: Notifier | None = None,
    ):
        self._builder = builder
        self._branch = branch
        self._settings = settings or PublishConfig()
        self._notifier = notifier

    def publish(self, raw_document: Any, *, message: str | None = None) -> PublishOutcome:
        """
        Publica el documento.

        Args:
            raw_document: dict del editor o ContentDocument. No se muta.
            message: Mensaje del commit (default: con timestamp UTC).

        Returns:
            PublishOutcome con el commit nuevo.

        Raises:
            PublishError: Cualquier falla, ya con etapa y archivo.
        """
        try:
            outcome = self._publish(raw_document, message)
        except PublishError as e:
            logger.error(f"Publicación fallida: {e}")
            self._notify(Event.PUBLISH_FAILED, {"error_message": str(e)})
            raise

        self._notify(Event.SITE_PUBLISHED, {
            "url": outcome.commit_url,
            "assets": len(outcome.asset_paths),
        })
        return outcome

    def _publish(self, raw_document: Any, message: str | None) -> PublishOutcome:
        preparado = prepare_publish(raw_document, self._settings)
        mensaje = message or default_commit_message(self._settings.commit_message)
        max_intentos = max(0, self._settings.max_conflict_retries) + 1

        logger.info(
            f"Publicando {len(preparado.asset_paths)} asset(s) + "
            f"{self._settings.content_path} en '{self._branch}'"
        )

        for intento in range(1, max_intentos + 1):
            try:
                commit = self._builder.publish(self._branch, preparado.files, mensaje)
                return self._outcome(commit, preparado, intento)
            except ConflictError as e:
                if intento >= max_intentos:
                    raise
                logger.warning(f"Conflicto (intento {intento}/{max_intentos}): {e}. Reintentando")
            except RemoteTimeoutError as e:
                pendiente = e.pending_commit
                if not e.outcome_uncertain or not isinstance(pendiente, CommitResult):
                    raise
                if self._builder.is_published(self._branch, pendiente.sha):
                    logger.success(f"Update incierto verificado: '{self._branch}' → {pendiente.sha[:7]}")
                    return self._outcome(pendiente, preparado, intento)
                if intento >= max_intentos:
                    raise
                logger.warning(
                    f"Timeout al mover '{self._branch}' y el branch no cambió "
                    f"(intento {intento}/{max_intentos}). Reintentando"
                )

        # El loop siempre retorna o lanza
        raise AssertionError("unreachable")

    @staticmethod
    def _outcome(commit: CommitResult, preparado: PreparedPublish, intento: int) -> PublishOutcome:
        return PublishOutcome(
            commit_sha=commit.sha,
            commit_url=commit.url,
            asset_paths=preparado.asset_paths,
            attempts=intento,
            document=preparado.document,
        )

    def _notify(self, event: Event, data: dict[str, Any]) -> None:
        if self._notifier is not None:
            self._notifier.notify(event, data)


def build_publisher(
    config: AppConfig,
    store: ObjectStore | None = None,
    notifier: Notifier | None = None,
) -> SitePublisher:
    """
    Arma el pipeline completo desde la configuración.

    Args:
        config: Configuración cargada.
        store: Object store a usar (default: GitHub según config).
        notifier: Notifier a usar (default: según config.telegram).
    """
    if store is None:
        store = build_store(config)
    if notifier is None:
        notifier = build_notifier(config)

    builder = AtomicCommitBuilder(store, blob_workers=config.publish.blob_workers)
    return SitePublisher(
        builder,
        branch=config.github.branch,
        settings=config.publish,
        notifier=notifier,
    )
