"""
committer.py — Un commit atómico con todos los archivos de una publicación.

Dado un conjunto de (ruta, bytes) — assets extraídos + content.json —
crea UN commit nuevo y mueve el branch hacia él solo si el branch no
se movió desde que empezamos. O entra todo junto, o no cambia nada.

Las cuatro etapas, en orden estricto:

    1. Resolver el tip del branch  → baseline (None en el primer publish)
    2. Resolver el tree base       → tree del baseline
    3. Crear un blob por archivo   → se puede paralelizar
    4. Tree (base + overlays) → commit (parent = baseline) → mover branch

El paso 4 termina con un compare-and-swap: update sin force. Si otro
escritor avanzó el branch, GitHub rechaza el update y lanzamos
ConflictError. Reintentar significa repetir LAS CUATRO etapas con un
baseline fresco, nunca solo el último paso.

Hasta que el branch se mueve, el sitio publicado no cambia: los blobs,
tree y commit creados quedan huérfanos si algo falla, y el GC del
store los limpia. No intentamos borrarlos.

Uso:
    builder = AtomicCommitBuilder(store)
    result = builder.publish("main", files, "Publish content (...)")
    print(result.url)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from vitrina.errors import ConflictError, RemoteTimeoutError, ValidationError
from vitrina.publishing.store import ObjectStore, TreeEntry
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.committer")

TOTAL_STAGES = 4


@dataclass
class RepoFile:
    """Un archivo a escribir en el repo (ruta relativa a la raíz)."""
    path: str
    data: bytes


@dataclass
class CommitResult:
    """Resultado de un publish exitoso."""
    sha: str
    url: str
    tree_sha: str
    parent_sha: str | None
    branch: str


def validate_files(files: list[RepoFile]) -> None:
    """
    Verifica el conjunto de archivos antes de tocar la red.

    Raises:
        ValidationError: Conjunto vacío, rutas absolutas, con '..',
            o duplicadas.
    """
    if not files:
        raise ValidationError("Nothing to publish: empty file set", stage="validate")

    vistos: set[str] = set()
    for f in files:
        partes = f.path.split("/")
        if (
            not f.path
            or f.path.startswith("/")
            or any(p in ("", ".", "..") for p in partes)
        ):
            raise ValidationError("Invalid repository path", stage="validate", path=f.path)
        if f.path in vistos:
            raise ValidationError("Duplicate path in file set", stage="validate", path=f.path)
        vistos.add(f.path)


class AtomicCommitBuilder:
    """
    Construye un commit atómico sobre un ObjectStore.

    Args:
        store: Object store (GitHub o el fake de los tests).
        blob_workers: Llamadas create_blob en paralelo. 1 = secuencial.
    """

    def __init__(self, store: ObjectStore, blob_workers: int = 4):
        self._store = store
        self._blob_workers = max(1, blob_workers)

    def publish(
        self,
        branch: str,
        files: list[RepoFile],
        message: str,
        *,
        baseline: str | None = None,
    ) -> CommitResult:
        """
        Publica `files` como un solo commit sobre `branch`.

        Args:
            branch: Branch destino.
            files: Todos los archivos de la publicación (assets + documento).
            message: Mensaje del commit.
            baseline: Sha que el que llama espera encontrar en el branch.
                      Si se pasa y el branch apunta a otro lado, falla
                      con ConflictError antes de crear objetos.

        Returns:
            CommitResult con el sha y URL del commit nuevo.

        Raises:
            ValidationError: Conjunto de archivos inválido.
            RemoteReadError / RemoteWriteError: Falla de la API.
            ConflictError: El branch se movió (reintentar todo).
            RemoteTimeoutError: Alguna llamada no respondió a tiempo.
        """
        validate_files(files)

        # Etapa 1: baseline
        logger.step(1, TOTAL_STAGES, f"Leyendo tip de '{branch}'")
        tip = self._store.get_branch_tip(branch)
        if baseline is not None and tip != baseline:
            raise ConflictError(
                f"Branch '{branch}' is at {tip}, expected {baseline}",
                stage="read_ref",
            )

        # Etapa 2: tree base (no hay en el primer publish)
        base_tree: str | None = None
        if tip is not None:
            logger.step(2, TOTAL_STAGES, f"Leyendo tree del commit {tip[:7]}")
            base_tree = self._store.get_commit_tree(tip)
        else:
            logger.step(2, TOTAL_STAGES, f"Branch '{branch}' no existe: primer publish")

        # Etapa 3: blobs
        logger.step(3, TOTAL_STAGES, f"Creando {len(files)} blob(s)")
        entries = self._create_blobs(files)

        # Etapa 4: tree + commit + CAS del branch
        logger.step(4, TOTAL_STAGES, "Creando tree y commit")
        tree_sha = self._store.create_tree(entries, base_tree)
        parents = [tip] if tip is not None else []
        commit = self._store.create_commit(message, tree_sha, parents)

        result = CommitResult(
            sha=commit.sha,
            url=commit.url,
            tree_sha=tree_sha,
            parent_sha=tip,
            branch=branch,
        )

        try:
            if tip is None:
                self._store.create_branch(branch, commit.sha)
            else:
                self._store.update_branch(branch, commit.sha)
        except RemoteTimeoutError as e:
            # La respuesta se perdió: el branch pudo o no haberse movido
            e.outcome_uncertain = True
            e.pending_commit = result
            raise

        logger.success(f"Branch '{branch}' → {commit.sha[:7]} ({len(files)} archivo(s))")
        return result

    def is_published(self, branch: str, commit_sha: str) -> bool:
        """
        Relee el branch para saber si un update incierto se aplicó.

        Returns:
            True si el branch apunta exactamente a commit_sha.
        """
        return self._store.get_branch_tip(branch) == commit_sha

    def _create_blobs(self, files: list[RepoFile]) -> list[TreeEntry]:
        """
        Crea un blob por archivo, en paralelo si hay más de un worker.

        El orden de las entradas sigue el de `files`. Si alguna llamada
        falla, la excepción se propaga después de que terminen las demás.
        """
        def crear(f: RepoFile) -> TreeEntry:
            sha = self._store.create_blob(f.data, path=f.path)
            return TreeEntry(path=f.path, sha=sha)

        workers = min(self._blob_workers, len(files))
        if workers <= 1:
            return [crear(f) for f in files]

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(crear, f) for f in files]
            return [future.result() for future in futures]
