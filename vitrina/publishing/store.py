"""
store.py — Interfaz del object store direccionable por contenido.

El commit builder no sabe que del otro lado está GitHub: solo conoce
estas operaciones. GitHubObjectStore las implementa con la Git Data
API; los tests usan un store en memoria con la misma interfaz.

Operaciones:
    get_branch_tip   → sha del commit al que apunta el branch (o None)
    get_commit_tree  → sha del tree de un commit
    create_blob      → objeto inmutable direccionado por sus bytes
    create_tree      → tree = base_tree + overlays (ruta → blob)
    create_commit    → commit con parent(s) y tree
    update_branch    → mueve el branch SOLO si es fast-forward (CAS)
    create_branch    → crea el branch SOLO si no existe (CAS del primer publish)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Archivo normal, no ejecutable
BLOB_MODE = "100644"


@dataclass
class TreeEntry:
    """Overlay de un archivo sobre el tree base."""
    path: str
    sha: str
    mode: str = BLOB_MODE


@dataclass
class CreatedCommit:
    """Commit recién creado (todavía sin referenciar por ningún branch)."""
    sha: str
    url: str = ""


class ObjectStore(ABC):
    """Operaciones mínimas que necesita el commit atómico."""

    @abstractmethod
    def get_branch_tip(self, branch: str) -> str | None:
        """Sha al que apunta el branch; None si el branch no existe."""
        ...

    @abstractmethod
    def get_commit_tree(self, commit_sha: str) -> str:
        ...

    @abstractmethod
    def create_blob(self, data: bytes, *, path: str | None = None) -> str:
        """`path` solo se usa para contexto en errores y logs."""
        ...

    @abstractmethod
    def create_tree(self, entries: list[TreeEntry], base_tree: str | None) -> str:
        ...

    @abstractmethod
    def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> CreatedCommit:
        ...

    @abstractmethod
    def update_branch(self, branch: str, commit_sha: str) -> None:
        """
        Avanza el branch a commit_sha sin forzar.

        Raises:
            ConflictError: Si el branch ya no desciende de commit_sha's parent.
        """
        ...

    @abstractmethod
    def create_branch(self, branch: str, commit_sha: str) -> None:
        """
        Crea el branch apuntando a commit_sha.

        Raises:
            ConflictError: Si el branch ya existe.
        """
        ...
