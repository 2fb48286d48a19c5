"""
conftest.py — Fixtures compartidas.

FakeObjectStore es un object store en memoria con direccionamiento por
contenido (SHA-1, como git) y el mismo compare-and-swap que GitHub:
update_branch solo acepta fast-forward.
"""

from __future__ import annotations

import hashlib
import json
import threading
from typing import Callable

import pytest

from vitrina.errors import ConflictError, RemoteReadError
from vitrina.publishing.store import CreatedCommit, ObjectStore, TreeEntry


def _sha(kind: str, payload: bytes) -> str:
    return hashlib.sha1(f"{kind} {len(payload)}\0".encode() + payload).hexdigest()


class FakeObjectStore(ObjectStore):
    """Object store en memoria para tests del commit builder."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict] = {}
        self.refs: dict[str, str] = {}
        self.calls: list[str] = []
        # Se ejecuta justo antes de mover el branch (simula otro escritor)
        self.before_ref_update: Callable[[str], None] | None = None
        self._lock = threading.Lock()

    # --- helpers de test ---

    def seed(self, branch: str, files: dict[str, bytes], message: str = "seed") -> str:
        """Crea un commit con `files` encima del tip actual y mueve el branch."""
        parent = self.refs.get(branch)
        base = self.commits[parent]["tree"] if parent else None
        entries = [TreeEntry(path=p, sha=self._put_blob(d)) for p, d in files.items()]
        tree = self._put_tree(entries, base)
        sha = self._put_commit(message, tree, [parent] if parent else [])
        self.refs[branch] = sha
        return sha

    def files_at(self, branch: str) -> dict[str, bytes]:
        """Contenido completo del branch: ruta → bytes."""
        tree = self.commits[self.refs[branch]]["tree"]
        return {path: self.blobs[sha] for path, sha in self.trees[tree].items()}

    def _put_blob(self, data: bytes) -> str:
        sha = _sha("blob", data)
        self.blobs[sha] = data
        return sha

    def _put_tree(self, entries: list[TreeEntry], base_tree: str | None) -> str:
        contenido = dict(self.trees[base_tree]) if base_tree else {}
        for e in entries:
            contenido[e.path] = e.sha
        sha = _sha("tree", json.dumps(contenido, sort_keys=True).encode())
        self.trees[sha] = contenido
        return sha

    def _put_commit(self, message: str, tree: str, parents: list[str]) -> str:
        payload = json.dumps({"m": message, "t": tree, "p": parents, "n": len(self.commits)})
        sha = _sha("commit", payload.encode())
        self.commits[sha] = {"message": message, "tree": tree, "parents": parents}
        return sha

    # --- ObjectStore ---

    def get_branch_tip(self, branch: str) -> str | None:
        self.calls.append("get_branch_tip")
        return self.refs.get(branch)

    def get_commit_tree(self, commit_sha: str) -> str:
        self.calls.append("get_commit_tree")
        if commit_sha not in self.commits:
            raise RemoteReadError("Not Found", stage="read_commit", status_code=404)
        return self.commits[commit_sha]["tree"]

    def create_blob(self, data: bytes, *, path: str | None = None) -> str:
        with self._lock:
            self.calls.append("create_blob")
            return self._put_blob(data)

    def create_tree(self, entries: list[TreeEntry], base_tree: str | None) -> str:
        self.calls.append("create_tree")
        return self._put_tree(entries, base_tree)

    def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> CreatedCommit:
        self.calls.append("create_commit")
        sha = self._put_commit(message, tree_sha, parents)
        return CreatedCommit(sha=sha, url=f"https://github.com/o/r/commit/{sha}")

    def update_branch(self, branch: str, commit_sha: str) -> None:
        self.calls.append("update_branch")
        if self.before_ref_update is not None:
            self.before_ref_update(branch)
        actual = self.refs.get(branch)
        if actual not in self.commits[commit_sha]["parents"]:
            raise ConflictError(
                "Branch moved during publish: Update is not a fast forward",
                stage="update_ref",
                status_code=422,
            )
        self.refs[branch] = commit_sha

    def create_branch(self, branch: str, commit_sha: str) -> None:
        self.calls.append("create_branch")
        if self.before_ref_update is not None:
            self.before_ref_update(branch)
        if branch in self.refs:
            raise ConflictError(
                "Branch moved during publish: Reference already exists",
                stage="create_ref",
                status_code=422,
            )
        self.refs[branch] = commit_sha


@pytest.fixture
def store():
    return FakeObjectStore()
