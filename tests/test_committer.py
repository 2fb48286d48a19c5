"""
test_committer.py — Tests para el commit atómico.

Usa FakeObjectStore (conftest.py): SHA-1 por contenido y CAS de
fast-forward igual que GitHub.

Verificamos que:
1. Todos los archivos entran en UN commit sobre el baseline
2. El primer publish crea el branch
3. Un avance concurrente produce ConflictError y el branch no cambia
4. Un timeout al mover el branch deja el commit pendiente para verificar
5. Los conjuntos de archivos inválidos fallan sin tocar la red
"""

from __future__ import annotations

import pytest

from vitrina.errors import ConflictError, RemoteTimeoutError, RemoteWriteError, ValidationError
from vitrina.publishing.committer import AtomicCommitBuilder, RepoFile, validate_files


@pytest.fixture
def builder(store):
    return AtomicCommitBuilder(store, blob_workers=4)


# ================================================================
# Publish exitoso
# ================================================================

class TestPublish:
    """Tests del camino feliz."""

    def test_un_commit_con_todos_los_archivos(self, store, builder):
        """Assets y content.json en el mismo commit, parent = baseline."""
        base = store.seed("main", {"index.html": b"<html>", "content.json": b"{}"})

        result = builder.publish("main", [
            RepoFile("assets/uploads/1-0.png", b"png"),
            RepoFile("content.json", b'{"version": 1}'),
        ], "Publish content (test)")

        assert store.refs["main"] == result.sha
        assert result.parent_sha == base
        assert store.commits[result.sha]["parents"] == [base]
        assert store.commits[result.sha]["message"] == "Publish content (test)"
        assert store.files_at("main") == {
            "index.html": b"<html>",
            "content.json": b'{"version": 1}',
            "assets/uploads/1-0.png": b"png",
        }

    def test_orden_de_etapas(self, store, builder):
        store.seed("main", {"a": b"1"})
        store.calls.clear()

        builder.publish("main", [RepoFile("b", b"2")], "m")

        assert store.calls == [
            "get_branch_tip", "get_commit_tree", "create_blob",
            "create_tree", "create_commit", "update_branch",
        ]

    def test_blobs_en_paralelo_conservan_orden(self, store):
        store.seed("main", {"x": b"0"})
        builder = AtomicCommitBuilder(store, blob_workers=8)
        files = [RepoFile(f"assets/{i}.png", bytes([i]) * 10) for i in range(20)]

        builder.publish("main", files, "m")

        publicado = store.files_at("main")
        for f in files:
            assert publicado[f.path] == f.data
        assert store.calls.count("create_blob") == 20

    def test_primer_publish_crea_branch(self, store, builder):
        """404 en el ref → commit sin parents y POST /git/refs."""
        result = builder.publish("main", [RepoFile("content.json", b"{}")], "first")

        assert result.parent_sha is None
        assert store.commits[result.sha]["parents"] == []
        assert store.refs["main"] == result.sha
        assert "create_branch" in store.calls
        assert "get_commit_tree" not in store.calls

    def test_contenido_identico_reusa_blob(self, store, builder):
        """Mismos bytes → mismo sha de blob."""
        store.seed("main", {"a.png": b"same"})
        builder.publish("main", [RepoFile("b.png", b"same")], "m")
        assert len(store.blobs) == 1

    def test_is_published(self, store, builder):
        result = builder.publish("main", [RepoFile("a", b"1")], "m")
        assert builder.is_published("main", result.sha) is True
        assert builder.is_published("main", "0" * 40) is False


# ================================================================
# Conflictos
# ================================================================

class TestConflicts:
    """Tests del compare-and-swap."""

    def test_avance_concurrente_es_conflicto(self, store, builder):
        """Otro escritor mueve el branch entre la etapa 1 y la 4."""
        store.seed("main", {"content.json": b"v1"})

        def otro_escritor(branch):
            store.before_ref_update = None
            store.seed(branch, {"content.json": b"otro"})

        store.before_ref_update = otro_escritor

        with pytest.raises(ConflictError) as exc:
            builder.publish("main", [RepoFile("content.json", b"mio")], "m")

        assert exc.value.stage == "update_ref"
        # Gana el otro escritor; nada nuestro quedó referenciado
        assert store.files_at("main") == {"content.json": b"otro"}

    def test_conflict_error_es_write_error(self):
        assert issubclass(ConflictError, RemoteWriteError)

    def test_branch_creado_en_medio_del_primer_publish(self, store, builder):
        def otro_escritor(branch):
            store.before_ref_update = None
            store.seed(branch, {"content.json": b"otro"})

        store.before_ref_update = otro_escritor

        with pytest.raises(ConflictError):
            builder.publish("main", [RepoFile("content.json", b"mio")], "m")
        assert store.files_at("main") == {"content.json": b"otro"}

    def test_baseline_explicito_distinto(self, store, builder):
        """Baseline esperado ≠ tip → ConflictError antes de crear objetos."""
        store.seed("main", {"a": b"1"})
        store.calls.clear()

        with pytest.raises(ConflictError):
            builder.publish("main", [RepoFile("a", b"2")], "m", baseline="f" * 40)

        assert store.calls == ["get_branch_tip"]
        assert len(store.commits) == 1

    def test_baseline_explicito_igual(self, store, builder):
        tip = store.seed("main", {"a": b"1"})
        result = builder.publish("main", [RepoFile("a", b"2")], "m", baseline=tip)
        assert result.parent_sha == tip


# ================================================================
# Timeout incierto
# ================================================================

class TestUncertainTimeout:
    """Tests del timeout al mover el branch."""

    def test_timeout_adjunta_commit_pendiente(self, store, builder):
        store.seed("main", {"a": b"1"})

        def timeout(branch):
            raise RemoteTimeoutError("GitHub update_ref timed out", stage="update_ref")

        store.before_ref_update = timeout

        with pytest.raises(RemoteTimeoutError) as exc:
            builder.publish("main", [RepoFile("a", b"2")], "m")

        assert exc.value.outcome_uncertain is True
        pendiente = exc.value.pending_commit
        assert pendiente.sha in store.commits
        assert pendiente.branch == "main"
        assert builder.is_published("main", pendiente.sha) is False


# ================================================================
# Validación
# ================================================================

class TestValidateFiles:
    """Tests del conjunto de archivos."""

    def test_vacio(self, store, builder):
        with pytest.raises(ValidationError):
            builder.publish("main", [], "m")
        assert store.calls == []

    @pytest.mark.parametrize("path", ["", "/abs.json", "a/../b", "a//b", "./a", "dir/"])
    def test_rutas_invalidas(self, path):
        with pytest.raises(ValidationError) as exc:
            validate_files([RepoFile(path, b"x")])
        assert exc.value.stage == "validate"

    def test_rutas_duplicadas(self):
        with pytest.raises(ValidationError) as exc:
            validate_files([RepoFile("a.json", b"1"), RepoFile("a.json", b"2")])
        assert exc.value.path == "a.json"

    def test_rutas_validas(self):
        validate_files([RepoFile("content.json", b"{}"), RepoFile("assets/uploads/x.png", b"1")])
