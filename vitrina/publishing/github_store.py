"""
github_store.py — ObjectStore sobre la Git Data API de GitHub.

No hay working copy ni binario de git: todo son llamadas HTTP.

    GET   /repos/{o}/{r}/git/ref/heads/{branch}   → tip del branch
    GET   /repos/{o}/{r}/git/commits/{sha}        → tree del commit
    POST  /repos/{o}/{r}/git/blobs                → blob (base64)
    POST  /repos/{o}/{r}/git/trees                → tree con base_tree
    POST  /repos/{o}/{r}/git/commits              → commit
    PATCH /repos/{o}/{r}/git/refs/heads/{branch}  → update con force=false
    POST  /repos/{o}/{r}/git/refs                 → crear branch

El PATCH con force=false es nuestro compare-and-swap: GitHub rechaza
(422) cualquier update que no sea fast-forward. Como el commit nuevo
tiene como parent el baseline, si alguien movió el branch en medio
el update deja de ser fast-forward y falla.

Limitación: force=false verifica fast-forward, no igualdad exacta con
el baseline. Si alguien resetea el branch con force a un ancestro del
baseline entre la lectura y el PATCH, el update igual se acepta.

Cada llamada tiene timeout. Un timeout se reporta como
RemoteTimeoutError. Si fue al mover el branch, o la conexión se cortó
con el PATCH/POST ya enviado, el resultado es incierto
(outcome_uncertain=True). Un ConnectTimeout nunca lo es: no salió nada.

Uso:
    store = GitHubObjectStore("owner", "repo", StaticTokenProvider(token))
    tip = store.get_branch_tip("main")
"""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import quote

import requests

from vitrina.config import AppConfig
from vitrina.errors import (
    ConflictError,
    RemoteError,
    RemoteReadError,
    RemoteTimeoutError,
    RemoteWriteError,
)
from vitrina.publishing.github_auth import TokenProvider, build_token_provider
from vitrina.publishing.store import CreatedCommit, ObjectStore, TreeEntry
from vitrina.utils.logger import get_logger

logger = get_logger("vitrina.github")

# Mensajes de GitHub que significan "el branch cambió bajo nuestros pies"
_CONFLICT_HINTS = (
    "fast forward",
    "fast-forward",
    "reference already exists",
    "reference does not exist",
)

# Etapas cuya respuesta perdida deja el branch en estado incierto
_REF_STAGES = ("update_ref", "create_ref")


class GitHubObjectStore(ObjectStore):
    """
    Cliente de la Git Data API.

    Args:
        owner: Dueño del repo (usuario u organización).
        repo: Nombre del repo.
        token_provider: Entrega el bearer token.
        api_base: URL base de la API (GitHub Enterprise usa otra).
        timeout: Timeout por llamada, en segundos.
        session: requests.Session a reutilizar (los tests pasan un mock).
    """

    API_VERSION = "2022-11-28"

    def __init__(
        self,
        owner: str,
        repo: str,
        token_provider: TokenProvider,
        *,
        api_base: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self._owner = owner
        self._repo = repo
        self._token_provider = token_provider
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def repo_url(self) -> str:
        return f"https://github.com/{self._owner}/{self._repo}"

    # ============================================================
    # HTTP
    # ============================================================

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token_provider.get_token()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
        }

    def _url(self, path: str) -> str:
        return f"{self._api_base}/repos/{self._owner}/{self._repo}{path}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        stage: str,
        error_cls: type[RemoteError],
        payload: dict[str, Any] | None = None,
        file_path: str | None = None,
    ) -> requests.Response:
        """
        Ejecuta una llamada y traduce fallas de transporte a errores tipados.

        No revisa el status code: eso lo decide cada operación.
        """
        try:
            return self._session.request(
                method,
                self._url(path),
                headers=self._headers(),
                json=payload,
                timeout=self._timeout,
            )
        except requests.ConnectTimeout as e:
            # No se llegó a conectar: el request nunca salió
            raise RemoteTimeoutError(
                f"GitHub {stage} could not connect within {self._timeout}s",
                stage=stage,
                path=file_path,
            ) from e
        except requests.Timeout as e:
            raise RemoteTimeoutError(
                f"GitHub {stage} timed out after {self._timeout}s",
                stage=stage,
                path=file_path,
                outcome_uncertain=stage in _REF_STAGES,
            ) from e
        except requests.RequestException as e:
            if isinstance(e, requests.ConnectionError) and stage in _REF_STAGES:
                # Conexión cortada con el PATCH/POST ya enviado
                raise RemoteTimeoutError(
                    f"GitHub {stage} lost connection: {e}",
                    stage=stage,
                    path=file_path,
                    outcome_uncertain=True,
                ) from e
            raise error_cls(
                f"GitHub {stage} failed: {e}",
                stage=stage,
                path=file_path,
            ) from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Extrae el campo `message` de GitHub, o cae a 'HTTP <status>'."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        return f"HTTP {response.status_code}"

    def _raise_for(
        self,
        response: requests.Response,
        *,
        stage: str,
        error_cls: type[RemoteError],
        file_path: str | None = None,
    ) -> None:
        if response.ok:
            return
        message = self._error_message(response)
        raise error_cls(
            f"GitHub {stage} failed: {response.status_code} {message}",
            stage=stage,
            path=file_path,
            status_code=response.status_code,
        )

    @staticmethod
    def _sha_from(response: requests.Response, *keys: str) -> str:
        data: Any = response.json()
        for key in keys:
            data = data[key]
        return str(data)

    # ============================================================
    # Lecturas
    # ============================================================

    def get_branch_tip(self, branch: str) -> str | None:
        """
        Lee el sha al que apunta refs/heads/{branch}.

        Returns:
            Sha del commit, o None si el branch no existe (primer publish).
        """
        stage = "read_ref"
        response = self._request(
            "GET", f"/git/ref/heads/{quote(branch, safe='/')}",
            stage=stage, error_cls=RemoteReadError,
        )
        if response.status_code == 404:
            return None
        self._raise_for(response, stage=stage, error_cls=RemoteReadError)
        return self._sha_from(response, "object", "sha")

    def get_commit_tree(self, commit_sha: str) -> str:
        stage = "read_commit"
        response = self._request(
            "GET", f"/git/commits/{commit_sha}",
            stage=stage, error_cls=RemoteReadError,
        )
        self._raise_for(response, stage=stage, error_cls=RemoteReadError)
        return self._sha_from(response, "tree", "sha")

    def get_repository(self) -> dict[str, Any]:
        """Metadata del repo (default_branch, private...). Usado por /api/github-status."""
        stage = "read_repo"
        response = self._request("GET", "", stage=stage, error_cls=RemoteReadError)
        self._raise_for(response, stage=stage, error_cls=RemoteReadError)
        return response.json()

    # ============================================================
    # Escrituras
    # ============================================================

    def create_blob(self, data: bytes, *, path: str | None = None) -> str:
        stage = "create_blob"
        response = self._request(
            "POST", "/git/blobs",
            stage=stage, error_cls=RemoteWriteError, file_path=path,
            payload={
                "content": base64.b64encode(data).decode("ascii"),
                "encoding": "base64",
            },
        )
        self._raise_for(response, stage=stage, error_cls=RemoteWriteError, file_path=path)
        return self._sha_from(response, "sha")

    def create_tree(self, entries: list[TreeEntry], base_tree: str | None) -> str:
        stage = "create_tree"
        payload: dict[str, Any] = {
            "tree": [
                {"path": e.path, "mode": e.mode, "type": "blob", "sha": e.sha}
                for e in entries
            ],
        }
        if base_tree:
            payload["base_tree"] = base_tree

        response = self._request(
            "POST", "/git/trees",
            stage=stage, error_cls=RemoteWriteError, payload=payload,
        )
        self._raise_for(response, stage=stage, error_cls=RemoteWriteError)
        return self._sha_from(response, "sha")

    def create_commit(self, message: str, tree_sha: str, parents: list[str]) -> CreatedCommit:
        stage = "create_commit"
        response = self._request(
            "POST", "/git/commits",
            stage=stage, error_cls=RemoteWriteError,
            payload={"message": message, "tree": tree_sha, "parents": parents},
        )
        self._raise_for(response, stage=stage, error_cls=RemoteWriteError)
        data = response.json()
        sha = str(data["sha"])
        url = data.get("html_url") or f"{self.repo_url}/commit/{sha}"
        return CreatedCommit(sha=sha, url=url)

    def _raise_ref_error(self, response: requests.Response, stage: str) -> None:
        """422/409 con mensaje de 'no fast-forward' o 'ya existe' → ConflictError."""
        if response.ok:
            return
        message = self._error_message(response)
        if response.status_code in (409, 422) and any(
            hint in message.lower() for hint in _CONFLICT_HINTS
        ):
            raise ConflictError(
                f"Branch moved during publish: {message}",
                stage=stage,
                status_code=response.status_code,
            )
        self._raise_for(response, stage=stage, error_cls=RemoteWriteError)

    def update_branch(self, branch: str, commit_sha: str) -> None:
        stage = "update_ref"
        response = self._request(
            "PATCH", f"/git/refs/heads/{quote(branch, safe='/')}",
            stage=stage, error_cls=RemoteWriteError,
            payload={"sha": commit_sha, "force": False},
        )
        self._raise_ref_error(response, stage)

    def create_branch(self, branch: str, commit_sha: str) -> None:
        stage = "create_ref"
        response = self._request(
            "POST", "/git/refs",
            stage=stage, error_cls=RemoteWriteError,
            payload={"ref": f"refs/heads/{branch}", "sha": commit_sha},
        )
        self._raise_ref_error(response, stage)


def build_store(config: AppConfig) -> GitHubObjectStore:
    """
    Arma el store desde la configuración.

    Raises:
        ConfigError: Falta owner, repo o credencial.
    """
    return GitHubObjectStore(
        config.require("GITHUB_OWNER"),
        config.require("GITHUB_REPO"),
        build_token_provider(config),
        api_base=config.github.api_base,
        timeout=config.github.timeout_seconds,
    )
