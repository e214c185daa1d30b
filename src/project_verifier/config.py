"""Run configuration read from the GitHub Actions environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from project_verifier.github_api import DEFAULT_API_URL
from project_verifier.state_store import ActionsStateBackend, FileStateBackend, StateBackend

MAIN_DIR = "project-main"
TEST_DIR = "project-tests"  # must match pom.xml and the tests repository name

_TOKEN_ENV_KEYS = ("INPUT_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")


def _env(environ: Mapping[str, str], key: str, default: str = "") -> str:
    return str(environ.get(key) or default).strip()


class ActionContext(BaseModel):
    """Everything a phase needs to know about the current workflow run."""

    owner: str = ""
    repo: str = ""
    ref: str = ""
    run_number: str = ""
    run_id: str = ""
    token: str = Field(default="", repr=False)
    project: str = ""
    workspace: Path = Field(default_factory=Path.cwd)
    main_dir: str = MAIN_DIR
    test_dir: str = TEST_DIR
    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".cache" / "project-verifier")
    artifact_dir: Path | None = None
    state_file: Path | None = None
    actions_state_file: Path | None = None
    state_backend: Literal["file", "actions"] = "file"
    api_url: str = DEFAULT_API_URL
    server_url: str = "https://github.com"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> ActionContext:
        """Build the context from ``environ`` (``os.environ`` by default).

        Keyword overrides with a value of ``None`` are ignored so CLI flags
        that were not given fall through to the environment.
        """
        env = os.environ if environ is None else environ
        owner, _, repo = _env(env, "GITHUB_REPOSITORY").partition("/")
        token = next((_env(env, key) for key in _TOKEN_ENV_KEYS if _env(env, key)), "")
        values: dict[str, object] = {
            "owner": owner,
            "repo": repo,
            "ref": _env(env, "GITHUB_REF"),
            "run_number": _env(env, "GITHUB_RUN_NUMBER"),
            "run_id": _env(env, "GITHUB_RUN_ID"),
            "token": token,
            "project": _env(env, "INPUT_PROJECT"),
            "api_url": _env(env, "GITHUB_API_URL", DEFAULT_API_URL),
            "server_url": _env(env, "GITHUB_SERVER_URL", "https://github.com"),
            "state_backend": _env(env, "PROJECT_VERIFIER_STATE_BACKEND", "file").lower(),
        }
        path_env = {
            "workspace": "GITHUB_WORKSPACE",
            "cache_dir": "PROJECT_VERIFIER_CACHE_DIR",
            "artifact_dir": "PROJECT_VERIFIER_ARTIFACT_DIR",
            "state_file": "PROJECT_VERIFIER_STATE_FILE",
            "actions_state_file": "GITHUB_STATE",
        }
        for field_name, key in path_env.items():
            raw = _env(env, key)
            if raw:
                values[field_name] = Path(raw)
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def test_repository(self) -> str:
        return f"{self.owner}/{self.test_dir}"

    @property
    def resolved_artifact_dir(self) -> Path:
        return self.artifact_dir or self.workspace / "artifacts"

    def clone_url(self, repository: str) -> str:
        """Authenticated HTTPS clone URL; the token is masked in the run log."""
        host = self.server_url.split("://", 1)[-1].rstrip("/")
        if self.token:
            return f"https://github-actions:{self.token}@{host}/{repository}"
        return f"https://{host}/{repository}"

    def build_state_backend(self) -> StateBackend:
        """Return the backend that carries state from one phase process to the next.

        The JSON file under the workspace is the default: it survives between
        separate ``run:`` steps of a job. ``GITHUB_STATE`` values are only
        visible to the pre/main/post steps of a single action, so that backend
        has to be requested with ``state_backend="actions"``.
        """
        if self.state_backend == "actions":
            if self.actions_state_file is None:
                raise ValueError("The actions state backend needs GITHUB_STATE to be set.")
            return ActionsStateBackend(self.actions_state_file)
        return FileStateBackend(self.state_file or self.workspace / ".project_verifier" / "state.json")
