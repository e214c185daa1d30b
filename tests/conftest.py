"""Shared pytest configuration, marker registration, and phase collaborator fakes."""

from __future__ import annotations

import io
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from project_verifier.cache import CacheResolver
from project_verifier.config import ActionContext
from project_verifier.console import Console
from project_verifier.errors import CommandError, GitHubAPIError
from project_verifier.phases import PhaseServices
from project_verifier.schemas import CacheEntry, ReleaseInfo, UploadResult
from project_verifier.state_store import MemoryStateBackend, StateStore
from project_verifier.warning_log import WarningAggregator


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "integration: filesystem/subprocess integration tests")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Run fast unit tests first, integration tests last."""

    def sort_key(item: pytest.Item) -> tuple[int, str]:
        if item.get_closest_marker("integration"):
            return (1, item.nodeid)
        return (0, item.nodeid)

    items.sort(key=sort_key)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


@dataclass
class RunnerCall:
    command: str
    args: list[str]
    cwd: Any
    title: str | None
    error: str | None


class FakeRunner:
    """Records commands; exit codes come from ``fail`` rules (default 0)."""

    def __init__(self) -> None:
        self.calls: list[RunnerCall] = []
        self._rules: list[tuple[str, tuple[str, ...], int]] = []

    def fail(self, command: str, *args_prefix: str, code: int = 1) -> None:
        self._rules.append((command, args_prefix, code))

    def _exit_code(self, command: str, args: list[str]) -> int:
        for rule_command, prefix, code in self._rules:
            if rule_command == command and tuple(args[: len(prefix)]) == prefix:
                return code
        return 0

    def run(self, command, args=(), *, cwd=None, title=None, error=None) -> int:
        argv = [str(arg) for arg in args]
        self.calls.append(RunnerCall(command, argv, cwd, title, error))
        code = self._exit_code(command, argv)
        if error is not None and code != 0:
            raise CommandError(error, code)
        return code

    def commands(self) -> list[str]:
        return [" ".join([call.command, *call.args]) for call in self.calls]

    def ran(self, command: str, *args_prefix: str) -> bool:
        return any(
            call.command == command and tuple(call.args[: len(args_prefix)]) == args_prefix
            for call in self.calls
        )


class FakeCommits:
    def __init__(self, sha: str = "abc123", error: str | None = None) -> None:
        self.sha = sha
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def latest_commit_sha(self, owner: str, repo: str) -> str:
        self.calls.append((owner, repo))
        if self.error is not None:
            raise GitHubAPIError(self.error, 404)
        return self.sha


class FakeCacheBackend:
    """In-memory cache backend; ``extract`` only records what was restored."""

    def __init__(self, keys: Sequence[str] = ()) -> None:
        self._entries: list[CacheEntry] = []
        self.extracted: list[str] = []
        self.stored: list[tuple[str, list[str]]] = []
        self.fail_with: Exception | None = None
        for key in keys:
            self.add(key)

    def add(self, key: str) -> CacheEntry:
        entry = CacheEntry(key=key, archive=f"{key}.tar.gz", sequence=len(self._entries) + 1)
        self._entries.append(entry)
        return entry

    def entries(self) -> list[CacheEntry]:
        if self.fail_with is not None:
            raise self.fail_with
        return list(self._entries)

    def store(self, key: str, paths: Sequence[str]) -> CacheEntry:
        self.stored.append((key, list(paths)))
        return self.add(key)

    def extract(self, entry: CacheEntry, paths: Sequence[str]) -> None:
        self.extracted.append(entry.key)


@dataclass
class FakeReleases:
    get_status: int = 200
    update_status: int = 200
    release_id: int = 42
    calls: list[tuple[str, tuple[Any, ...]]] = field(default_factory=list)

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo:
        self.calls.append(("get", (owner, repo, tag)))
        if self.get_status != 200:
            return ReleaseInfo(status=self.get_status)
        return ReleaseInfo(status=200, id=self.release_id, tag_name=tag)

    def update_release(self, owner: str, repo: str, release_id: int, body: str) -> ReleaseInfo:
        self.calls.append(("update", (owner, repo, release_id, body)))
        return ReleaseInfo(status=self.update_status, id=release_id, tag_name="v1.0.0", body=body)


@dataclass
class FakeArtifacts:
    failed_items: list[str] = field(default_factory=list)
    size: int = 1024
    uploads: list[tuple[str, list[str]]] = field(default_factory=list)

    def upload(self, name: str, files: Sequence[str], base_dir: str | Path) -> UploadResult:
        self.uploads.append((name, list(files)))
        return UploadResult(name=name, failed_items=list(self.failed_items), size=self.size)


@dataclass
class Harness:
    """Services for one simulated phase process plus handles on the fakes."""

    services: PhaseServices
    backend: MemoryStateBackend
    runner: FakeRunner
    commits: FakeCommits
    cache_backend: FakeCacheBackend
    releases: FakeReleases
    artifacts: FakeArtifacts
    output: io.StringIO

    @property
    def log(self) -> str:
        return self.output.getvalue()


def state_values(entries: dict[str, str], *, warnings: int = 0) -> dict[str, str]:
    """Backend contents as an earlier phase would have left them."""
    backend = MemoryStateBackend()
    StateStore(backend, Console(io.StringIO())).save(entries)
    if warnings:
        backend.set("warnings", str(warnings))
    return dict(backend.values)


SETUP_STATE = {
    "owner": "student",
    "mainRepo": "student/project-student",
    "testRepo": "student/project-tests",
    "project": "1",
    "version": "v1.2.3",
    "tester": "Project1Test*",
    "testKey": "project-tests-abc123",
    "testCache": "project-tests-abc123",
}


def build_harness(
    workspace: Path,
    *,
    values: dict[str, str] | None = None,
    ref: str = "refs/tags/v1.2.3",
    project: str = "",
    cache_keys: Sequence[str] = (),
    sha: str = "abc123",
) -> Harness:
    """Build fresh services, carrying ``values`` over from an earlier phase's backend."""
    output = io.StringIO()
    console = Console(output)
    backend = MemoryStateBackend(values)
    warnings = WarningAggregator(backend, console)
    runner = FakeRunner()
    commits = FakeCommits(sha=sha)
    cache_backend = FakeCacheBackend(cache_keys)
    releases = FakeReleases()
    artifacts = FakeArtifacts()
    context = ActionContext(
        owner="student",
        repo="project-student",
        ref=ref,
        run_number="7",
        run_id="9001",
        token="secret-token",
        project=project,
        workspace=workspace,
        cache_dir=workspace / ".cache",
    )
    services = PhaseServices(
        context=context,
        console=console,
        runner=runner,
        store=StateStore(backend, console),
        warnings=warnings,
        cache=CacheResolver(cache_backend, commits, warnings=warnings),
        releases=releases,
        artifacts=artifacts,
    )
    return Harness(services, backend, runner, commits, cache_backend, releases, artifacts, output)


@pytest.fixture
def harness_factory(tmp_path: Path):
    workspace = tmp_path / "workspace"
    workspace.mkdir()

    def _factory(**kwargs: Any) -> Harness:
        return build_harness(workspace, **kwargs)

    return _factory
