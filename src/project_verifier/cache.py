"""Content-addressed cache for the tests checkout, with prefix fallback.

Keys look like ``{repo}-{commit_sha}``. When the exact key is missing, the
most recently saved entry sharing a fallback prefix (``{repo}-``) is restored
instead; the caller compares the returned key with the requested one and
refreshes a stale checkout incrementally. Caching is only an optimization:
every backend failure degrades to "no cache".
"""

from __future__ import annotations

import logging
import re
import shutil
import tarfile
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Protocol

from project_verifier.errors import CacheKeyError, GitHubAPIError
from project_verifier.file_io import locked_path, read_json, write_json_atomic
from project_verifier.schemas import CacheEntry
from project_verifier.warning_log import WarningAggregator

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"


class CommitSource(Protocol):
    def latest_commit_sha(self, owner: str, repo: str) -> str: ...


class CacheBackend(Protocol):
    """Storage for archived directories, addressed by key."""

    def entries(self) -> list[CacheEntry]: ...

    def store(self, key: str, paths: Sequence[str]) -> CacheEntry: ...

    def extract(self, entry: CacheEntry, paths: Sequence[str]) -> None: ...


def make_cache_key(repo: str, sha: str) -> str:
    return f"{repo}-{sha}"


def select_cache_entry(
    entries: Iterable[CacheEntry],
    key: str,
    fallback_prefixes: Sequence[str] = (),
) -> CacheEntry | None:
    """Pick the exact ``key`` or else the newest entry matching a prefix.

    Prefixes are tried in declaration order; the first prefix with any match
    wins even if a later prefix has a newer entry.
    """
    candidates = list(entries)
    for entry in candidates:
        if entry.key == key:
            return entry
    for prefix in fallback_prefixes:
        matches = [entry for entry in candidates if entry.key.startswith(prefix)]
        if matches:
            return max(matches, key=lambda entry: entry.sequence)
    return None


class LocalCacheBackend:
    """Keeps ``.tar.gz`` archives and an index under a cache directory.

    Paths are archived relative to ``workdir`` so restoring recreates them
    in the same place.
    """

    def __init__(self, root: str | Path, *, workdir: str | Path) -> None:
        self.root = Path(root)
        self.workdir = Path(workdir)
        self.index_path = self.root / INDEX_FILE

    def _load_index(self) -> dict:
        return read_json(self.index_path, {"next_sequence": 1, "entries": {}})

    def entries(self) -> list[CacheEntry]:
        raw_entries = self._load_index().get("entries") or {}
        return [CacheEntry.model_validate(item) for item in raw_entries.values()]

    def store(self, key: str, paths: Sequence[str]) -> CacheEntry:
        self.root.mkdir(parents=True, exist_ok=True)
        archive_name = re.sub(r"[^A-Za-z0-9._-]+", "_", key) + ".tar.gz"
        archive_path = self.root / archive_name
        tmp_path = archive_path.with_suffix(".tmp")
        try:
            with tarfile.open(tmp_path, "w:gz") as tar:
                for rel in paths:
                    source = self.workdir / rel
                    if not source.exists():
                        raise FileNotFoundError(f"Cache path does not exist: {source}")
                    tar.add(source, arcname=rel)
            tmp_path.replace(archive_path)
        finally:
            tmp_path.unlink(missing_ok=True)

        with locked_path(self.index_path):
            index = self._load_index()
            sequence = int(index.get("next_sequence") or 1)
            entry = CacheEntry(key=key, archive=archive_name, sequence=sequence)
            entries = index.setdefault("entries", {})
            entries[key] = entry.model_dump()
            index["next_sequence"] = sequence + 1
            write_json_atomic(self.index_path, index)
        return entry

    def extract(self, entry: CacheEntry, paths: Sequence[str]) -> None:
        archive_path = self.root / entry.archive
        try:
            with tarfile.open(archive_path, "r:gz") as tar:
                tar.extractall(self.workdir, filter="data")
        except (OSError, tarfile.TarError):
            for rel in paths:
                shutil.rmtree(self.workdir / rel, ignore_errors=True)
            raise


class CacheResolver:
    """Derives cache keys and restores or saves the tests checkout."""

    def __init__(
        self,
        backend: CacheBackend,
        commits: CommitSource,
        *,
        warnings: WarningAggregator | None = None,
    ) -> None:
        self.backend = backend
        self.commits = commits
        self.warnings = warnings

    def compute_key(self, owner: str, repo: str) -> str:
        """Return ``{repo}-{sha}`` for the latest commit of ``owner/repo``."""
        try:
            sha = self.commits.latest_commit_sha(owner, repo)
        except GitHubAPIError as exc:
            raise CacheKeyError(f"Unable to list {repo} commits ({str(exc).lower()}).") from exc
        logger.info("Found commit: %s", sha)
        return make_cache_key(repo, sha)

    def restore(
        self,
        paths: Sequence[str],
        key: str,
        fallback_prefixes: Sequence[str] = (),
    ) -> str | None:
        """Restore ``paths`` and return the matched key, or ``None`` on a miss."""
        try:
            entry = select_cache_entry(self.backend.entries(), key, fallback_prefixes)
            if entry is None:
                logger.info("Cache not found for key %s", key)
                return None
            self.backend.extract(entry, paths)
        except Exception as exc:  # noqa: BLE001 - caching is never fatal
            logger.warning("Cache restore for %s failed: %s", key, exc)
            return None
        logger.info("Cache restored from key: %s", entry.key)
        return entry.key

    def save(self, paths: Sequence[str], key: str) -> int | None:
        """Archive ``paths`` under ``key``; existing keys are skipped."""
        try:
            if any(entry.key == key for entry in self.backend.entries()):
                logger.info("Cache %s already exists; skipping save.", key)
                return None
            entry = self.backend.store(key, paths)
        except Exception as exc:  # noqa: BLE001 - caching is never fatal
            message = f"Unable to save cache {key}: {exc}"
            if self.warnings is not None:
                self.warnings.record_warning(message)
            else:
                logger.warning(message)
            return None
        return entry.sequence
