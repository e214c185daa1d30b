"""Artifact publishing for report and actual-output archives."""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from project_verifier.schemas import UploadResult

logger = logging.getLogger(__name__)


class ArtifactUploader(Protocol):
    def upload(self, name: str, files: Sequence[str], base_dir: str | Path) -> UploadResult: ...


def _artifact_dirname(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "-", str(name or "").strip()).strip("-")
    return cleaned or "artifact"


class LocalArtifactStore:
    """Copies artifact files under ``root/<name>/`` preserving paths relative to ``base_dir``.

    Files that are missing or cannot be copied are reported in
    ``failed_items`` rather than raised.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def upload(self, name: str, files: Sequence[str], base_dir: str | Path) -> UploadResult:
        base = Path(base_dir).resolve()
        target_dir = self.root / _artifact_dirname(name)
        failed: list[str] = []
        size = 0

        for item in files:
            source = Path(item)
            if not source.is_absolute():
                source = base / source
            try:
                rel = source.resolve().relative_to(base)
            except ValueError:
                rel = Path(source.name)
            destination = target_dir / rel
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
                size += destination.stat().st_size
            except OSError as exc:
                logger.warning("Could not upload %s to artifact %s: %s", item, name, exc)
                failed.append(str(item))

        logger.debug("Artifact %s: %s byte(s), %s failure(s)", name, size, len(failed))
        return UploadResult(name=name, failed_items=failed, size=size)
