"""Project number and version resolution from the release ref."""

from __future__ import annotations

import re

from project_verifier.errors import ProjectIdentityError
from project_verifier.schemas import VALID_PROJECTS, ProjectIdentity

_VERSION_RE = re.compile(r"^v([1-4])\.(\d+)\.(\d+)$")


def version_from_ref(ref: str) -> str:
    """Return the last path segment of a git ref (``refs/tags/v1.2.3`` -> ``v1.2.3``)."""
    return str(ref or "").strip().split("/")[-1]


def parse_project_identity(version: str, override: str = "") -> ProjectIdentity:
    """Derive the project number from ``version``, falling back to ``override``.

    Versions look like ``v{project}.{minor}.{patch}`` with project 1-4;
    project 3 splits into ``3a`` (minor 0) and ``3b`` (any other minor).
    """
    matched = _VERSION_RE.match(version)
    if matched is not None:
        project = matched.group(1)
        if project == "3":
            project = "3a" if int(matched.group(2)) == 0 else "3b"
        return ProjectIdentity(project=project, version=version)

    candidate = str(override or "").strip()
    if candidate in VALID_PROJECTS:
        return ProjectIdentity(project=candidate, version=version, from_input=True)

    raise ProjectIdentityError(
        f"Unable to determine project from {version} or user input. Double check release "
        'is properly named (with a lowercase "v" at the start).'
    )
