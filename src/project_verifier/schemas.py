"""Pydantic models for state and results passed between phases and steps."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ProjectNumber = Literal["1", "2", "3a", "3b", "4"]
VALID_PROJECTS: frozenset[str] = frozenset({"1", "2", "3a", "3b", "4"})

# ---------------------------------------------------------------------------
# Project identity
# ---------------------------------------------------------------------------


class ProjectIdentity(BaseModel):
    """Validated project number and release version for one run."""

    model_config = ConfigDict(frozen=True)

    project: ProjectNumber
    version: str
    from_input: bool = False

    @property
    def tester(self) -> str:
        """Surefire test class pattern for this project."""
        return f"Project{self.project}Test*"


# ---------------------------------------------------------------------------
# Durable run state
# ---------------------------------------------------------------------------


def format_state_value(value: Any) -> str:
    """Serialize a state value the way later phases expect to read it back."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RunState(BaseModel):
    """Facts that cross phase boundaries.

    Every field is optional: ``None`` means the entry was never written, which
    is distinct from a written ``"false"`` or empty value. Unknown entries are
    kept as extras so a phase never drops what an earlier phase saved.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    owner: str | None = None
    main_repo: str | None = Field(default=None, alias="mainRepo")
    test_repo: str | None = Field(default=None, alias="testRepo")
    project: str | None = None
    version: str | None = None
    tester: str | None = None
    test_key: str | None = Field(default=None, alias="testKey")
    test_cache: str | None = Field(default=None, alias="testCache")
    passed: bool | None = None
    message: str | None = None

    @field_validator("passed", mode="before")
    @classmethod
    def _parse_passed(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value

    @classmethod
    def from_entries(cls, entries: Mapping[str, str]) -> RunState:
        """Build state from the flat string mapping restored from the store."""
        return cls.model_validate(dict(entries))

    def missing(self, *fields: str) -> list[str]:
        """Return the state keys (as persisted) among ``fields`` that are unset."""
        names: list[str] = []
        for name in fields:
            if getattr(self, name, None) is None:
                info = type(self).model_fields.get(name)
                names.append(info.alias if info is not None and info.alias else name)
        return names

    def to_entries(self) -> dict[str, str]:
        """Return the flat string mapping to persist, omitting unset entries."""
        payload = self.model_dump(by_alias=True, exclude_none=True)
        return {key: format_state_value(value) for key, value in payload.items()}


# ---------------------------------------------------------------------------
# Step and phase results
# ---------------------------------------------------------------------------


class OutcomeKind(str, Enum):
    """Result tag for a step group."""

    OK = "ok"
    WARNING = "warning"
    FATAL = "fatal"


class StepOutcome(BaseModel):
    """Tagged result returned by every step group."""

    kind: OutcomeKind = OutcomeKind.OK
    message: str = ""

    @classmethod
    def ok(cls) -> StepOutcome:
        return cls()

    @classmethod
    def warning(cls, message: str) -> StepOutcome:
        return cls(kind=OutcomeKind.WARNING, message=message)

    @classmethod
    def fatal(cls, message: str) -> StepOutcome:
        return cls(kind=OutcomeKind.FATAL, message=message)

    @property
    def is_fatal(self) -> bool:
        return self.kind is OutcomeKind.FATAL


class PhaseResult(BaseModel):
    """Outcome of one phase process, reported to the host pipeline."""

    name: str
    failed: bool = False
    message: str = ""
    status: dict[str, Any] = Field(default_factory=dict)
    state: RunState = Field(default_factory=RunState)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


# ---------------------------------------------------------------------------
# External collaborator payloads
# ---------------------------------------------------------------------------


class CacheEntry(BaseModel):
    """One archived checkout in the cache index."""

    key: str
    archive: str
    sequence: int = 0
    created_at: str = Field(default_factory=lambda: dt.datetime.now(dt.timezone.utc).isoformat())


class UploadResult(BaseModel):
    """Result of uploading an artifact."""

    name: str = ""
    failed_items: list[str] = Field(default_factory=list)
    size: int = 0


class ReleaseInfo(BaseModel):
    """Subset of a GitHub release response used by the cleanup phase."""

    status: int
    id: int | None = None
    tag_name: str | None = None
    body: str | None = None
