"""Durable key/value state shared between phase processes of one run.

Each phase runs in its own process. Facts a later phase needs are written
through a :class:`StateBackend` at the end of one phase and read back at the
start of the next. Backends only need ``get``/``set``; the full key set is
recovered from a reserved index entry, so no backend has to support listing.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any, Protocol

from project_verifier.console import Console
from project_verifier.file_io import locked_path, read_json, write_json_atomic
from project_verifier.schemas import format_state_value

logger = logging.getLogger(__name__)

INDEX_KEY = "keys"
WARNINGS_KEY = "warnings"
RESERVED_KEYS = frozenset({INDEX_KEY, WARNINGS_KEY})


class StateBackend(Protocol):
    """Minimal persistence API scoped to one workflow run."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStateBackend:
    """In-process backend; copy ``values`` into a new instance to simulate a new phase."""

    def __init__(self, values: Mapping[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = str(value)


class FileStateBackend:
    """JSON-file backend for local runs outside GitHub Actions."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self, key: str) -> str | None:
        value = read_json(self.path, {}).get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        with locked_path(self.path):
            payload = read_json(self.path, {})
            payload[key] = str(value)
            write_json_atomic(self.path, payload)

    def clear(self) -> None:
        """Forget a previous run's state; called before the first phase."""
        with locked_path(self.path):
            self.path.unlink(missing_ok=True)


class ActionsStateBackend:
    """Backend using the GitHub Actions ``GITHUB_STATE`` file.

    Values appended to the state file are exposed by the runner to later
    steps of the same action as ``STATE_<name>`` environment variables.
    Values set in this process are also kept locally so they can be read
    back before the process exits.
    """

    def __init__(
        self,
        state_file: str | Path | None = None,
        *,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self._environ = environ if environ is not None else os.environ
        raw_path = state_file if state_file is not None else self._environ.get("GITHUB_STATE", "")
        if not str(raw_path or "").strip():
            raise ValueError("GITHUB_STATE is not set; the Actions state backend is unavailable.")
        self.state_file = Path(raw_path)
        self._local: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        if key in self._local:
            return self._local[key]
        return self._environ.get(f"STATE_{key}")

    def set(self, key: str, value: str) -> None:
        text = str(value)
        if "\n" in text or "\r" in text:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            line = f"{key}<<{delimiter}\n{text}\n{delimiter}\n"
        else:
            line = f"{key}={text}\n"
        with locked_path(self.state_file), self.state_file.open("a", encoding="utf-8") as handle:
            handle.write(line)
        self._local[key] = text


class StateStore:
    """Saves and restores the flat state mapping through a backend."""

    def __init__(self, backend: StateBackend, console: Console | None = None) -> None:
        self.backend = backend
        self.console = console or Console()

    def save(self, states: Mapping[str, Any]) -> None:
        """Persist every entry plus the reserved index listing their keys."""
        reserved = RESERVED_KEYS.intersection(states)
        if reserved:
            raise ValueError(f"State keys are reserved: {', '.join(sorted(reserved))}")

        self.console.start_group("Saving state...")
        try:
            for key, value in states.items():
                text = format_state_value(value)
                self.backend.set(key, text)
                self.console.info(f"Saved value {text} for state {key}.")
            self.backend.set(INDEX_KEY, json.dumps(list(states.keys())))
        finally:
            self.console.end_group()

    def restore(self) -> dict[str, str]:
        """Return every entry named by the index; empty when nothing was saved."""
        states: dict[str, str] = {}
        self.console.start_group("Restoring state...")
        try:
            raw = self.backend.get(INDEX_KEY)
            if not raw:
                self.console.info("No keys to restore.")
                return states

            keys = _parse_index(raw)
            self.console.info(f"Loaded keys: {','.join(keys)}")
            for key in keys:
                value = self.backend.get(key)
                if value is None:
                    logger.debug("State %s is listed in the index but was never written", key)
                    continue
                states[key] = value
                self.console.info(f"Restored value {value} for state {key}.")
            return states
        finally:
            self.console.end_group()


def _parse_index(raw: str) -> list[str]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed state index: %r", raw)
        return []
    if not isinstance(parsed, list):
        logger.warning("Ignoring state index that is not a list: %r", raw)
        return []
    return [str(key) for key in parsed if str(key) not in RESERVED_KEYS]
