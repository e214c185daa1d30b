"""Run-log output: GitHub Actions workflow commands and ANSI-styled lines.

Everything written here lands in the host pipeline's log next to the
inherited output of child processes, so every write is flushed immediately.
"""

from __future__ import annotations

import sys
from typing import TextIO

_BOLD = "\x1b[1m"
_BOLD_OFF = "\x1b[22m"
_FG = {"black": "\x1b[30m", "red": "\x1b[31m", "green": "\x1b[32m", "yellow": "\x1b[33m", "cyan": "\x1b[36m"}
_FG_OFF = "\x1b[39m"
_BG = {"red": "\x1b[41m", "green": "\x1b[42m", "yellow": "\x1b[43m"}
_BG_OFF = "\x1b[49m"


def escape_command_data(text: str) -> str:
    """Escape a workflow command message so newlines survive the runner."""
    return str(text).replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class Console:
    """Writes host-visible output for one phase process."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self.in_group = False

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def _write(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.stream.flush()

    def _command(self, name: str, message: str = "") -> None:
        self._write(f"::{name}::{escape_command_data(message)}")

    # -- plain log lines -------------------------------------------------

    def info(self, text: str = "") -> None:
        self._write(text)

    def debug(self, text: str) -> None:
        self._command("debug", text)

    def mask(self, secret: str) -> None:
        if secret:
            self._command("add-mask", secret)

    # -- collapsible groups ----------------------------------------------

    def start_group(self, title: str) -> None:
        self._command("group", title)
        self.in_group = True

    def end_group(self) -> None:
        if self.in_group:
            self._command("endgroup")
            self.in_group = False

    # -- annotations (always visible, outside groups) --------------------

    def annotate_warning(self, text: str) -> None:
        self._command("warning", text)

    def annotate_error(self, text: str) -> None:
        self._command("error", text)

    # -- styled lines ------------------------------------------------------

    def title(self, text: str) -> None:
        self._write(f"\n{_FG['cyan']}{_BOLD}{text}{_BOLD_OFF}{_FG_OFF}")

    def _labelled(self, color: str, label: str, text: str) -> None:
        badge = f"{_BG[color]}{_FG['black']}{_BOLD}{label}:{_BOLD_OFF}{_FG_OFF}{_BG_OFF}"
        self._write(f"{badge} {_FG[color]}{text}{_FG_OFF}")

    def error(self, text: str) -> None:
        self._labelled("red", "Error", text)

    def success(self, text: str) -> None:
        self._labelled("green", "Success", text)

    def warning(self, text: str) -> None:
        self._labelled("yellow", "Warning", text)
