"""External command execution with exit-code based failure policy."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from project_verifier.console import Console
from project_verifier.errors import CommandError

logger = logging.getLogger(__name__)

EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


def resolve_binary(name: str) -> str:
    """Resolve a binary name to a full executable path when possible."""
    cleaned = str(name or "").strip()
    if not cleaned:
        return ""
    return shutil.which(cleaned) or cleaned


def run_command(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: str | Path | None = None,
    title: str | None = None,
    error: str | None = None,
    console: Console | None = None,
) -> int:
    """Run ``command`` with ``args`` and return its exit code.

    Output of the child is inherited, not captured. A non-zero exit only
    raises when ``error`` is given, in which case :class:`CommandError`
    carries ``error`` and the exit code.
    """
    out = console or Console()
    if title:
        out.info(f"\n{title}...")

    binary = resolve_binary(command)
    cmd = [binary, *[str(arg) for arg in args]]
    out.info(f"[command]{shlex.join(cmd)}")
    logger.debug("Running %s (cwd=%s)", command, cwd)

    if cwd is not None and not Path(cwd).is_dir():
        out.info(f"Working directory not found: {cwd}")
        logger.warning("Not running %s; working directory %s does not exist", command, cwd)
        exit_code = EXIT_NOT_FOUND
    else:
        try:
            completed = subprocess.run(cmd, cwd=cwd, check=False)
            exit_code = completed.returncode
        except PermissionError as exc:
            logger.warning("Unable to execute %s: %s", command, exc)
            exit_code = EXIT_NOT_EXECUTABLE
        except FileNotFoundError as exc:
            out.info(f"Command not found: {command}")
            logger.warning("Unable to find %s: %s", command, exc)
            exit_code = EXIT_NOT_FOUND
        except OSError as exc:
            logger.warning("Unable to start %s: %s", command, exc)
            exit_code = EXIT_NOT_FOUND

    if error is not None and exit_code != 0:
        raise CommandError(error, exit_code)
    return exit_code


class CommandRunner:
    """Runs commands relative to a fixed workspace directory."""

    def __init__(self, console: Console | None = None, *, workdir: str | Path | None = None) -> None:
        self.console = console or Console()
        self.workdir = Path(workdir).resolve() if workdir is not None else None

    def _resolve_cwd(self, cwd: str | Path | None) -> Path | None:
        if cwd is None:
            return self.workdir
        path = Path(cwd)
        if path.is_absolute() or self.workdir is None:
            return path
        return self.workdir / path

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: str | Path | None = None,
        title: str | None = None,
        error: str | None = None,
    ) -> int:
        return run_command(
            command,
            args,
            cwd=self._resolve_cwd(cwd),
            title=title,
            error=error,
            console=self.console,
        )
