"""Run-wide warning counter with a single summary line per phase."""

from __future__ import annotations

import logging

from project_verifier.console import Console
from project_verifier.state_store import WARNINGS_KEY, StateBackend

logger = logging.getLogger(__name__)


class WarningAggregator:
    """Counts recoverable issues across every phase of a run.

    The count lives in the same backend as the run state, so a warning raised
    during setup is still part of the total read by the cleanup phase.
    """

    def __init__(self, backend: StateBackend, console: Console | None = None) -> None:
        self.backend = backend
        self.console = console or Console()

    @property
    def count(self) -> int:
        raw = self.backend.get(WARNINGS_KEY)
        if raw is None or not raw.strip():
            return 0
        try:
            return max(0, int(raw))
        except ValueError:
            logger.warning("Ignoring malformed warning count %r", raw)
            return 0

    def record_warning(self, message: str) -> int:
        """Show ``message`` now and bump the durable count; returns the new total."""
        self.console.warning(message)
        total = self.count + 1
        self.backend.set(WARNINGS_KEY, str(total))
        logger.debug("Warning count is now %s", total)
        return total

    def summarize(self, phase: str) -> str | None:
        """Emit one warning annotation naming ``phase`` when any warnings were recorded."""
        total = self.count
        if total <= 0:
            return None
        if total == 1:
            message = f"There was 1 warning in the {phase} phase. View the run log for details."
        else:
            message = f"There were {total} warnings in the {phase} phase. View the run log for details."
        self.console.annotate_warning(message)
        return message
