"""Shared skeleton for the setup, verify, and cleanup phases.

A phase restores state, runs an ordered list of step groups, and always
finishes by persisting state and summarizing warnings, whatever happened in
between. Each step group is its own failure boundary:

- a recoverable group that fails records a warning and the phase continues;
- a non-recoverable group that fails (or returns a fatal outcome) stops the
  remaining groups and marks the phase as failed.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from project_verifier.artifacts import ArtifactUploader, LocalArtifactStore
from project_verifier.cache import CacheResolver, LocalCacheBackend
from project_verifier.command_runner import CommandRunner
from project_verifier.config import ActionContext
from project_verifier.console import Console
from project_verifier.errors import VerifierError
from project_verifier.github_api import GitHubClient
from project_verifier.schemas import (
    OutcomeKind,
    PhaseResult,
    ReleaseInfo,
    RunState,
    StepOutcome,
)
from project_verifier.state_store import StateBackend, StateStore
from project_verifier.warning_log import WarningAggregator

logger = logging.getLogger(__name__)


class Runner(Protocol):
    def run(
        self,
        command: str,
        args: Any = (),
        *,
        cwd: Any = None,
        title: str | None = None,
        error: str | None = None,
    ) -> int: ...


class ReleaseClient(Protocol):
    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo: ...

    def update_release(self, owner: str, repo: str, release_id: int, body: str) -> ReleaseInfo: ...


@dataclass
class PhaseServices:
    """Collaborators injected into every phase."""

    context: ActionContext
    console: Console
    runner: Runner
    store: StateStore
    warnings: WarningAggregator
    cache: CacheResolver
    releases: ReleaseClient
    artifacts: ArtifactUploader


def build_services(
    context: ActionContext,
    *,
    console: Console | None = None,
    backend: StateBackend | None = None,
) -> PhaseServices:
    """Wire the default collaborators for a phase process."""
    out = console or Console()
    state_backend = backend if backend is not None else context.build_state_backend()
    warnings = WarningAggregator(state_backend, out)
    github = GitHubClient(context.token, api_url=context.api_url)
    cache = CacheResolver(
        LocalCacheBackend(context.cache_dir, workdir=context.workspace),
        github,
        warnings=warnings,
    )
    return PhaseServices(
        context=context,
        console=out,
        runner=CommandRunner(out, workdir=context.workspace),
        store=StateStore(state_backend, out),
        warnings=warnings,
        cache=cache,
        releases=github,
        artifacts=LocalArtifactStore(context.resolved_artifact_dir),
    )


@dataclass
class StepGroup:
    """A failure-isolated, titled unit of sequential steps."""

    title: str
    action: Callable[[], StepOutcome | None]
    recoverable: bool = False
    warning_prefix: str = ""
    banner: str = ""
    when: Callable[[], bool] | None = None
    skip_message: str = ""


class Phase:
    """Base class for the three phase processes."""

    name = "phase"
    label = "phase"
    failure_prefix = "Phase failed."
    opening_title = ""
    closing_title = ""
    restores_state = True
    persists_state = True
    required_state: tuple[str, ...] = ()

    def __init__(self, services: PhaseServices) -> None:
        self.services = services
        self.context = services.context
        self.console = services.console
        self.runner = services.runner
        self.status: dict[str, Any] = {}
        self.state = RunState()

    def steps(self) -> list[StepGroup]:
        raise NotImplementedError

    def run(self) -> PhaseResult:
        """Run every step group, then persist and summarize no matter what."""
        failure = ""
        try:
            if self.opening_title:
                self.console.title(self.opening_title)
            if self.restores_state:
                self.state = RunState.from_entries(self.services.store.restore())
            missing = self.state.missing(*self.required_state)
            if missing:
                raise VerifierError(f"Missing state from an earlier phase: {', '.join(missing)}.")
            for group in self.steps():
                outcome = self._run_group(group)
                if outcome.is_fatal:
                    failure = outcome.message
                    break
        except Exception as exc:  # noqa: BLE001 - reported as a phase failure below
            logger.debug("Unexpected %s phase error", self.name, exc_info=True)
            failure = str(exc) or type(exc).__name__
            self.console.error(failure)
            self.console.end_group()
        finally:
            if failure:
                self.console.annotate_error(f"{self.failure_prefix} {failure}")
            finish_failure = self._finish()
            failure = failure or finish_failure

        return PhaseResult(
            name=self.name,
            failed=bool(failure),
            message=failure,
            status=dict(self.status),
            state=self.state,
        )

    def _run_group(self, group: StepGroup) -> StepOutcome:
        if group.banner:
            self.console.title(group.banner)
        if group.when is not None and not group.when():
            if group.skip_message:
                self.console.info(group.skip_message)
            return StepOutcome.ok()

        self.console.start_group(group.title)
        try:
            outcome = group.action() or StepOutcome.ok()
        except Exception as exc:  # noqa: BLE001 - each group owns its failures
            message = str(exc) or type(exc).__name__
            if group.recoverable:
                self.console.end_group()
                self.services.warnings.record_warning(f"{group.warning_prefix} {message}".strip())
                return StepOutcome.warning(message)
            self.console.error(message)
            self.console.end_group()
            return StepOutcome.fatal(message)

        if outcome.is_fatal:
            self.console.error(outcome.message)
            self.console.end_group()
            return outcome

        self.console.info("")
        self.console.end_group()
        if outcome.kind is OutcomeKind.WARNING:
            # warnings returned by a group are shown after it closes
            self.services.warnings.record_warning(outcome.message)
        return outcome

    def _finish(self) -> str:
        """Persist state, log status, and summarize warnings; returns a failure message."""
        failure = ""
        try:
            if self.closing_title:
                self.console.title(self.closing_title)
            if self.persists_state:
                self.services.store.save(self.state.to_entries())
        except Exception as exc:  # noqa: BLE001 - summary must still run
            failure = f"Unable to save state. {exc}"
            self.console.end_group()
            self.console.annotate_error(f"{self.failure_prefix} {failure}")
        finally:
            self.console.start_group(f"Logging {self.name} status...")
            self.console.info(f"status: {json.dumps(self.status, default=str)}")
            self.console.info(f"states: {json.dumps(self.state.to_entries())}")
            self.console.end_group()
            self.services.warnings.summarize(self.label)
        return failure
