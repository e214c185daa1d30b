"""Project Verifier - setup, verify, and cleanup phases for project test runs."""

from importlib.metadata import PackageNotFoundError, version

from project_verifier.schemas import ProjectIdentity, RunState, StepOutcome

__all__ = ["ProjectIdentity", "RunState", "StepOutcome"]

try:
    __version__ = version("project-verifier")
except PackageNotFoundError:
    __version__ = "0.0.0"
