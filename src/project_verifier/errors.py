"""Exception types shared by the phases and their collaborators."""

from __future__ import annotations


class VerifierError(RuntimeError):
    """Base class for failures raised by project verifier steps."""


class CommandError(VerifierError):
    """Raised when a command exits non-zero and the caller asked for that to be fatal."""

    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(f"{message} ({exit_code}).")
        self.exit_code = exit_code


class ProjectIdentityError(VerifierError):
    """Raised when the project number cannot be derived from the version or input."""


class CacheKeyError(VerifierError):
    """Raised when the tests repository commit cannot be resolved into a cache key."""


class GitHubAPIError(VerifierError):
    """Raised when a GitHub REST call fails or cannot be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ArtifactUploadError(VerifierError):
    """Raised when one or more files could not be uploaded as an artifact."""
