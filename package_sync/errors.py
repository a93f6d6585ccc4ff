"""
Errors — Exception taxonomy for package sync runs.

Configuration and manifest errors are raised before the per-target loop
starts and fail the whole run. Git and review-API errors are raised inside
a target's sync and are contained by the orchestrator.
"""

from __future__ import annotations

from typing import Optional, Sequence


class PackageSyncError(Exception):
    """Base class for all package sync errors."""


class ConfigurationError(PackageSyncError):
    """Raised when configuration is missing or invalid."""


class ManifestError(PackageSyncError):
    """Raised when a manifest file cannot be parsed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class GitCommandError(PackageSyncError):
    """Raised when a git command exits non-zero."""

    def __init__(
        self,
        command: Sequence[str],
        returncode: int,
        stderr: str = "",
    ):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(
            f"'{' '.join(self.command)}' failed with exit code {returncode}{detail}"
        )


class BranchAlreadyExists(PackageSyncError):
    """Raised by branch creation when the branch is already present."""

    def __init__(self, branch: str, remote: bool = False):
        self.branch = branch
        self.remote = remote
        where = "on the remote" if remote else "locally"
        super().__init__(f"Branch '{branch}' already exists {where}")


class ReviewApiError(PackageSyncError):
    """Raised when the pull request API answers with a non-success status."""

    CONFLICT = 422

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")

    @property
    def is_conflict(self) -> bool:
        """True for the 'no commits between base and head' style rejection."""
        return self.status_code == self.CONFLICT
