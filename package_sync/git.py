"""
Git — Working-copy handle over the git command line.

Each GitWorkingCopy carries its own directory and passes it as `cwd` to
every git call, so nothing here changes the process working directory.
Failed commands raise GitCommandError; branch creation raises the tagged
BranchAlreadyExists when the branch is already there.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .errors import BranchAlreadyExists, GitCommandError
from .resolver import redact_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
NETWORK_TIMEOUT = 300

IDENTITY_SCOPES = ("local", "global", "system")


def _git_env() -> dict:
    env = dict(os.environ)
    # Never block on a credential prompt in CI
    env["GIT_TERMINAL_PROMPT"] = "0"
    return env


def run_git(
    args: Sequence[str],
    cwd: Path,
    timeout: int = DEFAULT_TIMEOUT,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run a git command in cwd, raising GitCommandError on failure if check."""
    cmd = ["git"] + list(args)
    result = subprocess.run(
        cmd,
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
        env=_git_env(),
    )
    if check and result.returncode != 0:
        raise GitCommandError(
            [redact_url(part) for part in cmd],
            result.returncode,
            redact_url(result.stderr or result.stdout or ""),
        )
    return result


@dataclass
class WorkingTreeStatus:
    """Porcelain status of a working tree."""

    changes: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not self.changes


@dataclass
class CommitLog:
    """Summary of the commit history reachable from HEAD."""

    total_commit_count: int
    head: Optional[str] = None


class GitWorkingCopy:
    """A local clone of one repository."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"GitWorkingCopy({str(self.path)!r})"

    def _git(self, *args: str, timeout: int = DEFAULT_TIMEOUT, check: bool = True):
        return run_git(args, self.path, timeout=timeout, check=check)

    def _output(self, *args: str) -> str:
        return self._git(*args).stdout.strip()

    def _ref_exists(self, ref: str) -> bool:
        result = self._git("rev-parse", "--verify", "--quiet", ref, check=False)
        return result.returncode == 0

    # ─── Configuration ──────────────────────────────────────

    def set_remote_url(self, name: str, url: str) -> None:
        self._git("remote", "set-url", name, url)

    def configure_identity(self, name: str, email: str, scope: str = "local") -> None:
        """Set user.name / user.email at the given config scope."""
        if scope not in IDENTITY_SCOPES:
            raise ValueError(f"Unknown git config scope: {scope}")
        self._git("config", f"--{scope}", "user.name", name)
        self._git("config", f"--{scope}", "user.email", email)

    # ─── Branches ───────────────────────────────────────────

    def create_branch(self, name: str, remote: str = "origin") -> None:
        """
        Create and switch to a new branch from HEAD.

        Raises:
            BranchAlreadyExists: If the branch exists locally or on the remote
            GitCommandError: For any other failure
        """
        if self._ref_exists(f"refs/heads/{name}"):
            raise BranchAlreadyExists(name)
        if self._ref_exists(f"refs/remotes/{remote}/{name}"):
            raise BranchAlreadyExists(name, remote=True)
        self._git("checkout", "-b", name)

    def checkout_existing(self, name: str) -> None:
        """Switch to an existing branch, tracking the remote one if needed."""
        self._git("checkout", name)

    # ─── Remote exchange ────────────────────────────────────

    def pull(self, remote: str, branch: str, rebase: bool = False) -> None:
        strategy = "--rebase" if rebase else "--no-rebase"
        self._git("pull", strategy, remote, branch, timeout=NETWORK_TIMEOUT)

    def push(self, remote: str, branch: str, set_upstream: bool = False) -> None:
        cmd = ["push", remote, branch]
        if set_upstream:
            cmd.insert(1, "--set-upstream")
        self._git(*cmd, timeout=NETWORK_TIMEOUT)

    # ─── Changes ────────────────────────────────────────────

    def status(self) -> WorkingTreeStatus:
        output = self._git("status", "--porcelain").stdout
        return WorkingTreeStatus(changes=[line for line in output.splitlines() if line.strip()])

    def add_all(self) -> None:
        self._git("add", "--all")

    def commit(self, message: str) -> str:
        """Commit staged changes and return the new HEAD hash."""
        self._git("commit", "-m", message)
        return self._output("rev-parse", "HEAD")

    def diff(self, *rev_range: str) -> List[str]:
        """Names of files changed in the given range (e.g. 'HEAD^', 'HEAD')."""
        output = self._git("diff", "--name-only", *rev_range).stdout
        return [line.strip() for line in output.splitlines() if line.strip()]

    def log(self) -> CommitLog:
        count = self._output("rev-list", "--count", "HEAD")
        head = self._output("rev-parse", "--short", "HEAD")
        return CommitLog(total_commit_count=int(count), head=head)


class GitClient:
    """Creates working copies."""

    def clone(self, url: str, dest: Path, branch: Optional[str] = None) -> GitWorkingCopy:
        """Clone url into dest (which must not exist or be empty)."""
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        cmd = ["clone", url, str(dest)]
        if branch:
            cmd[1:1] = ["--branch", branch]
        run_git(cmd, dest.parent, timeout=NETWORK_TIMEOUT)
        logger.debug(f"Cloned {redact_url(url)} into {dest}")
        return GitWorkingCopy(dest)

    def open(self, path: Path) -> GitWorkingCopy:
        """Wrap an existing checkout."""
        return GitWorkingCopy(path)
