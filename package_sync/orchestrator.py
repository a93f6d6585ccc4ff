"""
Sync Orchestrator — Drive every target repository through one sync.

## States (per target)

    CLONING → CONFIGURING → BRANCH_RESOLUTION → SYNCING → COMMIT_DECISION
        → PUSH_AND_PR | DONE_CLEAN
        → CLEANUP

Any error moves the target to FAILED and then CLEANUP. The working copy
is removed in CLEANUP whatever happened, and the loop moves on to the
next target. Targets run strictly one after another.

Errors before the loop (configuration, manifests, source identity) are
not caught here and fail the run.

## Usage

    settings = SyncSettings.from_env()
    with GitHubPullRequests(settings.token, settings.api_url) as review:
        orchestrator = SyncOrchestrator(settings, GitClient(), review)
        report = orchestrator.run_all()
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import SyncSettings
from .dedup import find_open_sync_pull_requests, pull_request_title
from .errors import BranchAlreadyExists, GitCommandError, ReviewApiError
from .git import GitClient, GitWorkingCopy
from .logging_config import Severity, log_event
from .manifest import build_target_map
from .mirror import mirror_directory
from .models import RunReport, SyncState, SyncTarget, TargetMap, TargetResult
from .resolver import authenticated_url, redact_url, resolve_targets, source_repository_url
from .review import GitHubPullRequests

logger = logging.getLogger(__name__)

REMOTE = "origin"

MirrorFn = Callable[[Path, Path], None]


def commit_message(source_name: str) -> str:
    return f"Sync shared packages from {source_name} repo"


def pull_request_body(source_repository: str, package_paths: Iterable[str]) -> str:
    lines = [
        f"This PR syncs the shared packages from the {source_repository} repo.",
        "",
        "Packages:",
    ]
    lines.extend(f"- `{path}`" for path in package_paths)
    return "\n".join(lines)


class TargetSynchronizer:
    """Runs the state machine for a single target repository."""

    def __init__(
        self,
        settings: SyncSettings,
        git: GitClient,
        review: GitHubPullRequests,
        mirror: MirrorFn = mirror_directory,
        workspace_root: Optional[Path] = None,
    ):
        self.settings = settings
        self.git = git
        self.review = review
        self.mirror = mirror
        self.workspace_root = workspace_root

    def sync(self, target: SyncTarget) -> TargetResult:
        """Sync one target. Never raises for errors inside the target."""
        result = TargetResult(target=target.url)
        workdir = Path(
            tempfile.mkdtemp(
                prefix=f"package-sync-{target.short_id}-",
                dir=str(self.workspace_root) if self.workspace_root else None,
            )
        )

        try:
            copy = self._clone(target, result, workdir)
            branch = self._resolve_branch(copy, result)
            self._sync_packages(copy, target, result)

            result.enter(SyncState.COMMIT_DECISION)
            status = copy.status()
            if status.is_clean:
                result.enter(SyncState.DONE_CLEAN)
                log_event(logger, Severity.SUCCESS, "Already up to date", target=target.full_name)
            else:
                copy.add_all()
                copy.commit(commit_message(self.settings.source_name))
                result.committed = True
                log_event(
                    logger, Severity.INFO, "Committed package changes",
                    target=target.full_name, files=len(status.changes),
                )
                self._push_and_open_pr(copy, target, branch, result)

        except Exception as e:
            result.failed_in = result.state
            result.error = redact_url(str(e))
            result.enter(SyncState.FAILED)
            log_event(
                logger, Severity.ERROR, f"Sync failed: {result.error}",
                target=target.full_name, state=result.failed_in.value,
            )

        finally:
            result.enter(SyncState.CLEANUP)
            try:
                shutil.rmtree(workdir)
                result.cleaned_up = True
            except OSError as e:
                log_event(
                    logger, Severity.ERROR, f"Could not remove working copy {workdir}: {e}",
                    target=target.full_name,
                )

        return result

    # ─── States ─────────────────────────────────────────────

    def _clone(self, target: SyncTarget, result: TargetResult, workdir: Path) -> GitWorkingCopy:
        """CLONING + CONFIGURING."""
        result.enter(SyncState.CLONING)
        url = authenticated_url(target.url, self.settings.token or "")
        log_event(logger, Severity.INFO, "Cloning", target=target.full_name)
        # The sync branch is cut from the PR base, not the remote default branch
        copy = self.git.clone(url, workdir / target.short_id, branch=self.settings.base_branch)

        result.enter(SyncState.CONFIGURING)
        copy.set_remote_url(REMOTE, url)
        copy.configure_identity(self.settings.username, self.settings.email)
        return copy

    def _resolve_branch(self, copy: GitWorkingCopy, result: TargetResult) -> str:
        """BRANCH_RESOLUTION: create the sync branch or reuse the existing one."""
        result.enter(SyncState.BRANCH_RESOLUTION)

        if not self.settings.create_sync_branch:
            return self.settings.base_branch

        branch = self.settings.sync_branch
        try:
            copy.create_branch(branch)
            log_event(logger, Severity.INFO, f"Created branch {branch}")
        except BranchAlreadyExists as e:
            result.branch_reused = True
            copy.checkout_existing(branch)
            if e.remote:
                copy.pull(REMOTE, branch, rebase=False)
            log_event(logger, Severity.INFO, f"Reusing existing branch {branch}")
        return branch

    def _package_destinations(
        self,
        copy: GitWorkingCopy,
        target: SyncTarget,
    ) -> List[Tuple[str, Path, Path]]:
        """
        Map each package path to (path, source dir, destination dir).

        A package under the source's own packages directory keeps its path
        below it (packages/ui -> packages/ui); anything else keeps its path
        relative to the source root (legacy/ui -> packages/legacy/ui).

        Raises:
            ValueError: If a path leaves the source repository, or two
                packages would land on the same or nested destinations
        """
        source_root = Path(self.settings.source_root).resolve()
        source_packages = source_root / self.settings.packages_dir
        packages_dir = copy.path / self.settings.packages_dir

        mapped: List[Tuple[str, Path, Path]] = []
        for package_path in target.package_paths:
            src = (source_root / package_path).resolve()
            if source_root not in src.parents:
                raise ValueError(f"Package path escapes the source repository: {package_path}")
            if source_packages in src.parents:
                dst = packages_dir / src.relative_to(source_packages)
            else:
                dst = packages_dir / src.relative_to(source_root)

            for other_path, other_src, other_dst in mapped:
                if other_src == src:
                    break
                if dst == other_dst or dst in other_dst.parents or other_dst in dst.parents:
                    raise ValueError(
                        f"Packages {other_path} and {package_path} overlap at "
                        f"{dst.relative_to(copy.path)}"
                    )
            else:
                mapped.append((package_path, src, dst))
        return mapped

    def _sync_packages(
        self,
        copy: GitWorkingCopy,
        target: SyncTarget,
        result: TargetResult,
    ) -> None:
        """SYNCING: mirror each package into the target's packages directory."""
        result.enter(SyncState.SYNCING)

        for package_path, src, dst in self._package_destinations(copy, target):
            self.mirror(src, dst)
            log_event(
                logger, Severity.INFO, f"Synced {package_path}",
                target=target.full_name, dest=dst.relative_to(copy.path),
            )

    def _push_and_open_pr(
        self,
        copy: GitWorkingCopy,
        target: SyncTarget,
        branch: str,
        result: TargetResult,
    ) -> None:
        """PUSH_AND_PR: push, then open a PR unless one is already open."""
        result.enter(SyncState.PUSH_AND_PR)

        copy.push(REMOTE, branch, set_upstream=not result.branch_reused)
        result.pushed = True
        log_event(logger, Severity.SUCCESS, f"Pushed {branch}", target=target.full_name)

        if not self.settings.create_sync_branch:
            return

        # Check-then-create is not atomic: two concurrent runs can both
        # see no open PR. A branch pushed without a PR is only picked up
        # again by a later run that commits; a clean run skips this check.
        title = pull_request_title(self.settings.source_name)
        existing = find_open_sync_pull_requests(
            self.review, target.owner, target.short_id, title
        )
        if existing:
            result.pr_existing = True
            result.pr_url = existing[0].get("html_url")
            log_event(
                logger, Severity.INFO, "Pull request already open",
                target=target.full_name, url=result.pr_url,
            )
            return

        try:
            pr = self.review.create_pull_request(
                target.owner,
                target.short_id,
                title=title,
                head=branch,
                base=self.settings.base_branch,
                body=pull_request_body(
                    self.settings.source_repository or self.settings.source_name,
                    target.package_paths,
                ),
            )
        except ReviewApiError as e:
            if not e.is_conflict:
                raise
            result.pr_conflict = True
            log_event(
                logger, Severity.WARNING, f"Pull request not created: {e}",
                target=target.full_name,
            )
            return

        result.pr_created = True
        result.pr_url = pr.get("html_url")
        log_event(
            logger, Severity.SUCCESS, "Opened pull request",
            target=target.full_name, url=result.pr_url,
        )


class SyncOrchestrator:
    """Builds the target list and syncs every target in turn."""

    def __init__(
        self,
        settings: SyncSettings,
        git: GitClient,
        review: GitHubPullRequests,
        mirror: MirrorFn = mirror_directory,
        workspace_root: Optional[Path] = None,
    ):
        self.settings = settings
        self.git = git
        self.synchronizer = TargetSynchronizer(
            settings, git, review, mirror=mirror, workspace_root=workspace_root
        )

    @property
    def source_url(self) -> str:
        return source_repository_url(
            self.settings.source_repository or "", self.settings.server_url
        )

    # ─── Before the loop ────────────────────────────────────

    def configure_source(self) -> GitWorkingCopy:
        """Set the commit identity on the source checkout."""
        source = self.git.open(self.settings.source_root)
        source.configure_identity(self.settings.username, self.settings.email)
        return source

    def load_target_map(self) -> TargetMap:
        return build_target_map(
            self.settings.manifest_root,
            self.settings.manifest_filename,
            strict=self.settings.manifest_strict,
            dedupe=self.settings.manifest_dedupe,
        )

    def report_source_changes(
        self,
        source: GitWorkingCopy,
        target_map: TargetMap,
    ) -> Dict[str, bool]:
        """
        Log which package paths changed in the last source commit.

        Informational only; any git problem here is logged and ignored.
        """
        package_paths: List[str] = []
        for paths in target_map.values():
            package_paths.extend(p for p in paths if p not in package_paths)

        try:
            if source.log().total_commit_count < 2:
                logger.info("Source has a single commit, skipping change detection")
                return {}
            changed_files = source.diff("HEAD^", "HEAD")
        except (GitCommandError, subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"Change detection skipped: {e}")
            return {}

        changes: Dict[str, bool] = {}
        for path in package_paths:
            prefix = path.strip("/") + "/"
            changes[path] = any(
                f == path.strip("/") or f.startswith(prefix) for f in changed_files
            )
            if changes[path]:
                logger.info(f"Changes detected in package at {path}")
            else:
                logger.info(f"No changes detected in {path}")
        return changes

    def prepare(self) -> List[SyncTarget]:
        """
        Everything that must succeed before any target is touched.

        Raises:
            ConfigurationError: Missing settings or unreadable search root
            ManifestError: Unparsable manifest (strict mode)
            GitCommandError: Source identity could not be configured
        """
        self.settings.validate()
        source = self.configure_source()
        target_map = self.load_target_map()
        self.report_source_changes(source, target_map)
        return resolve_targets(target_map, self.source_url)

    # ─── The loop ───────────────────────────────────────────

    def run(self, targets: Iterable[SyncTarget]) -> RunReport:
        """Sync targets one at a time; a failed target never stops the loop."""
        report = RunReport(source=self.settings.source_repository or "")

        for target in targets:
            logger.info(f"{'─' * 10} {target.full_name} {'─' * 10}")
            report.results.append(self.synchronizer.sync(target))

        report.finish()
        severity = Severity.SUCCESS if report.ok else Severity.WARNING
        log_event(logger, severity, report.summary())
        return report

    def run_all(self) -> RunReport:
        return self.run(self.prepare())
