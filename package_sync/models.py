"""
Models — Manifest schema and per-run sync results.

Manifest files are validated with Pydantic. Runtime results are plain
dataclasses, serialised with asdict() for the --json report.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

# Target repository URL -> package paths declared for it (insertion ordered)
TargetMap = Dict[str, List[str]]


# --- Manifest schema ---


class Dependent(BaseModel):
    """Repositories that consume a shared package."""

    repositories: List[str] = Field(default_factory=list)


class ManifestRecord(BaseModel):
    """
    One manifest file.

        {"path": "packages/ui",
         "dependent": {"repositories": ["https://github.com/org/app.git"]}}
    """

    path: Optional[str] = None
    dependent: Optional[Dependent] = None

    @property
    def repositories(self) -> List[str]:
        if self.dependent is None:
            return []
        return self.dependent.repositories

    @property
    def is_usable(self) -> bool:
        """A record needs a path and at least one dependent repository."""
        return bool(self.path) and len(self.repositories) > 0


# --- Sync targets ---


@dataclass(frozen=True)
class SyncTarget:
    """A resolved target repository and the packages it receives."""

    url: str
    short_id: str  # final path segment without .git
    owner: str
    package_paths: Tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.short_id}"


class SyncState(str, Enum):
    """States of the per-target sync state machine."""

    CLONING = "CLONING"
    CONFIGURING = "CONFIGURING"
    BRANCH_RESOLUTION = "BRANCH_RESOLUTION"
    SYNCING = "SYNCING"
    COMMIT_DECISION = "COMMIT_DECISION"
    PUSH_AND_PR = "PUSH_AND_PR"
    DONE_CLEAN = "DONE_CLEAN"
    FAILED = "FAILED"
    CLEANUP = "CLEANUP"


@dataclass
class TargetResult:
    """Outcome of syncing one target repository."""

    target: str
    states: List[SyncState] = field(default_factory=list)
    failed_in: Optional[SyncState] = None
    error: Optional[str] = None
    branch_reused: bool = False
    committed: bool = False
    pushed: bool = False
    pr_created: bool = False
    pr_existing: bool = False
    pr_conflict: bool = False
    pr_url: Optional[str] = None
    cleaned_up: bool = False

    def enter(self, state: SyncState) -> None:
        self.states.append(state)

    @property
    def state(self) -> Optional[SyncState]:
        """The last state entered."""
        return self.states[-1] if self.states else None

    @property
    def ok(self) -> bool:
        return self.failed_in is None

    @property
    def outcome(self) -> str:
        if not self.ok:
            return "failed"
        if SyncState.DONE_CLEAN in self.states:
            return "clean"
        return "pushed"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["states"] = [s.value for s in self.states]
        data["failed_in"] = self.failed_in.value if self.failed_in else None
        data["outcome"] = self.outcome
        return data


@dataclass
class RunReport:
    """All target results of one invocation."""

    source: str
    started_at_iso: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    finished_at_iso: Optional[str] = None
    results: List[TargetResult] = field(default_factory=list)

    def finish(self) -> None:
        self.finished_at_iso = datetime.now(timezone.utc).isoformat()

    @property
    def failed(self) -> List[TargetResult]:
        return [r for r in self.results if not r.ok]

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        counts = {"pushed": 0, "clean": 0, "failed": 0}
        for r in self.results:
            counts[r.outcome] += 1
        return (
            f"{len(self.results)} target(s): {counts['pushed']} updated, "
            f"{counts['clean']} up to date, {counts['failed']} failed"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "started_at_iso": self.started_at_iso,
            "finished_at_iso": self.finished_at_iso,
            "summary": self.summary(),
            "results": [r.to_dict() for r in self.results],
        }
