"""
Sync Configuration — Parse action inputs and environment variables.

Every key is looked up as a GitHub Action input first (INPUT_<KEY>, which
is how the runner exposes `with:` values), then as a plain environment
variable. A .env file in the working directory is loaded by the CLI
before settings are read.

Minimal required config:
    TOKEN=ghp_xxxxx                 (falls back to GITHUB_TOKEN)
    SOURCE_REPOSITORY=org/app-one   (falls back to GITHUB_REPOSITORY)

Optional:
    USERNAME, EMAIL                 commit identity
    CREATE_SYNC_BRANCH=true         commit to a sync branch and open a PR
    BASE_BRANCH=master              PR base / direct push target
    SOURCE_ROOT=.                   checkout of the source repository
                                    (falls back to GITHUB_WORKSPACE)
    MANIFEST_ROOT=SOURCE_ROOT       where to look for manifest files
    MANIFEST_FILENAME=blockera-pm.json
    MANIFEST_STRICT=true            abort on unparsable manifests
    MANIFEST_DEDUPE=false           drop repeated paths per repository
    PACKAGES_DIR=packages           destination directory in targets
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "blockera-pm.json"
DEFAULT_USERNAME = "package-sync-bot"
DEFAULT_EMAIL = "package-sync-bot@users.noreply.github.com"

TRUTHY = ("true", "1", "yes")


def _input(key: str, default: Optional[str] = None) -> Optional[str]:
    """Read INPUT_<KEY>, then <KEY>; empty strings count as unset."""
    for name in (f"INPUT_{key}", key):
        value = os.environ.get(name)
        if value is not None and value.strip() != "":
            return value.strip()
    return default


def _flag(key: str, default: bool) -> bool:
    value = _input(key)
    if value is None:
        return default
    return value.lower() in TRUTHY


@dataclass
class SyncSettings:
    """Settings for one sync run."""

    token: Optional[str] = field(default=None, repr=False)
    source_repository: Optional[str] = None  # owner/name
    username: str = DEFAULT_USERNAME
    email: str = DEFAULT_EMAIL
    create_sync_branch: bool = True
    base_branch: str = "master"
    source_root: Path = field(default_factory=Path.cwd)
    manifest_root: Path = field(default_factory=Path.cwd)
    manifest_filename: str = MANIFEST_FILENAME
    manifest_strict: bool = True
    manifest_dedupe: bool = False
    packages_dir: str = "packages"
    server_url: str = "https://github.com"
    api_url: str = "https://api.github.com"

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Parse settings from action inputs / environment variables."""
        source_root = Path(_input("SOURCE_ROOT") or _input("GITHUB_WORKSPACE") or Path.cwd())
        manifest_root = _input("MANIFEST_ROOT")
        settings = cls(
            token=_input("TOKEN") or _input("GITHUB_TOKEN"),
            source_repository=_input("SOURCE_REPOSITORY") or _input("GITHUB_REPOSITORY"),
            username=_input("USERNAME", DEFAULT_USERNAME),
            email=_input("EMAIL", DEFAULT_EMAIL),
            create_sync_branch=_flag("CREATE_SYNC_BRANCH", True),
            base_branch=_input("BASE_BRANCH", "master"),
            source_root=source_root,
            manifest_root=Path(manifest_root) if manifest_root else source_root,
            manifest_filename=_input("MANIFEST_FILENAME", MANIFEST_FILENAME),
            manifest_strict=_flag("MANIFEST_STRICT", True),
            manifest_dedupe=_flag("MANIFEST_DEDUPE", False),
            packages_dir=_input("PACKAGES_DIR", "packages"),
            server_url=_input("GITHUB_SERVER_URL", "https://github.com"),
            api_url=_input("GITHUB_API_URL", "https://api.github.com"),
        )
        logger.debug(
            f"Loaded settings: source={settings.source_repository}, "
            f"base={settings.base_branch}, sync_branch={settings.create_sync_branch}"
        )
        return settings

    @property
    def source_name(self) -> str:
        """Repository name of the source, without owner."""
        if not self.source_repository:
            return ""
        return self.source_repository.rstrip("/").split("/")[-1]

    @property
    def sync_branch(self) -> str:
        return f"sync-packages-from-{self.source_name}"

    def missing(self) -> List[str]:
        """Names of required settings that are not set."""
        missing = []
        if not self.token:
            missing.append("TOKEN")
        if not self.source_repository:
            missing.append("SOURCE_REPOSITORY")
        elif "/" not in self.source_repository.strip("/"):
            missing.append("SOURCE_REPOSITORY (expected owner/name)")
        return missing

    def validate(self) -> None:
        """Raise ConfigurationError if required settings are missing."""
        missing = self.missing()
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )
        if not self.manifest_root.is_dir():
            raise ConfigurationError(
                f"Manifest root is not a directory: {self.manifest_root}"
            )
