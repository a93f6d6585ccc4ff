"""
Shared fixtures for package sync tests.

Provides a temporary source repository layout with manifests and shared
package directories, plus settings pointing at it. No real git remotes
or network access are used anywhere in the suite.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import List

import pytest

from package_sync.config import MANIFEST_FILENAME, SyncSettings

APP_ONE = "https://github.com/org/app-one.git"
APP_TWO = "https://github.com/org/app-two.git"
APP_THREE = "https://github.com/org/app-three.git"


def write_manifest(directory: Path, path: str, repositories: List[str]) -> Path:
    """Write a manifest declaring `path` for `repositories` into directory."""
    directory.mkdir(parents=True, exist_ok=True)
    manifest = directory / MANIFEST_FILENAME
    manifest.write_text(
        json.dumps({"path": path, "dependent": {"repositories": repositories}}),
        encoding="utf-8",
    )
    return manifest


@pytest.fixture
def source_root(tmp_path: Path) -> Path:
    """Source repository checkout with one shared package (packages/ui)."""
    root = tmp_path / "app-one"
    ui = root / "packages" / "ui"
    ui.mkdir(parents=True)
    (ui / "index.js").write_text("export default {};\n")
    (ui / "button.js").write_text("export const Button = () => null;\n")
    write_manifest(ui, "packages/ui", [APP_TWO])
    return root


@pytest.fixture
def settings(source_root: Path) -> SyncSettings:
    """Settings for source org/app-one."""
    return SyncSettings(
        token="ghp_test",
        source_repository="org/app-one",
        username="sync-bot",
        email="sync-bot@example.com",
        base_branch="master",
        source_root=source_root,
        manifest_root=source_root,
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory under which per-target working copies are created."""
    path = tmp_path / "workspace"
    path.mkdir()
    return path
