"""
Tests for settings parsing from action inputs and environment variables.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from package_sync.config import (
    DEFAULT_USERNAME,
    MANIFEST_FILENAME,
    SyncSettings,
)
from package_sync.errors import ConfigurationError

ENV_KEYS = [
    "TOKEN", "GITHUB_TOKEN", "SOURCE_REPOSITORY", "GITHUB_REPOSITORY",
    "USERNAME", "EMAIL", "CREATE_SYNC_BRANCH", "BASE_BRANCH",
    "SOURCE_ROOT", "GITHUB_WORKSPACE", "MANIFEST_ROOT", "MANIFEST_FILENAME",
    "MANIFEST_STRICT", "MANIFEST_DEDUPE", "PACKAGES_DIR",
    "GITHUB_SERVER_URL", "GITHUB_API_URL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
        monkeypatch.delenv(f"INPUT_{key}", raising=False)


class TestFromEnv:

    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)

        settings = SyncSettings.from_env()

        assert settings.token is None
        assert settings.username == DEFAULT_USERNAME
        assert settings.create_sync_branch is True
        assert settings.base_branch == "master"
        assert settings.source_root == tmp_path
        assert settings.manifest_root == tmp_path
        assert settings.manifest_filename == MANIFEST_FILENAME
        assert settings.manifest_strict is True
        assert settings.manifest_dedupe is False
        assert settings.packages_dir == "packages"

    def test_action_input_wins_over_plain_variable(self, monkeypatch):
        monkeypatch.setenv("INPUT_TOKEN", "from-input")
        monkeypatch.setenv("TOKEN", "from-env")

        assert SyncSettings.from_env().token == "from-input"

    def test_empty_input_counts_as_unset(self, monkeypatch):
        monkeypatch.setenv("INPUT_BASE_BRANCH", "  ")
        monkeypatch.setenv("BASE_BRANCH", "main")

        assert SyncSettings.from_env().base_branch == "main"

    def test_github_fallbacks(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_runner")
        monkeypatch.setenv("GITHUB_REPOSITORY", "org/app-one")
        monkeypatch.setenv("GITHUB_WORKSPACE", str(tmp_path))

        settings = SyncSettings.from_env()

        assert settings.token == "ghs_runner"
        assert settings.source_repository == "org/app-one"
        assert settings.source_root == tmp_path
        assert settings.manifest_root == tmp_path

    def test_manifest_root_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SOURCE_ROOT", str(tmp_path))
        monkeypatch.setenv("INPUT_MANIFEST_ROOT", str(tmp_path / "packages"))

        settings = SyncSettings.from_env()

        assert settings.source_root == tmp_path
        assert settings.manifest_root == tmp_path / "packages"

    @pytest.mark.parametrize("value,expected", [
        ("true", True), ("TRUE", True), ("1", True), ("yes", True),
        ("false", False), ("0", False), ("no", False),
    ])
    def test_create_sync_branch_flag(self, monkeypatch, value, expected):
        monkeypatch.setenv("INPUT_CREATE_SYNC_BRANCH", value)
        assert SyncSettings.from_env().create_sync_branch is expected

    def test_token_not_in_repr(self):
        assert "ghp_secret" not in repr(SyncSettings(token="ghp_secret"))


class TestDerived:

    def test_source_name_and_branch(self):
        settings = SyncSettings(source_repository="org/app-one")
        assert settings.source_name == "app-one"
        assert settings.sync_branch == "sync-packages-from-app-one"

    def test_source_name_unset(self):
        assert SyncSettings().source_name == ""


class TestValidate:

    def test_valid(self, settings):
        settings.validate()

    def test_reports_every_missing_setting(self, tmp_path):
        settings = SyncSettings(manifest_root=tmp_path)

        assert settings.missing() == ["TOKEN", "SOURCE_REPOSITORY"]
        with pytest.raises(ConfigurationError, match="TOKEN, SOURCE_REPOSITORY"):
            settings.validate()

    def test_repository_must_have_owner(self, settings):
        settings.source_repository = "app-one"
        with pytest.raises(ConfigurationError, match="owner/name"):
            settings.validate()

    def test_manifest_root_must_exist(self, settings, tmp_path):
        settings.manifest_root = Path(tmp_path / "nope")
        with pytest.raises(ConfigurationError, match="not a directory"):
            settings.validate()
