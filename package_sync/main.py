"""
Package Sync — CLI Entry Point

Usage:
    package-sync run [--manifest-root PATH] [--json] [--fail-on-target-error]
    package-sync targets [--manifest-root PATH] [--json]

    python -m package_sync.main run
"""

from __future__ import annotations

# Load .env file FIRST, before anything reads env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import json
import logging
from typing import Optional

import click

from .config import SyncSettings
from .errors import PackageSyncError
from .git import GitClient
from .logging_config import setup_logging
from .manifest import build_target_map
from .orchestrator import SyncOrchestrator
from .resolver import resolve_targets, source_repository_url
from .review import GitHubPullRequests

logger = logging.getLogger(__name__)


def _load_settings(manifest_root: Optional[str]) -> SyncSettings:
    settings = SyncSettings.from_env()
    if manifest_root:
        settings.manifest_root = Path(manifest_root)
    return settings


@click.group()
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json", "github"]),
    default=None,
    help="Log output format",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str], log_format: Optional[str]) -> None:
    """Package Sync — Propagate shared packages to dependent repositories."""
    setup_logging(level=log_level, format_type=log_format)
    ctx.ensure_object(dict)


@cli.command()
@click.option("--manifest-root", default=None, help="Directory to search for manifests")
@click.option("--json", "as_json", is_flag=True, help="Print the run report as JSON")
@click.option(
    "--fail-on-target-error",
    is_flag=True,
    help="Exit non-zero if any target failed",
)
@click.pass_context
def run(
    ctx: click.Context,
    manifest_root: Optional[str],
    as_json: bool,
    fail_on_target_error: bool,
) -> None:
    """Sync shared packages into every dependent repository."""
    settings = _load_settings(manifest_root)

    try:
        with GitHubPullRequests(settings.token or "", settings.api_url) as review:
            orchestrator = SyncOrchestrator(settings, GitClient(), review)
            report = orchestrator.run_all()
    except PackageSyncError as e:
        logger.error(str(e))
        click.secho(f"✗ {e}", fg="red", err=True)
        raise SystemExit(1)
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        logger.error(str(e))
        click.secho(f"✗ {e}", fg="red", err=True)
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        click.echo("")
        for result in report.results:
            icon = {"pushed": "✅", "clean": "✔️", "failed": "❌"}[result.outcome]
            line = f"  {icon} {result.target}: {result.outcome}"
            if result.pr_url:
                line += f" ({result.pr_url})"
            if result.error:
                line += f" — {result.error[:120]}"
            click.echo(line)
        click.echo(f"\n{report.summary()}")

    if fail_on_target_error and not report.ok:
        raise SystemExit(1)


@cli.command()
@click.option("--manifest-root", default=None, help="Directory to search for manifests")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def targets(ctx: click.Context, manifest_root: Optional[str], as_json: bool) -> None:
    """Show the resolved target repositories without touching them."""
    settings = _load_settings(manifest_root)

    try:
        target_map = build_target_map(
            settings.manifest_root,
            settings.manifest_filename,
            strict=settings.manifest_strict,
            dedupe=settings.manifest_dedupe,
        )
    except PackageSyncError as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        raise SystemExit(1)

    source_url = source_repository_url(settings.source_repository or "", settings.server_url)
    resolved = resolve_targets(target_map, source_url)

    if as_json:
        click.echo(json.dumps(
            [
                {
                    "url": t.url,
                    "repository": t.full_name,
                    "package_paths": list(t.package_paths),
                }
                for t in resolved
            ],
            indent=2,
        ))
        return

    if not resolved:
        click.echo("No target repositories declared.")
        return

    for t in resolved:
        click.echo(f"📦 {t.full_name}")
        for path in t.package_paths:
            click.echo(f"    {path}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
