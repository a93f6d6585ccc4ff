"""
Manifest Aggregator — Build the target map from manifest files.

Each manifest declares one shared package directory and the repositories
that depend on it:

    {"path": "packages/ui",
     "dependent": {"repositories": ["https://github.com/org/app-two.git"]}}

All manifests under the search root are merged into a mapping of
repository URL -> package paths, in discovery order.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from .config import MANIFEST_FILENAME
from .errors import ConfigurationError, ManifestError
from .models import ManifestRecord, TargetMap

logger = logging.getLogger(__name__)

SKIP_DIRS = {".git"}


def find_manifest_files(root: Path, filename: str = MANIFEST_FILENAME) -> List[Path]:
    """Recursively find manifest files under root, sorted by path."""
    root = Path(root)
    if not root.is_dir():
        raise ConfigurationError(f"Manifest search root is not a directory: {root}")

    found: List[Path] = []

    def _on_error(err: OSError) -> None:
        raise ConfigurationError(f"Cannot read manifest search root: {err}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        if filename in filenames:
            found.append(Path(dirpath) / filename)

    return sorted(found)


def load_manifest(path: Path) -> Optional[ManifestRecord]:
    """
    Parse one manifest file.

    Returns None for records that don't declare a path and at least one
    dependent repository; these are ignored rather than treated as errors.

    Raises:
        ManifestError: If the file is not valid JSON or can't be read
    """
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON: {e}", path=str(path)) from e
    except OSError as e:
        raise ManifestError(f"Cannot read manifest: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: manifest is not a JSON object")
        return None

    try:
        record = ManifestRecord(**data)
    except ValidationError as e:
        logger.warning(f"Ignoring {path}: {e.error_count()} schema error(s)")
        return None

    if not record.is_usable:
        logger.debug(f"Ignoring {path}: no path or no dependent repositories")
        return None

    return record


def build_target_map(
    root: Path,
    filename: str = MANIFEST_FILENAME,
    strict: bool = True,
    dedupe: bool = False,
) -> TargetMap:
    """
    Aggregate all manifests under root into a target map.

    Args:
        root: Directory to search recursively
        filename: Manifest file name to look for
        strict: Abort on an unparsable manifest (otherwise skip it)
        dedupe: Keep each path once per repository

    Returns:
        Mapping of repository URL to the package paths declared for it

    Raises:
        ManifestError: If strict and a manifest can't be parsed
        ConfigurationError: If the search root can't be read
    """
    target_map: TargetMap = {}

    for manifest_path in find_manifest_files(root, filename):
        try:
            record = load_manifest(manifest_path)
        except ManifestError as e:
            if strict:
                raise
            logger.warning(f"Skipping unparsable manifest {e}")
            continue

        if record is None:
            continue

        logger.debug(f"Manifest {manifest_path}: {record.path} -> {record.repositories}")
        for repository in record.repositories:
            paths = target_map.setdefault(repository, [])
            if dedupe and record.path in paths:
                continue
            paths.append(record.path)

    logger.info(
        f"Found {len(target_map)} dependent repositor"
        f"{'y' if len(target_map) == 1 else 'ies'} in manifests under {root}"
    )
    return target_map
