"""
Directory Mirror — Make one directory tree an exact copy of another.

The copy is staged next to the destination and swapped in afterwards, so
a failed copy leaves the destination as it was.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

IGNORED = shutil.ignore_patterns(".git")


def mirror_directory(src: Path, dst: Path) -> None:
    """
    Replace the contents of dst with the contents of src.

    Files that exist only in dst are removed. dst and its parents are
    created if missing.

    Raises:
        FileNotFoundError: If src is not a directory
    """
    src = Path(src)
    dst = Path(dst)

    if not src.is_dir():
        raise FileNotFoundError(f"Mirror source is not a directory: {src}")

    dst.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{dst.name}.", dir=dst.parent))
    staged = staging / dst.name

    try:
        shutil.copytree(src, staged, ignore=IGNORED, symlinks=True)

        if dst.is_symlink() or dst.is_file():
            dst.unlink()
        elif dst.exists():
            shutil.rmtree(dst)

        staged.rename(dst)
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    logger.debug(f"Mirrored {src} -> {dst}")
