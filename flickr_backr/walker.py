"""Depth-first traversal of a local directory tree."""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from pathlib import Path

from flickr_backr.models import FileInfo

logger = logging.getLogger(__name__)


def walk(root: str | Path) -> Generator[tuple[Path, FileInfo], None, None]:
    """Yield ``(path, FileInfo)`` for every regular file under *root*.

    Entries are visited in name order and a subdirectory is descended into as
    soon as it is reached. A directory that cannot be listed (for example one
    removed while the walk is running) is skipped with a warning.
    """
    root = Path(root)
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.warning("Skipping directory %s: %s", root, exc)
        return

    for entry in entries:
        try:
            if entry.is_dir(follow_symlinks=False):
                yield from walk(entry.path)
            elif entry.is_file():
                st = entry.stat()
                yield Path(entry.path), FileInfo(entry.name, int(st.st_mtime), st.st_size)
        except OSError as exc:
            logger.warning("Skipping %s: %s", entry.path, exc)
