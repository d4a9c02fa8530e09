"""File-system helpers for removing stale export output."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def reset_directory(path: Path) -> None:
    """Remove a directory and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True, exist_ok=True)


def delete_export_file(path: Path) -> bool:
    """Delete an exported file; failures are logged and reported as ``False``."""
    if not path.is_file():
        return False
    try:
        path.unlink()
    except OSError as exc:
        logger.warning("Failed to delete file %s: %s", path, exc)
        return False
    return True


def prune_empty_directories(directory: Path, stop_at: Path) -> list[Path]:
    """Remove ``directory`` and its ancestors while they are empty, stopping below ``stop_at``.

    Errors end the walk silently; the root itself is never removed.
    """
    removed: list[Path] = []
    stop = stop_at.resolve()
    current = directory.resolve()

    while current != stop and stop in current.parents:
        try:
            if not current.is_dir() or any(current.iterdir()):
                break
            current.rmdir()
        except OSError:
            break
        removed.append(current)
        current = current.parent

    return removed
