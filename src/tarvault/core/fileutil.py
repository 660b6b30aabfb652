"""File system utilities: directories, sizes, quiet removal."""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)

DIR_MODE = 0o700

_SIZE_UNITS = ("B", "K", "M", "G", "T", "P")


def ensure_dir(path: Path, mode: int = DIR_MODE) -> Path:
    """Create directory (and parents) if it doesn't exist.

    Only newly created directories get ``mode``; existing ones keep their
    permissions.
    """
    if not path.is_dir():
        path.mkdir(mode=mode, parents=True, exist_ok=True)
    return path


def human_size(num_bytes: int) -> str:
    """Format a byte count the way ``du -h`` does (1024 based, one decimal)."""
    size = float(num_bytes)
    for unit in _SIZE_UNITS:
        if size < 1024 or unit == _SIZE_UNITS[-1]:
            if unit == "B":
                return f"{int(size)}{unit}"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{num_bytes}B"


def remove_quietly(path: Path) -> bool:
    """Delete a file, ignoring errors. Returns True if it no longer exists."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        log.debug("Could not remove %s: %s", path, e)
        return False
    return True
