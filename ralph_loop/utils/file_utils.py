"""Helpers for writing state files safely."""

import os
from pathlib import Path

from ..services.exceptions import StateWriteError


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to a temp file next to path, then rename it into place.

    Raises:
        StateWriteError: If the file cannot be written
    """
    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(content)
        os.replace(tmp_path, path)
    except OSError as e:
        raise StateWriteError(f"Cannot write {path}: {e}") from e


def append_text(path: Path, content: str) -> None:
    """Append content to a file, creating it if needed.

    Raises:
        StateWriteError: If the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'a') as f:
            f.write(content)
    except OSError as e:
        raise StateWriteError(f"Cannot append to {path}: {e}") from e


def tail_lines(path: Path, count: int) -> list[str]:
    """Return the last ``count`` lines of a text file, or [] if missing."""
    if not path.exists():
        return []
    with open(path, errors='replace') as f:
        lines = f.read().splitlines()
    return lines[-count:] if count > 0 else lines
