"""
sonar-analyze — filesystem utilities

File: src/sonar_analyze/utils/fs.py

Purpose
- Create the runner's working directory and write the properties handoff file
  without leaving partial files behind.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Directory creation is idempotent.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "ensure_directory",
]


def ensure_directory(path: PathLike) -> Path:
    """Create ``path`` and any missing parents; return it as a ``Path``."""

    target = Path(path)
    if target.exists() and not target.is_dir():
        raise NotADirectoryError(f"{target!s} exists and is not a directory")
    target.mkdir(parents=True, exist_ok=True)
    return target


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        payload = data if isinstance(data, bytes) else data.encode(encoding)
        with os.fdopen(fd, "wb") as file_handle:
            file_handle.write(payload)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise
