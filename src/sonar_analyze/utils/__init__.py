"""Small shared helpers."""

from sonar_analyze.utils.fs import atomic_write, ensure_directory

__all__ = ["atomic_write", "ensure_directory"]
