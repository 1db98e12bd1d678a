"""Path helpers used to scope file-system permissions."""

import os
from pathlib import Path


def _normalize(path: str | os.PathLike) -> str:
    full = os.path.abspath(os.path.expanduser(os.fspath(path)))
    return os.path.normcase(full).rstrip("\\/")


def is_project_path(path: str | os.PathLike | None, project_root: str | os.PathLike) -> bool:
    """
    Whether the given path (file or directory, relative or absolute) is
    inside the project tree. Relative paths resolve against the current
    working directory.
    """
    if not path:
        return False

    try:
        root = _normalize(project_root)
        full = _normalize(path)
    except (TypeError, ValueError):
        return False

    if full == root:
        return True
    return full.startswith(root + os.sep)


def is_file_path(path: str) -> bool:
    """Treat a path as a file only when it has an extension and no trailing slash."""
    path = path.replace("\\", "/").strip()
    if path.endswith("/"):
        return False
    return bool(Path(path).suffix)


__all__ = ["is_project_path", "is_file_path"]
