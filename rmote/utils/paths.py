"""
Path helpers shared by the filter, the full sync and the dispatcher
"""
import os
from pathlib import Path, PurePosixPath
from typing import Optional


def canonical_path(path) -> Path:
    """
    Absolute path with symlinks resolved as far as they exist.
    Never fails: a path that is already gone is returned as absolute.
    """
    try:
        return Path(path).resolve()
    except (OSError, RuntimeError):
        return Path(os.path.abspath(path))


def relative_to_root(path, local_root: Path) -> Optional[PurePosixPath]:
    """
    Canonicalize *path* and express it relative to *local_root*.
    Returns None for paths outside the tree.
    """
    canon = canonical_path(path)
    try:
        rel = canon.relative_to(local_root)
    except ValueError:
        return None
    return PurePosixPath(rel.as_posix())


def remote_path_for(remote_root: PurePosixPath, rel: PurePosixPath) -> PurePosixPath:
    """Join a local-relative path onto the remote root."""
    if str(rel) in ("", "."):
        return remote_root
    return remote_root / rel


def posix_mode(st_mode: int) -> int:
    """Lower nine permission bits of a stat mode."""
    return st_mode & 0o777
