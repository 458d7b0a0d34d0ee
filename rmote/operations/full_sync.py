"""
Full sync and per-path replication (local → remote)
"""
import os
import stat
from collections import deque
from pathlib import Path, PurePosixPath

from .. import config as _cfg
from ..core.errors import RemoteOperationError, TraversalError
from ..utils.logging import vlog, warn
from ..utils.path_filter import PathFilter
from ..utils.paths import posix_mode, relative_to_root, remote_path_for
from .remote_tree import RemoteTree


class FullSyncer:
    """
    Mirrors the local tree onto the remote tree.

    run() copies everything once at startup. transfer_element() and
    delete_element() apply a single path and are what the dispatcher calls
    for each Intent.
    """

    def __init__(self, local_root: Path, remote_root: PurePosixPath,
                 path_filter: PathFilter, tree: RemoteTree):
        self.local_root = Path(local_root)
        self.remote_root = PurePosixPath(remote_root)
        self.path_filter = path_filter
        self.tree = tree

    def remote_for(self, rel: PurePosixPath) -> PurePosixPath:
        return remote_path_for(self.remote_root, rel)

    # ── startup ─────────────────────────────────────────────────────────────

    def run(self, local_root=None) -> tuple[int, int]:
        """
        Breadth-first copy of *local_root* (default: the configured root).
        Symlinks, sockets and devices are skipped. Any unreadable directory,
        entry or file aborts with TraversalError; a failed remote write
        aborts with RemoteOperationError. Returns (dirs, files) synced.
        """
        start = Path(local_root) if local_root is not None else self.local_root
        n_dirs = n_files = 0
        queue = deque([start])

        while queue:
            directory = queue.popleft()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as exc:
                raise TraversalError(f"reading directory {directory}: {exc}") from exc

            for entry in entries:
                path = Path(entry.path)
                if self.path_filter.is_excluded(path):
                    vlog(f"[sync] skip (blacklisted) {path}")
                    continue

                try:
                    st = entry.stat(follow_symlinks=False)
                except OSError as exc:
                    raise TraversalError(f"reading metadata of {path}: {exc}") from exc

                if not (stat.S_ISDIR(st.st_mode) or stat.S_ISREG(st.st_mode)):
                    vlog(f"[sync] skip (not a file or directory) {path}")
                    continue

                rel = relative_to_root(path, self.local_root)
                if rel is None:
                    vlog(f"[sync] skip (outside {self.local_root}) {path}")
                    continue
                remote = self.remote_for(rel)
                mode = posix_mode(st.st_mode)

                if stat.S_ISDIR(st.st_mode):
                    self.tree.ensure_dir(remote, mode)
                    queue.append(path)
                    n_dirs += 1
                else:
                    self.tree.ensure_dir(remote.parent, _cfg.DIR_MODE)
                    self._upload(path, remote, mode)
                    n_files += 1

        return n_dirs, n_files

    def _upload(self, path: Path, remote: PurePosixPath, mode: int):
        try:
            self.tree.upload(path, remote, mode)
        except OSError as exc:
            # only the local open() names our file in the error
            if exc.filename is not None and os.fspath(exc.filename) == os.fspath(path):
                raise TraversalError(f"reading {path}: {exc}") from exc
            raise RemoteOperationError("upload", remote, exc) from exc

    # ── per path ────────────────────────────────────────────────────────────

    def transfer_element(self, path):
        """
        Replicate the current local state of *path*. A path that no longer
        exists locally is deleted remotely instead.
        """
        path = Path(path)
        if self.path_filter.is_excluded(path):
            return

        try:
            st = os.stat(path)
        except OSError:
            vlog(f"[sync] {path} vanished before transfer; deleting instead")
            return self.delete_element(path)

        rel = relative_to_root(path, self.local_root)
        if rel is None:
            vlog(f"[sync] skip (outside {self.local_root}) {path}")
            return
        remote = self.remote_for(rel)
        mode = posix_mode(st.st_mode)

        if stat.S_ISDIR(st.st_mode):
            self.tree.ensure_dir(remote, mode)
        elif stat.S_ISREG(st.st_mode):
            self.tree.ensure_dir(remote.parent, _cfg.DIR_MODE)
            self.tree.upload(path, remote, mode)

    def delete_element(self, path):
        """Remove the remote counterpart of *path*, if it has one."""
        path = Path(path)
        if self.path_filter.is_excluded(path):
            return

        rel = relative_to_root(path, self.local_root)
        if rel is None:
            vlog(f"[del] skip (outside {self.local_root}) {path}")
            return
        if str(rel) == ".":
            warn(f"[del] refusing to delete the remote root for {path}")
            return
        self.tree.remove(self.remote_for(rel))

