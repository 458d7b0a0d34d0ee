"""
Remote tree operations over an SFTP channel

Every mutation here is idempotent: creating a directory that already
exists and deleting a path that is already gone both succeed. Instead of
matching transport error codes, a failed call is followed by a stat of the
target to decide whether the post-condition holds anyway.
"""
import shutil
import stat
from pathlib import PurePosixPath
from typing import Union

from .. import config as _cfg
from ..core.errors import RemoteOperationError
from ..utils.logging import log, vlog, warn

RemotePath = Union[str, PurePosixPath]


class RemoteTree:
    """
    Thin façade over a paramiko-compatible SFTPClient.
    Only the dispatcher thread (or the startup full sync) may call it.
    """

    def __init__(self, sftp):
        self.sftp = sftp

    # ── queries ─────────────────────────────────────────────────────────────

    def _stat(self, path: RemotePath):
        try:
            return self.sftp.stat(str(path))
        except IOError:
            return None

    def exists(self, path: RemotePath) -> bool:
        return self._stat(path) is not None

    def is_dir(self, path: RemotePath) -> bool:
        st = self._stat(path)
        return st is not None and st.st_mode is not None and stat.S_ISDIR(st.st_mode)

    # ── directories ─────────────────────────────────────────────────────────

    def ensure_dir(self, path: RemotePath, mode: int = _cfg.DIR_MODE):
        """
        Create *path* and any missing parents, like `mkdir -p`.
        Raises RemoteOperationError naming the first component that could
        not be created and does not exist afterwards.
        """
        built = PurePosixPath()
        for part in PurePosixPath(path).parts:
            built = built / part
            if str(built) in ("/", "."):
                continue
            try:
                self.sftp.mkdir(str(built), mode)
                vlog(f"[mkdir] {built}")
            except IOError as exc:
                # already there, or another writer won the race
                if not self.exists(built):
                    raise RemoteOperationError("mkdir", built, exc) from exc

    # ── files ───────────────────────────────────────────────────────────────

    def upload(self, local_path, remote_path: RemotePath, mode: int):
        """Create or truncate *remote_path* with the bytes of *local_path*, then chmod."""
        remote = str(remote_path)
        with open(local_path, "rb") as lf, self.sftp.open(remote, "wb") as rf:
            shutil.copyfileobj(lf, rf, _cfg.CHUNK_SIZE)
        try:
            self.sftp.chmod(remote, mode)
        except IOError as exc:
            vlog(f"[sync] could not set mode {mode:o} on {remote}: {exc}")
        log(f"[sync] {local_path} -> {remote} ✓")

    # ── deletion ────────────────────────────────────────────────────────────

    def remove(self, path: RemotePath):
        """
        Delete *path*, whatever it is. Directories are emptied depth-first
        before the rmdir. A path that does not exist is not an error.
        """
        remote = str(path)
        try:
            self.sftp.remove(remote)
            log(f"[del] deleted file {remote}")
            return
        except IOError as exc:
            unlink_error = exc

        if self.is_dir(remote):
            self._remove_tree(PurePosixPath(remote))
            log(f"[del] removed dir {remote}")
        elif self.exists(remote):
            raise RemoteOperationError("unlink", remote, unlink_error) from unlink_error
        else:
            vlog(f"[del] {remote} already gone")

    def _remove_tree(self, top: PurePosixPath):
        # (path, children_done); a dir is rmdir-ed once its children are gone
        stack: list[tuple[PurePosixPath, bool]] = [(top, False)]
        while stack:
            current, children_done = stack.pop()
            if children_done:
                self._rmdir_quietly(current)
                continue

            try:
                entries = self.sftp.listdir_attr(str(current))
            except IOError as exc:
                # gone already, or unreadable: nothing left to walk here
                vlog(f"[del] cannot list {current}: {exc}")
                self._rmdir_quietly(current)
                continue

            stack.append((current, True))
            for attr in entries:
                if attr.filename in (".", ".."):
                    continue
                child = current / attr.filename
                if attr.st_mode is not None and stat.S_ISDIR(attr.st_mode):
                    stack.append((child, False))
                else:
                    try:
                        self.sftp.remove(str(child))
                        vlog(f"[del] deleted file {child}")
                    except IOError as exc:
                        warn(f"[del] could not delete {child}: {exc}")

    def _rmdir_quietly(self, path: PurePosixPath):
        try:
            self.sftp.rmdir(str(path))
        except IOError as exc:
            if self.exists(path):
                warn(f"[del] could not remove dir {path}: {exc}")
