"""
Engine: wires transport, full sync, watcher and dispatcher together
"""
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from .. import config as _cfg
from ..operations.coalescer import EventCoalescer
from ..operations.full_sync import FullSyncer
from ..operations.remote_tree import RemoteTree
from ..utils.logging import log, warn
from ..utils.path_filter import PathFilter
from .dispatcher import Dispatcher
from .errors import RemoteOperationError, SetupError
from .ssh_manager import SSHManager
from .watcher import Watcher, make_channel


class Engine:
    """
    One mirror session. Owns the SSH connection: the startup full sync and
    then the dispatcher are the only code that touches it.
    """

    def __init__(self, manager: SSHManager, local_root: Path, remote_root: PurePosixPath,
                 path_filter: PathFilter, debounce_s: float):
        self.manager = manager
        self.local_root = local_root
        self.remote_root = remote_root
        self.path_filter = path_filter
        self.tree = RemoteTree(manager.sftp)
        self.syncer = FullSyncer(local_root, remote_root, path_filter, self.tree)
        self.channel = make_channel()
        self.dispatcher = Dispatcher(self.channel, EventCoalescer(path_filter),
                                     self.syncer, debounce_s)
        self.watcher = Watcher(local_root, self.channel)

    def full_sync(self):
        log(f"[sync] initial sync {self.local_root} → {self.remote_root} …")
        n_dirs, n_files = self.syncer.run()
        log(f"[sync] initial sync complete: {n_dirs} dir(s), {n_files} file(s) ✓")
        return n_dirs, n_files

    def run_forever(self, initial_sync: bool = True):
        """
        Mirror local changes until the watcher stops or the user hits Ctrl-C.
        TraversalError / RemoteOperationError from the initial sync and
        SetupError from the watcher propagate.
        """
        try:
            if initial_sync:
                self.full_sync()
            self.watcher.start()
            try:
                self.dispatcher.run(alive=lambda: self.watcher.is_running)
            except KeyboardInterrupt:
                print()
                warn("Interrupted by user.")
        finally:
            self.watcher.stop()
            self.close()

    def close(self):
        self.manager.disconnect()


def initialize(local_root, remote_root, blacklist: Iterable[str] = (),
               debounce_window: Optional[float] = None,
               manager: Optional[SSHManager] = None) -> Engine:
    """
    Connect, make sure the remote root exists and return a ready Engine.
    Every failure is raised as SetupError.
    """
    try:
        root = Path(local_root).expanduser().resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise SetupError(f"local root {local_root} cannot be resolved: {exc}") from exc
    if not root.is_dir():
        raise SetupError(f"local root {root} is not a directory")
    if debounce_window is None:
        debounce_window = _cfg.DEBOUNCE_S
    if debounce_window <= 0:
        raise SetupError(f"debounce window must be positive, got {debounce_window}")

    remote = PurePosixPath(str(remote_root))
    path_filter = PathFilter(root, blacklist)

    manager = manager or SSHManager()
    manager.connect()
    try:
        engine = Engine(manager, root, remote, path_filter, debounce_window)
        engine.tree.ensure_dir(remote, _cfg.DIR_MODE)
    except RemoteOperationError as exc:
        manager.disconnect()
        raise SetupError(f"could not create remote root {remote}: {exc}") from exc

    log(f"[setup] {root} → {manager.host}:{remote}"
        + (f"  (blacklist: {', '.join(map(str, path_filter.entries))})"
           if path_filter.entries else ""))
    return engine
