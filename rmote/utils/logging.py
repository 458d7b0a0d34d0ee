"""
Console logging for rmote.

The watcher thread and the dispatcher both write here, so every line is
emitted under one lock.
"""
import threading
from datetime import datetime

_verbose = False
_lock = threading.Lock()


def set_verbose(verbose: bool):
    """Enable or disable vlog() output"""
    global _verbose
    _verbose = verbose


def is_verbose() -> bool:
    return _verbose


def log(msg: str):
    """Print one timestamped line"""
    ts = datetime.now().strftime("%H:%M:%S")
    with _lock:
        print(f"[{ts}] {msg}", flush=True)


def vlog(msg: str):
    """Like log(), but only in verbose mode"""
    if _verbose:
        log(msg)


def warn(msg: str):
    log(f"⚠  {msg}")
