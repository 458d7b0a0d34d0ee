"""Utilities (logging, blacklist, path helpers)"""
from .logging import log, vlog, warn, set_verbose
from .path_filter import PathFilter
from .paths import canonical_path, relative_to_root, remote_path_for, posix_mode

__all__ = [
    "log", "vlog", "warn", "set_verbose",
    "PathFilter",
    "canonical_path", "relative_to_root", "remote_path_for", "posix_mode",
]
