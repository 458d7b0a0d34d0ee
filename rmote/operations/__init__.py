"""Operations (remote tree, full sync, event coalescing)"""
from .remote_tree import RemoteTree
from .full_sync import FullSyncer
from .coalescer import EventCoalescer, EventKind, Intent, RawEvent, fold

__all__ = [
    "RemoteTree",
    "FullSyncer",
    "EventCoalescer", "EventKind", "Intent", "RawEvent", "fold",
]
