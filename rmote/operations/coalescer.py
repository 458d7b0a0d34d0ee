"""
Event coalescing: many raw notifications per path → one net action

A debounce window may hold several notifications for the same path
(editors truncate then write, atomic saves delete then create). reduce()
folds each path's history, in arrival order, into a single Intent:

    Created / Modified   → Transfer  (repeats collapse)
    Removed              → Delete    (drops every Transfer seen before it)
    anything else        → ignored

    [Modified, Removed]            → Delete
    [Removed, Created]             → Transfer
    [Created, Modified, Modified]  → Transfer
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Sequence

from ..utils.path_filter import PathFilter
from ..utils.paths import canonical_path


class EventKind(Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    OTHER = "other"


class Intent(Enum):
    TRANSFER = "transfer"
    DELETE = "delete"
    NONE = "none"


@dataclass(frozen=True)
class RawEvent:
    """One notification from the watcher: a kind and the paths it touched."""

    kind: EventKind
    paths: frozenset

    @classmethod
    def of(cls, kind: EventKind, *paths) -> "RawEvent":
        return cls(kind, frozenset(str(p) for p in paths))


_CANDIDATE = {
    EventKind.CREATED: Intent.TRANSFER,
    EventKind.MODIFIED: Intent.TRANSFER,
    EventKind.REMOVED: Intent.DELETE,
}


def fold(kinds: Iterable[EventKind]) -> Intent:
    """Fold one path's kind history into its net Intent."""
    pending: list[Intent] = []
    last = Intent.NONE
    for kind in kinds:
        candidate = _CANDIDATE.get(kind, Intent.NONE)
        if candidate is Intent.TRANSFER:
            if last is not Intent.TRANSFER:
                pending.append(Intent.TRANSFER)
        elif candidate is Intent.DELETE:
            pending = [Intent.DELETE]
        last = candidate
    return pending[-1] if pending else Intent.NONE


class EventCoalescer:
    def __init__(self, path_filter: PathFilter,
                 canonicalize: Callable[[str], Path] = canonical_path):
        self.path_filter = path_filter
        self._canonicalize = canonicalize

    def history(self, events: Sequence[RawEvent]) -> dict[Path, list[EventKind]]:
        """Per-path kind lists, in arrival order across all events."""
        per_path: dict[Path, list[EventKind]] = {}
        for event in events:
            for raw in event.paths:
                per_path.setdefault(self._canonicalize(raw), []).append(event.kind)
        return per_path

    def reduce(self, events: Sequence[RawEvent]) -> dict[Path, Intent]:
        """
        Map every non-excluded path seen in *events* to its net Intent.
        Insertion order follows each path's first appearance.
        """
        return {
            path: fold(kinds)
            for path, kinds in self.history(events).items()
            if not self.path_filter.is_excluded(path)
        }
