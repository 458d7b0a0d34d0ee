"""
Blacklist handling

An entry excludes a path when:
  - the path's last component equals the entry's last component
    e.g. "target" excludes /src/app/target wherever it sits
  - the path starts with the entry, taken as a literal path
  - the path starts with <local_root>/<entry>

Prefix matching is per path component, so "build" does not exclude
"builder/". Matching never touches the filesystem and the entry list is
frozen at construction, so a path gets the same answer for the whole run.
"""
from pathlib import Path, PurePath
from typing import Iterable


class PathFilter:
    def __init__(self, local_root: Path, entries: Iterable[str] = ()):
        self.local_root = Path(local_root)
        self.entries: tuple[PurePath, ...] = tuple(PurePath(e) for e in entries if e)
        self.names = frozenset(e.name for e in self.entries if e.name)
        self._prefixes = tuple(dict.fromkeys(
            p for e in self.entries for p in (e, self.local_root / e)
        ))

    def is_excluded(self, path) -> bool:
        """True if *path* must be kept out of every sync operation."""
        p = PurePath(path)
        if p.name in self.names:
            return True
        return any(p.is_relative_to(prefix) for prefix in self._prefixes)

    def __repr__(self):
        return f"PathFilter({self.local_root}, {[str(e) for e in self.entries]})"
