"""
Local change ingestion (watchdog → bounded hand-off queue)

The watchdog observer thread is the only producer. It converts each
notification into a RawEvent and puts it on the queue the dispatcher
drains; nothing else is shared between the two threads. Putting None on
the queue marks the end of the stream.
"""
import os
import queue
from pathlib import Path
from typing import Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .. import config as _cfg
from ..operations.coalescer import EventKind, RawEvent
from ..utils.logging import log, vlog, warn
from .errors import SetupError

END_OF_STREAM = None


def make_channel(capacity: Optional[int] = None) -> "queue.Queue[Optional[RawEvent]]":
    return queue.Queue(maxsize=capacity or _cfg.CHANNEL_CAPACITY)


class ForwardingHandler(FileSystemEventHandler):
    """Forwards created / modified / deleted / moved notifications as RawEvents."""

    def __init__(self, channel: queue.Queue):
        super().__init__()
        self.channel = channel

    def _forward(self, kind: EventKind, *paths):
        event = RawEvent.of(kind, *(os.fsdecode(p) for p in paths))
        vlog(f"[watch] {kind.value}: {', '.join(sorted(event.paths))}")
        # blocks while the dispatcher is busy and the queue is full
        self.channel.put(event)

    def on_created(self, event: FileSystemEvent):
        self._forward(EventKind.CREATED, event.src_path)

    def on_modified(self, event: FileSystemEvent):
        self._forward(EventKind.MODIFIED, event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        self._forward(EventKind.REMOVED, event.src_path)

    def on_moved(self, event: FileSystemEvent):
        # the old name is gone, the new one has to be sent
        self._forward(EventKind.REMOVED, event.src_path)
        self._forward(EventKind.CREATED, event.dest_path)


class Watcher:
    """Recursive watch of one local root feeding a hand-off queue."""

    def __init__(self, root: Path, channel: queue.Queue):
        self.root = Path(root)
        self.channel = channel
        self._handler = ForwardingHandler(channel)
        self._observer = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self):
        if self._observer is not None:
            return
        if not self.root.is_dir():
            raise SetupError(f"could not watch {self.root}: not a directory")
        observer = Observer()
        try:
            observer.schedule(self._handler, str(self.root), recursive=True)
            observer.start()
        except OSError as exc:
            raise SetupError(f"could not watch {self.root}: {exc}") from exc
        self._observer = observer
        log(f"[watch] watching {self.root}")

    def stop(self, timeout: float = 5.0):
        """Stop the observer and close the stream. Safe to call twice."""
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        observer.join(timeout=timeout)
        try:
            self.channel.put(END_OF_STREAM, timeout=timeout)
        except queue.Full:
            warn("[watch] event queue full; dispatcher will not see end of stream")
        log("[watch] stopped.")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *exc):
        self.stop()
