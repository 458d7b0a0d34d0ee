"""
Dispatcher: debounce loop that owns every remote operation

    Idle ──poll──▶ Draining ──window elapsed──▶ Reconciling ──▶ Idle

Draining never blocks on the queue. Reconciling folds the pending log
into one Intent per path and applies them one at a time; a failing path
is logged and skipped. Edits made while a tick is being applied land in
the next tick. The loop ends when the queue yields END_OF_STREAM.
"""
import queue
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .. import config as _cfg
from ..operations.coalescer import EventCoalescer, Intent, RawEvent
from ..operations.full_sync import FullSyncer
from ..utils.logging import log, vlog, warn
from .watcher import END_OF_STREAM


class DispatcherState(Enum):
    IDLE = "idle"
    DRAINING = "draining"
    RECONCILING = "reconciling"


class Dispatcher:
    def __init__(self, channel: queue.Queue, coalescer: EventCoalescer,
                 syncer: FullSyncer, debounce_s: float,
                 poll_interval_s: Optional[float] = None):
        self.channel = channel
        self.coalescer = coalescer
        self.syncer = syncer
        self.debounce_s = debounce_s
        self.poll_interval_s = poll_interval_s or _cfg.POLL_INTERVAL_S
        self.pending: list[RawEvent] = []
        self.state = DispatcherState.IDLE

    def drain(self) -> bool:
        """
        Move the events already queued on entry into the pending log; events
        that arrive meanwhile wait for the next drain so a busy producer
        cannot hold off the tick. Returns False once the end of the stream
        has been seen.
        """
        self.state = DispatcherState.DRAINING
        try:
            for _ in range(max(self.channel.qsize(), 1)):
                try:
                    event = self.channel.get_nowait()
                except queue.Empty:
                    return True
                if event is END_OF_STREAM:
                    return False
                self.pending.append(event)
            return True
        finally:
            self.state = DispatcherState.IDLE

    def reconcile(self) -> dict[Path, Intent]:
        """Reduce the pending log and apply the resulting intents."""
        self.state = DispatcherState.RECONCILING
        events, self.pending = self.pending, []
        try:
            intents = self.coalescer.reduce(events)
            if intents:
                vlog(f"[dispatch] {len(events)} event(s) → {len(intents)} path(s)")
            for path, intent in intents.items():
                self.apply(path, intent)
            return intents
        finally:
            self.state = DispatcherState.IDLE

    def apply(self, path: Path, intent: Intent):
        """Apply one path's intent. Failures are logged, never raised."""
        try:
            if intent is Intent.TRANSFER:
                self.syncer.transfer_element(path)
            elif intent is Intent.DELETE:
                self.syncer.delete_element(path)
        except Exception as exc:
            warn(f"[dispatch] {intent.value} {path} failed: {exc}")

    def run(self, alive: Optional[Callable[[], bool]] = None):
        """
        Loop until the stream ends. *alive*, when given, reports whether the
        producer is still running; once it is not and the queue is empty the
        loop ends as if the stream had been closed.
        """
        last_tick = time.monotonic()
        while True:
            if not self.drain():
                log("[dispatch] event stream closed; exiting.")
                break
            if alive is not None and not alive() and self.channel.empty():
                warn("[dispatch] watcher is no longer running; exiting.")
                break

            now = time.monotonic()
            if now - last_tick >= self.debounce_s:
                last_tick = now
                self.reconcile()

            time.sleep(self.poll_interval_s)
