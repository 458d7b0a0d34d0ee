"""
Tests for the Dispatcher debounce loop.
"""
import queue
import tempfile
import threading
import time
import unittest
from pathlib import Path, PurePosixPath

from fakes import FakeSFTP


class RecordingSyncer:
    """Records applied intents; paths listed in *failing* raise."""

    def __init__(self, failing=()):
        self.applied = []
        self.failing = set(failing)

    def _apply(self, op, path):
        self.applied.append((op, Path(path)))
        if Path(path) in self.failing:
            raise IOError(f"injected failure for {path}")

    def transfer_element(self, path):
        self._apply("transfer", path)

    def delete_element(self, path):
        self._apply("delete", path)


def _coalescer(root="/r"):
    from rmote.operations.coalescer import EventCoalescer
    from rmote.utils.path_filter import PathFilter
    return EventCoalescer(PathFilter(Path(root), ["build"]), canonicalize=Path)


# ── Tests: drain / reconcile ──────────────────────────────────────────────────

class TestDrainReconcile(unittest.TestCase):

    def setUp(self):
        from rmote.core.dispatcher import Dispatcher
        self.channel = queue.Queue()
        self.syncer = RecordingSyncer()
        self.dispatcher = Dispatcher(self.channel, _coalescer(), self.syncer, debounce_s=1.0)

    def put(self, kind, *paths):
        from rmote.operations.coalescer import RawEvent
        self.channel.put(RawEvent.of(kind, *paths))

    def test_drain_moves_everything_pending(self):
        from rmote.core.dispatcher import DispatcherState
        from rmote.operations.coalescer import EventKind
        for _ in range(5):
            self.put(EventKind.MODIFIED, "/r/a")
        self.assertTrue(self.dispatcher.drain())
        self.assertEqual(len(self.dispatcher.pending), 5)
        self.assertTrue(self.channel.empty())
        self.assertIs(self.dispatcher.state, DispatcherState.IDLE)

    def test_drain_on_empty_queue_returns_immediately(self):
        start = time.monotonic()
        self.assertTrue(self.dispatcher.drain())
        self.assertLess(time.monotonic() - start, 0.5)

    def test_drain_is_bounded_by_the_backlog(self):
        """A producer that never pauses cannot keep one drain running."""
        from rmote.core.dispatcher import Dispatcher
        from rmote.operations.coalescer import EventKind, RawEvent

        class BusyQueue(queue.Queue):
            def get_nowait(self):
                event = super().get_nowait()
                self.put(RawEvent.of(EventKind.MODIFIED, "/r/hot"))
                return event

        channel = BusyQueue()
        for _ in range(3):
            channel.put(RawEvent.of(EventKind.MODIFIED, "/r/hot"))
        dispatcher = Dispatcher(channel, _coalescer(), self.syncer, debounce_s=1.0)

        self.assertTrue(dispatcher.drain())
        self.assertEqual(len(dispatcher.pending), 3)
        self.assertEqual(channel.qsize(), 3)

    def test_drain_reports_end_of_stream(self):
        from rmote.core.watcher import END_OF_STREAM
        from rmote.operations.coalescer import EventKind
        self.put(EventKind.CREATED, "/r/a")
        self.channel.put(END_OF_STREAM)
        self.assertFalse(self.dispatcher.drain())
        self.assertEqual(len(self.dispatcher.pending), 1)

    def test_editor_save_is_one_transfer(self):
        """[Modified, Removed, Created] for one file becomes a single upload."""
        from rmote.operations.coalescer import EventKind
        self.put(EventKind.MODIFIED, "/r/src/main.rs")
        self.put(EventKind.REMOVED, "/r/src/main.rs")
        self.put(EventKind.CREATED, "/r/src/main.rs")
        self.dispatcher.drain()
        self.dispatcher.reconcile()
        self.assertEqual(self.syncer.applied, [("transfer", Path("/r/src/main.rs"))])

    def test_modify_then_remove_is_one_delete(self):
        from rmote.operations.coalescer import EventKind
        self.put(EventKind.MODIFIED, "/r/tmp.txt")
        self.put(EventKind.REMOVED, "/r/tmp.txt")
        self.dispatcher.drain()
        self.dispatcher.reconcile()
        self.assertEqual(self.syncer.applied, [("delete", Path("/r/tmp.txt"))])

    def test_blacklisted_events_are_never_applied(self):
        from rmote.operations.coalescer import EventKind
        self.put(EventKind.CREATED, "/r/build/out.o")
        self.dispatcher.drain()
        self.dispatcher.reconcile()
        self.assertEqual(self.syncer.applied, [])

    def test_failed_path_does_not_stop_others(self):
        """A failing path is logged and skipped; the rest of the tick proceeds."""
        from rmote.operations.coalescer import EventKind
        self.syncer.failing = {Path("/r/bad")}
        self.put(EventKind.MODIFIED, "/r/bad")
        self.put(EventKind.MODIFIED, "/r/good1")
        self.put(EventKind.REMOVED, "/r/good2")
        self.dispatcher.drain()
        intents = self.dispatcher.reconcile()
        self.assertEqual(len(intents), 3)
        self.assertEqual({p for _, p in self.syncer.applied},
                         {Path("/r/bad"), Path("/r/good1"), Path("/r/good2")})

    def test_reconcile_clears_pending(self):
        from rmote.core.dispatcher import DispatcherState
        from rmote.operations.coalescer import EventKind
        self.put(EventKind.MODIFIED, "/r/a")
        self.dispatcher.drain()
        self.dispatcher.reconcile()
        self.assertEqual(self.dispatcher.pending, [])
        self.assertEqual(self.dispatcher.reconcile(), {})
        self.assertIs(self.dispatcher.state, DispatcherState.IDLE)


# ── Tests: run loop ───────────────────────────────────────────────────────────

class TestRun(unittest.TestCase):

    def _dispatcher(self, channel, syncer, debounce_s=0.05):
        from rmote.core.dispatcher import Dispatcher
        return Dispatcher(channel, _coalescer(), syncer, debounce_s=debounce_s,
                          poll_interval_s=0.005)

    def test_run_exits_on_end_of_stream(self):
        from rmote.core.watcher import END_OF_STREAM
        channel = queue.Queue()
        channel.put(END_OF_STREAM)
        self._dispatcher(channel, RecordingSyncer()).run()

    def test_run_exits_when_producer_is_gone(self):
        channel = queue.Queue()
        self._dispatcher(channel, RecordingSyncer()).run(alive=lambda: False)

    def test_events_are_applied_on_a_tick(self):
        """Events arriving while running are applied once the window elapses."""
        from rmote.core.watcher import END_OF_STREAM
        from rmote.operations.coalescer import EventKind, RawEvent
        channel = queue.Queue()
        syncer = RecordingSyncer()
        dispatcher = self._dispatcher(channel, syncer)
        worker = threading.Thread(target=dispatcher.run, daemon=True)
        worker.start()

        channel.put(RawEvent.of(EventKind.CREATED, "/r/a"))
        channel.put(RawEvent.of(EventKind.MODIFIED, "/r/a"))
        deadline = time.monotonic() + 5
        while not syncer.applied and time.monotonic() < deadline:
            time.sleep(0.01)

        channel.put(END_OF_STREAM)
        worker.join(timeout=5)
        self.assertFalse(worker.is_alive())
        self.assertEqual(set(syncer.applied), {("transfer", Path("/r/a"))})


# ── Tests: end to end against the fake channel ────────────────────────────────

class TestWithFullSyncer(unittest.TestCase):

    def setUp(self):
        from rmote.core.dispatcher import Dispatcher
        from rmote.operations.coalescer import EventCoalescer
        from rmote.operations.full_sync import FullSyncer
        from rmote.operations.remote_tree import RemoteTree
        from rmote.utils.path_filter import PathFilter

        self.tmpdir = tempfile.TemporaryDirectory()
        base = Path(self.tmpdir.name).resolve()
        self.local = base / "local"
        self.local.mkdir()
        (base / "remote").mkdir()
        self.remote = base / "remote" / "dst"
        self.sftp = FakeSFTP(base / "remote")
        path_filter = PathFilter(self.local, [])
        syncer = FullSyncer(self.local, PurePosixPath("/dst"), path_filter, RemoteTree(self.sftp))
        self.channel = queue.Queue()
        self.dispatcher = Dispatcher(self.channel, EventCoalescer(path_filter), syncer, 1.0)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_editor_save_uploads_final_content_once(self):
        from rmote.operations.coalescer import EventKind, RawEvent
        f = self.local / "main.rs"
        f.write_text("fn main() {}")
        for kind in (EventKind.MODIFIED, EventKind.REMOVED, EventKind.CREATED):
            self.channel.put(RawEvent.of(kind, str(f)))

        self.dispatcher.drain()
        self.dispatcher.reconcile()

        self.assertEqual((self.remote / "main.rs").read_text(), "fn main() {}")
        opens = [p for op, p in self.sftp.calls if op == "open"]
        self.assertEqual(opens, ["/dst/main.rs"])

    def test_created_then_removed_file_is_deleted(self):
        from rmote.operations.coalescer import EventKind, RawEvent
        self.remote.mkdir()
        (self.remote / "old.txt").write_text("stale")
        path = str(self.local / "old.txt")
        self.channel.put(RawEvent.of(EventKind.CREATED, path))
        self.channel.put(RawEvent.of(EventKind.REMOVED, path))

        self.dispatcher.drain()
        self.dispatcher.reconcile()

        self.assertFalse((self.remote / "old.txt").exists())


if __name__ == "__main__":
    unittest.main()
