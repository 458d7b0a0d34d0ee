"""
Tests for the watchdog → queue ingestion side.
"""
import queue
import tempfile
import time
import unittest
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)


def _drain(channel):
    out = []
    while True:
        try:
            out.append(channel.get_nowait())
        except queue.Empty:
            return out


class TestForwardingHandler(unittest.TestCase):
    """Each watchdog notification becomes RawEvent(s) on the channel."""

    def setUp(self):
        from rmote.core.watcher import ForwardingHandler, make_channel
        self.channel = make_channel()
        self.handler = ForwardingHandler(self.channel)

    def test_created_modified_deleted(self):
        from rmote.operations.coalescer import EventKind, RawEvent
        self.handler.on_created(FileCreatedEvent("/r/a"))
        self.handler.on_modified(FileModifiedEvent("/r/a"))
        self.handler.on_deleted(FileDeletedEvent("/r/a"))
        self.assertEqual(_drain(self.channel), [
            RawEvent.of(EventKind.CREATED, "/r/a"),
            RawEvent.of(EventKind.MODIFIED, "/r/a"),
            RawEvent.of(EventKind.REMOVED, "/r/a"),
        ])

    def test_directory_events_are_forwarded(self):
        from rmote.operations.coalescer import EventKind, RawEvent
        self.handler.on_created(DirCreatedEvent("/r/newdir"))
        self.assertEqual(_drain(self.channel), [RawEvent.of(EventKind.CREATED, "/r/newdir")])

    def test_move_is_remove_then_create(self):
        """A rename deletes the old name remotely and sends the new one."""
        from rmote.operations.coalescer import EventKind, RawEvent
        self.handler.on_moved(FileMovedEvent("/r/old.txt", "/r/new.txt"))
        self.assertEqual(_drain(self.channel), [
            RawEvent.of(EventKind.REMOVED, "/r/old.txt"),
            RawEvent.of(EventKind.CREATED, "/r/new.txt"),
        ])

    def test_bytes_paths_are_decoded(self):
        from rmote.operations.coalescer import EventKind, RawEvent
        self.handler.on_created(FileCreatedEvent(b"/r/bytes.txt"))
        self.assertEqual(_drain(self.channel), [RawEvent.of(EventKind.CREATED, "/r/bytes.txt")])


class TestChannel(unittest.TestCase):

    def test_channel_is_bounded(self):
        from rmote.core.watcher import make_channel
        channel = make_channel(2)
        channel.put_nowait(1)
        channel.put_nowait(2)
        with self.assertRaises(queue.Full):
            channel.put_nowait(3)

    def test_default_capacity(self):
        from rmote import config as _cfg
        from rmote.core.watcher import make_channel
        self.assertEqual(make_channel().maxsize, _cfg.CHANNEL_CAPACITY)


class TestWatcher(unittest.TestCase):
    """Real observer on a temporary directory."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self.tmpdir.name).resolve()

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_file_creation_reaches_the_channel(self):
        from rmote.core.watcher import END_OF_STREAM, Watcher, make_channel
        from rmote.operations.coalescer import EventKind
        channel = make_channel()
        watcher = Watcher(self.root, channel)
        with watcher:
            self.assertTrue(watcher.is_running)
            (self.root / "hello.txt").write_text("hi")
            seen = []
            deadline = time.monotonic() + 5
            target = str(self.root / "hello.txt")
            while time.monotonic() < deadline:
                try:
                    event = channel.get(timeout=0.1)
                except queue.Empty:
                    continue
                seen.append(event)
                if target in event.paths and event.kind in (EventKind.CREATED, EventKind.MODIFIED):
                    break
            self.assertTrue(any(target in e.paths for e in seen), seen)
        self.assertFalse(watcher.is_running)
        remaining = _drain(channel)
        self.assertIs(remaining[-1], END_OF_STREAM)

    def test_stop_is_idempotent(self):
        from rmote.core.watcher import Watcher, make_channel
        watcher = Watcher(self.root, make_channel())
        watcher.stop()
        watcher.start()
        watcher.stop()
        watcher.stop()

    def test_missing_root_is_a_setup_error(self):
        from rmote.core.errors import SetupError
        from rmote.core.watcher import Watcher, make_channel
        watcher = Watcher(self.root / "missing", make_channel())
        with self.assertRaises(SetupError):
            watcher.start()


if __name__ == "__main__":
    unittest.main()
