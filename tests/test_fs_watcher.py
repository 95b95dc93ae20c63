"""Tests for filesystem watcher module."""

import os
import pytest
import time
from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from wfh.debouncer import SyncDebouncer
from wfh.exceptions import TransientWatchError, WatchChannelClosed, WatchRegistrationError
from wfh.fs_watcher import FSEventHandler, FSWatcherPool, WatchChannel
from wfh.ignore_filter import IgnoreFilter
from wfh.models import EventKind, RawChangeEvent
from wfh.unit_resolver import UnitResolver, discover


def drain(channel: WatchChannel, timeout: float = 0.5):
    events = []
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            event = channel.recv(0.05)
        except TransientWatchError:
            continue
        if event is not None:
            events.append(event)
    return events


class TestWatchChannel:
    """Tests for WatchChannel class."""

    def test_send_and_recv(self):
        channel = WatchChannel()
        event = RawChangeEvent(EventKind.WRITE, Path("/tmp/a"))

        channel.send(event)

        assert channel.recv(0.1) is event

    def test_timeout_returns_none(self):
        channel = WatchChannel()
        start = time.time()

        assert channel.recv(0.05) is None
        assert time.time() - start >= 0.04

    def test_fifo_order(self):
        channel = WatchChannel()
        first = RawChangeEvent(EventKind.CREATE, Path("/tmp/a"))
        second = RawChangeEvent(EventKind.REMOVE, Path("/tmp/a"))
        channel.send(first)
        channel.send(second)

        assert channel.recv(0.1) is first
        assert channel.recv(0.1) is second
        assert channel.qsize() == 0

    def test_send_error(self):
        channel = WatchChannel()
        channel.send_error("inotify queue overflow")

        with pytest.raises(TransientWatchError, match="overflow"):
            channel.recv(0.1)

        # The channel keeps working afterwards
        assert channel.recv(0.01) is None

    def test_close_after_pending_items(self):
        channel = WatchChannel()
        event = RawChangeEvent(EventKind.WRITE, Path("/tmp/a"))
        channel.send(event)
        channel.close()

        assert channel.recv(0.1) is event
        with pytest.raises(WatchChannelClosed):
            channel.recv(0.1)
        assert channel.closed

        with pytest.raises(WatchChannelClosed):
            channel.recv(0.1)

    def test_dead_source_closes_channel(self):
        channel = WatchChannel(liveness=lambda: False)

        with pytest.raises(WatchChannelClosed):
            channel.recv(0.01)

    def test_live_source_times_out(self):
        channel = WatchChannel(liveness=lambda: True)
        assert channel.recv(0.01) is None


class TestFSEventHandler:
    """Tests for FSEventHandler class."""

    def test_created(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)

        handler.on_created(FileCreatedEvent(str(tmp_path / "a.txt")))

        event = channel.recv(0.1)
        assert event.kind is EventKind.CREATE
        assert event.path == tmp_path / "a.txt"
        assert event.is_directory is False

    def test_deleted(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)

        handler.on_deleted(FileDeletedEvent(str(tmp_path / "a.txt")))

        assert channel.recv(0.1).kind is EventKind.REMOVE

    def test_modified(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)
        handler.prime()

        handler.on_modified(FileModifiedEvent(str(tmp_path / "a.txt")))
        (tmp_path / "a.txt").write_text("x")
        handler.on_modified(DirModifiedEvent(str(tmp_path)))

        file_event = channel.recv(0.1)
        dir_event = channel.recv(0.1)
        assert file_event.kind is EventKind.WRITE
        assert dir_event.kind is EventKind.OTHER
        assert dir_event.is_directory is True

    def test_directory_chmod(self, tmp_path):
        sub = tmp_path / "secrets"
        sub.mkdir()
        os.chmod(sub, 0o755)
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)
        assert handler.prime() == 2

        os.chmod(sub, 0o700)
        handler.on_modified(DirModifiedEvent(str(sub)))
        handler.on_modified(DirModifiedEvent(str(sub)))

        assert channel.recv(0.1).kind is EventKind.PERMISSION_CHANGE
        assert channel.recv(0.1).kind is EventKind.OTHER

    def test_created_directory_is_tracked(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)
        handler.prime()

        sub = tmp_path / "new"
        sub.mkdir()
        os.chmod(sub, 0o755)
        handler.on_created(DirCreatedEvent(str(sub)))
        os.chmod(sub, 0o711)
        handler.on_modified(DirModifiedEvent(str(sub)))

        assert channel.recv(0.1).kind is EventKind.CREATE
        assert channel.recv(0.1).kind is EventKind.PERMISSION_CHANGE

    def test_unknown_directory_is_other(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)

        handler.on_modified(DirModifiedEvent(str(tmp_path)))

        assert channel.recv(0.1).kind is EventKind.OTHER

    def test_moved_is_other(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)

        handler.on_moved(FileMovedEvent(str(tmp_path / "a.txt"), str(tmp_path / "b.txt")))

        event = channel.recv(0.1)
        assert event.kind is EventKind.OTHER
        assert event.kind.is_relevant is False

    def test_bytes_paths(self, tmp_path):
        channel = WatchChannel()
        handler = FSEventHandler(channel, tmp_path)

        handler.on_created(FileCreatedEvent(bytes(tmp_path / "b.txt")))

        assert channel.recv(0.1).path == tmp_path / "b.txt"


class TestFSWatcherPool:
    """Tests for FSWatcherPool class."""

    def test_create_pool(self):
        pool = FSWatcherPool()
        assert len(pool) == 0
        assert pool.is_healthy()

    def test_start_watching(self, tmp_path):
        pool = FSWatcherPool()

        result = pool.start_watching(tmp_path)

        assert result is True
        assert len(pool) == 1
        assert pool.is_watching(tmp_path)
        assert pool.is_healthy()

        pool.stop_all()

    def test_start_watching_duplicate(self, tmp_path):
        pool = FSWatcherPool()

        pool.start_watching(tmp_path)
        result = pool.start_watching(tmp_path)

        assert result is False
        assert len(pool) == 1

        pool.stop_all()

    def test_start_watching_missing_root(self, tmp_path):
        pool = FSWatcherPool()

        with pytest.raises(WatchRegistrationError):
            pool.start_watching(tmp_path / "missing")

    def test_start_watching_file(self, tmp_path):
        path = tmp_path / "file.txt"
        path.write_text("x")
        pool = FSWatcherPool()

        with pytest.raises(WatchRegistrationError):
            pool.start_watching(path)

    def test_get_watched_roots(self, tmp_path):
        root1 = tmp_path / "root1"
        root2 = tmp_path / "root2"
        root1.mkdir()
        root2.mkdir()
        pool = FSWatcherPool()

        pool.start_watching(root1)
        pool.start_watching(root2)

        roots = pool.get_watched_roots()
        assert len(roots) == 2
        assert root1.resolve() in roots
        assert root2.resolve() in roots

        pool.stop_all()

    def test_stop_all_closes_channel(self, tmp_path):
        pool = FSWatcherPool()
        pool.start_watching(tmp_path)

        count = pool.stop_all()

        assert count == 1
        assert len(pool) == 0
        with pytest.raises(WatchChannelClosed):
            pool.channel.recv(0.5)

    def test_detects_file_creation(self, tmp_path):
        pool = FSWatcherPool()
        pool.start_watching(tmp_path)

        # Give watcher time to start
        time.sleep(0.2)

        test_file = tmp_path / "test.txt"
        test_file.write_text("hello")

        events = drain(pool.channel)
        pool.stop_all()

        created = [e for e in events if e.kind is EventKind.CREATE and e.path.name == "test.txt"]
        assert len(created) >= 1

    def test_detects_recursive_modification(self, tmp_path):
        sub = tmp_path / "unit" / "src"
        sub.mkdir(parents=True)
        test_file = sub / "mod.py"
        test_file.write_text("initial")

        pool = FSWatcherPool()
        pool.start_watching(tmp_path)
        time.sleep(0.2)

        test_file.write_text("modified")

        events = drain(pool.channel)
        pool.stop_all()

        writes = [e for e in events if e.kind is EventKind.WRITE and e.path.name == "mod.py"]
        assert len(writes) >= 1

    def test_detects_deletion(self, tmp_path):
        test_file = tmp_path / "test.txt"
        test_file.write_text("bye")

        pool = FSWatcherPool()
        pool.start_watching(tmp_path)
        time.sleep(0.2)

        test_file.unlink()

        events = drain(pool.channel)
        pool.stop_all()

        removed = [e for e in events if e.kind is EventKind.REMOVE and e.path.name == "test.txt"]
        assert len(removed) >= 1

    def test_directory_chmod_marks_unit_pending(self, tmp_path):
        root = tmp_path / "root"
        secrets = root / "unitA" / "secrets"
        secrets.mkdir(parents=True)
        (root / "unitB").mkdir()
        os.chmod(secrets, 0o755)

        pool = FSWatcherPool()
        pool.start_watching(root)
        time.sleep(0.2)

        os.chmod(secrets, 0o700)

        events = drain(pool.channel)
        pool.stop_all()

        changed = [e for e in events if e.kind is EventKind.PERMISSION_CHANGE]
        assert changed
        assert {e.path.name for e in changed} == {"secrets"}

        debouncer = SyncDebouncer(
            WatchChannel(), UnitResolver(discover([root])), IgnoreFilter(), lambda units: None,
        )
        for event in events:
            debouncer.accept(event)
        assert [u.name for u in debouncer.pending_snapshot()] == ["unitA"]
