"""File system watcher using watchdog library."""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from watchdog.observers import Observer
from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
)

from .exceptions import TransientWatchError, WatchChannelClosed, WatchRegistrationError
from .models import EventKind, RawChangeEvent

logger = logging.getLogger(__name__)


class WatchChannel:
    """
    Queue of raw change events between the watch threads and the
    debounce loop.

    Besides events the channel carries transient errors and a close
    marker; once closed it stays closed.
    """

    _CLOSED = object()

    def __init__(self, liveness: Optional[Callable[[], bool]] = None):
        """
        Initialize the channel.

        Args:
            liveness: Called on timeout; returning False closes the channel
        """
        self._queue: "queue.Queue" = queue.Queue()
        self._liveness = liveness
        self._closed = False

    def send(self, event: RawChangeEvent) -> None:
        self._queue.put(event)

    def send_error(self, error: Union[str, Exception]) -> None:
        """Deliver a recoverable error to the receiver."""
        if not isinstance(error, TransientWatchError):
            error = TransientWatchError(str(error))
        self._queue.put(error)

    def close(self) -> None:
        """Close the channel; pending items are still delivered first."""
        self._queue.put(self._CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def recv(self, timeout: float) -> Optional[RawChangeEvent]:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait

        Returns:
            The next event, or None if nothing arrived within the timeout

        Raises:
            TransientWatchError: The watch subsystem reported an error
            WatchChannelClosed: The channel is closed or its source died
        """
        if self._closed:
            raise WatchChannelClosed("Watch channel is closed")

        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            if self._liveness is not None and not self._liveness():
                self._closed = True
                raise WatchChannelClosed("Filesystem observer stopped unexpectedly")
            return None

        if item is self._CLOSED:
            self._closed = True
            raise WatchChannelClosed("Watch channel is closed")
        if isinstance(item, TransientWatchError):
            raise item
        return item

    def qsize(self) -> int:
        return self._queue.qsize()


class FSEventHandler(FileSystemEventHandler):
    """
    Handler that converts watchdog events to RawChangeEvent.

    watchdog reports both a chmod of a directory and a change to its
    entries as a DirModifiedEvent. The handler remembers the mode of
    every directory under the root so the two can be told apart.
    """

    def __init__(self, channel: WatchChannel, root: Path):
        super().__init__()
        self.channel = channel
        self.root = root
        self._modes: Dict[str, int] = {}

    def prime(self) -> int:
        """
        Record the mode of every directory under the root.

        Returns:
            Number of directories recorded
        """
        for dirpath, _, _ in os.walk(self.root):
            self._remember(dirpath)
        return len(self._modes)

    def _remember(self, path: str) -> Optional[int]:
        try:
            mode = os.lstat(path).st_mode
        except OSError:
            self._modes.pop(path, None)
            return None
        self._modes[path] = mode
        return mode

    def _forget(self, path: str) -> None:
        prefix = path + os.sep
        for key in [k for k in self._modes if k == path or k.startswith(prefix)]:
            del self._modes[key]

    def _mode_changed(self, path: str) -> bool:
        previous = self._modes.get(path)
        current = self._remember(path)
        return previous is not None and current is not None and previous != current

    def _emit(self, kind: EventKind, event: FileSystemEvent, is_directory: bool) -> None:
        """Push a RawChangeEvent onto the channel."""
        try:
            path = Path(os.fsdecode(event.src_path))
        except (TypeError, ValueError) as e:
            self.channel.send_error(f"Undecodable event path under {self.root}: {e}")
            return

        self.channel.send(RawChangeEvent(
            kind=kind,
            path=path,
            is_directory=is_directory,
            timestamp=time.time(),
        ))

    def on_created(self, event):
        is_directory = isinstance(event, DirCreatedEvent)
        if is_directory:
            self._remember(os.fsdecode(event.src_path))
        self._emit(EventKind.CREATE, event, is_directory)

    def on_deleted(self, event):
        is_directory = isinstance(event, DirDeletedEvent)
        if is_directory:
            self._forget(os.fsdecode(event.src_path))
        self._emit(EventKind.REMOVE, event, is_directory)

    def on_modified(self, event):
        if isinstance(event, DirModifiedEvent):
            if self._mode_changed(os.fsdecode(event.src_path)):
                self._emit(EventKind.PERMISSION_CHANGE, event, True)
            else:
                # Parent of a created or deleted entry
                self._emit(EventKind.OTHER, event, True)
            return
        # Attribute changes on files are reported by watchdog as modifications
        self._emit(EventKind.WRITE, event, False)

    def on_moved(self, event):
        is_directory = isinstance(event, DirMovedEvent)
        if is_directory:
            self._forget(os.fsdecode(event.src_path))
            dest = os.fsdecode(event.dest_path)
            for dirpath, _, _ in os.walk(dest):
                self._remember(dirpath)
        self._emit(EventKind.OTHER, event, is_directory)


class FSWatcherPool:
    """
    Manages multiple watchdog observers, one per root.

    All observers feed a single WatchChannel. The channel reports itself
    closed once any observer thread has died.
    """

    def __init__(self, channel: Optional[WatchChannel] = None):
        """
        Initialize the watcher pool.

        Args:
            channel: Channel to deliver events to (created if omitted)
        """
        self.channel = channel or WatchChannel(liveness=self.is_healthy)
        self._observers: Dict[Path, Observer] = {}
        self._lock = threading.Lock()

    def start_watching(self, root: Path) -> bool:
        """
        Start watching a root directory recursively.

        Args:
            root: Path to the root directory

        Returns:
            True if watching started, False if already watching

        Raises:
            WatchRegistrationError: If the root cannot be watched
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise WatchRegistrationError(f"Cannot watch {root}: not a directory")

        with self._lock:
            if root in self._observers:
                return False

            observer = Observer()
            handler = FSEventHandler(self.channel, root)
            handler.prime()
            try:
                observer.schedule(handler, str(root), recursive=True)
                observer.start()
            except OSError as e:
                raise WatchRegistrationError(f"Cannot watch {root}: {e}") from e

            self._observers[root] = observer
            logger.debug(f"watch {root}")
            return True

    def stop_all(self) -> int:
        """
        Stop all watchers and close the channel.

        Returns:
            Number of watchers stopped
        """
        with self._lock:
            count = len(self._observers)

            for observer in self._observers.values():
                observer.stop()

            for observer in self._observers.values():
                observer.join(timeout=5.0)

            self._observers.clear()

        self.channel.close()
        return count

    def is_healthy(self) -> bool:
        """Check that every observer thread is still running."""
        with self._lock:
            return all(observer.is_alive() for observer in self._observers.values())

    def is_watching(self, root: Path) -> bool:
        root = Path(root).resolve()

        with self._lock:
            return root in self._observers

    def get_watched_roots(self) -> List[Path]:
        with self._lock:
            return list(self._observers.keys())

    def __len__(self) -> int:
        """Return the number of active watchers."""
        with self._lock:
            return len(self._observers)
