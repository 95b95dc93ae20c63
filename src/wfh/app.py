"""Main sync orchestrator."""

import logging
import threading
from typing import FrozenSet, IO, Optional, Tuple

from .config import SyncConfig
from .debouncer import SyncDebouncer
from .dispatcher import SyncDispatcher
from .fs_watcher import FSWatcherPool
from .ignore_filter import IgnoreFilter
from .models import BatchResult, SyncUnit
from .process_runner import ProcessRunner
from .progress import ProgressReporter
from .unit_resolver import UnitResolver

logger = logging.getLogger(__name__)


class SyncApp:
    """
    Main orchestrator for a sync run.

    Discovers the units once, registers a recursive watch on every root,
    syncs every unit once, then feeds change events through the debouncer
    until stopped.
    """

    def __init__(
        self,
        config: SyncConfig,
        runner: Optional[ProcessRunner] = None,
        progress: bool = False,
        progress_stream: Optional[IO[str]] = None,
    ):
        """
        Initialize the app.

        Args:
            config: Run configuration
            runner: Runner for external commands
            progress: Whether to draw the per-unit status display
            progress_stream: Where to draw it (default: stdout)

        Raises:
            DiscoveryError: If a root cannot be listed
        """
        self.config = config
        self._resolver = UnitResolver.from_config(config)
        self._ignore_filter = IgnoreFilter(config.ignore_file_name)
        self._dispatcher = SyncDispatcher(config, runner)
        self._pool = FSWatcherPool()
        self._stop_event = threading.Event()

        self._reporter: Optional[ProgressReporter] = None
        if progress:
            self._reporter = ProgressReporter(self._resolver.units, progress_stream)

        self._debouncer = SyncDebouncer(
            self._pool.channel,
            self._resolver,
            self._ignore_filter,
            self._dispatcher.sync_all,
            idle_timeout_ms=config.idle_timeout_ms,
            stop_event=self._stop_event,
            on_tick=self._reporter.render if self._reporter else None,
        )

        self._running = False
        self._lock = threading.Lock()

    @property
    def units(self) -> Tuple[SyncUnit, ...]:
        return self._resolver.units

    @property
    def dispatcher(self) -> SyncDispatcher:
        return self._dispatcher

    @property
    def debouncer(self) -> SyncDebouncer:
        return self._debouncer

    def pending_units(self) -> FrozenSet[SyncUnit]:
        """Read-only snapshot of the units waiting to be synced."""
        return self._debouncer.pending_snapshot()

    def watch(self) -> None:
        """
        Register a recursive watch on every root.

        Raises:
            WatchRegistrationError: If a root cannot be watched
        """
        for root in self.config.roots:
            self._pool.start_watching(root)
            logger.info(f"Watching {root}")

    def initial_sync(self) -> BatchResult:
        """
        Sync every unit once, one unit at a time.

        Returns:
            Combined results of all units attempted
        """
        combined = BatchResult()
        for unit in self.units:
            if self._stop_event.is_set():
                break
            if self._reporter:
                self._reporter.render(frozenset([unit]))
            combined.results.extend(self._dispatcher.sync_all([unit]))

        if combined.ok:
            logger.info(f"Initial sync of {len(combined)} unit(s) complete")
        else:
            logger.error(f"Initial sync: {len(combined.failed)} of {len(combined)} unit(s) failed")
        return combined

    def run(self) -> None:
        """
        Run until stop() is called (blocking).

        Raises:
            WatchRegistrationError: If a root cannot be watched
            WatchChannelClosed: If the watch subsystem stops unexpectedly
        """
        with self._lock:
            if self._running:
                raise RuntimeError("SyncApp is already running")
            self._running = True

        try:
            self.watch()
            self.initial_sync()
            logger.info(f"Waiting for changes in {len(self.units)} unit(s)")
            self._debouncer.run()
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask the run loop to finish its current batch and return."""
        self._stop_event.set()

    def _shutdown(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False

        self._pool.stop_all()
        if self._reporter:
            self._reporter.finish()

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        self._shutdown()
        return False
