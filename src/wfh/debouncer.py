"""Debouncing of raw change events into batches of sync units."""

import logging
import threading
from typing import Callable, FrozenSet, Optional, Set

from .exceptions import TransientWatchError, WatchChannelClosed
from .fs_watcher import WatchChannel
from .ignore_filter import IgnoreFilter
from .models import BatchResult, RawChangeEvent, SyncUnit
from .unit_resolver import UnitResolver

logger = logging.getLogger(__name__)

Dispatch = Callable[[FrozenSet[SyncUnit]], BatchResult]


class SyncDebouncer:
    """
    Collects the units touched by change events and flushes them as one
    batch once no event has arrived for the idle timeout.

    A unit under continuous edits is therefore synced only after activity
    pauses. Dispatch runs on the loop's own thread; events arriving while
    a batch is syncing wait in the channel.
    """

    def __init__(
        self,
        channel: WatchChannel,
        resolver: UnitResolver,
        ignore_filter: IgnoreFilter,
        dispatch: Dispatch,
        idle_timeout_ms: int = 500,
        stop_event: Optional[threading.Event] = None,
        on_tick: Optional[Callable[[FrozenSet[SyncUnit]], None]] = None,
    ):
        """
        Initialize the debouncer.

        Args:
            channel: Source of raw change events
            resolver: Maps changed paths onto units
            ignore_filter: Drops changes matched by a unit's ignore file
            dispatch: Syncs a batch of units
            idle_timeout_ms: Quiet period before the pending set is flushed
            stop_event: Shared flag that ends the loop when set
            on_tick: Called with the pending snapshot on every iteration
        """
        self.channel = channel
        self.resolver = resolver
        self.ignore_filter = ignore_filter
        self.dispatch = dispatch
        self.idle_timeout_ms = idle_timeout_ms
        self.on_tick = on_tick
        self._stop_event = stop_event or threading.Event()
        self._pending: Set[SyncUnit] = set()
        self._lock = threading.Lock()

    @property
    def idle_timeout(self) -> float:
        return self.idle_timeout_ms / 1000.0

    def pending_snapshot(self) -> FrozenSet[SyncUnit]:
        """Units waiting to be synced; safe to call from any thread."""
        with self._lock:
            return frozenset(self._pending)

    def accept(self, event: RawChangeEvent) -> Optional[SyncUnit]:
        """
        Add the unit affected by an event to the pending set.

        Args:
            event: Raw change event

        Returns:
            The unit that was marked pending, or None if the event was dropped
        """
        if not event.kind.is_relevant:
            logger.debug(f"skip {event.kind.value} {event.path}")
            return None

        unit = self.resolver.resolve(event.path)
        if unit is None:
            logger.debug(f"no unit for {event.path}")
            return None

        if self.ignore_filter.is_ignored(unit, event.path, event.is_directory):
            return None

        logger.debug(f"sync {event.path}")
        with self._lock:
            self._pending.add(unit)
        return unit

    def flush(self) -> Optional[BatchResult]:
        """
        Dispatch the pending units and clear the pending set.

        Returns:
            The batch result, or None if nothing was pending
        """
        units = self.pending_snapshot()
        if not units:
            return None

        logger.info(f"Dispatching {len(units)} unit(s)")
        try:
            result = self.dispatch(units)
        finally:
            with self._lock:
                self._pending.clear()

        if not result.ok:
            logger.error(f"Batch failed: {result.first_error}")
        return result

    def run_once(self) -> Optional[BatchResult]:
        """
        Perform one iteration of the loop: wait for an event, then either
        accumulate it or, on timeout, flush.

        Returns:
            The batch result if this iteration flushed, else None

        Raises:
            WatchChannelClosed: If the watch subsystem has stopped
        """
        if self.on_tick is not None:
            self.on_tick(self.pending_snapshot())

        try:
            event = self.channel.recv(self.idle_timeout)
        except TransientWatchError as e:
            logger.error(f"watch error: {e}")
            return None

        if event is not None:
            self.accept(event)
            return None

        return self.flush()

    def run(self) -> None:
        """
        Loop until the stop flag is set.

        The flag is checked once per iteration, so a batch that is being
        dispatched always completes first.

        Raises:
            WatchChannelClosed: If the watch subsystem stops while running
        """
        logger.debug(f"Debounce loop started, idle timeout={self.idle_timeout}s")

        while not self._stop_event.is_set():
            try:
                self.run_once()
            except WatchChannelClosed:
                if self._stop_event.is_set():
                    break
                raise

        logger.debug("Debounce loop stopped")

    def stop(self) -> None:
        """Ask the loop to stop after the current iteration."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()
