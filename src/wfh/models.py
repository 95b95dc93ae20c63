"""Data models for wfh."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional
import time

from .exceptions import SyncUnitError


class EventKind(Enum):
    """Kinds of raw filesystem change events."""
    CREATE = "create"
    REMOVE = "remove"
    PERMISSION_CHANGE = "permission_change"
    WRITE = "write"
    OTHER = "other"

    @property
    def is_relevant(self) -> bool:
        """Whether events of this kind can make a unit need syncing."""
        return self in RELEVANT_EVENT_KINDS


RELEVANT_EVENT_KINDS = frozenset({
    EventKind.CREATE,
    EventKind.REMOVE,
    EventKind.PERMISSION_CHANGE,
    EventKind.WRITE,
})


@dataclass(frozen=True)
class RawChangeEvent:
    """
    An observation from the watch subsystem.

    Attributes:
        kind: What happened to the path
        path: Absolute path of the affected file or directory
        is_directory: Whether the path is a directory
        timestamp: Unix timestamp when the event was observed
    """
    kind: EventKind
    path: Path
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SyncUnit:
    """
    An immediate subdirectory of a root tree, synced as a whole.

    Attributes:
        path: Absolute local path of the unit
        root: The root tree the unit was discovered in
        remote_path: Destination path of the unit on the remote host
    """
    path: Path
    root: Path
    remote_path: str

    def __post_init__(self):
        if not self.path.is_absolute():
            raise ValueError(f"path must be absolute: {self.path}")
        if not self.root.is_absolute():
            raise ValueError(f"root must be absolute: {self.root}")

    @property
    def name(self) -> str:
        return self.path.name

    def __str__(self) -> str:
        return str(self.path)


@dataclass
class UnitResult:
    """Outcome of syncing one unit."""
    unit: SyncUnit
    error: Optional[SyncUnitError] = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """
    Outcome of syncing a batch of units.

    Attributes:
        results: Per-unit results in dispatch order
        started_at: Unix timestamp when the batch started
    """
    results: List[UnitResult] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self):
        return iter(self.results)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failed(self) -> List[UnitResult]:
        return [r for r in self.results if not r.ok]

    @property
    def first_error(self) -> Optional[SyncUnitError]:
        """The first failure in dispatch order, if any."""
        for result in self.results:
            if result.error is not None:
                return result.error
        return None

    def raise_for_error(self) -> None:
        """Raise the first failure of the batch, if any."""
        error = self.first_error
        if error is not None:
            raise error
