"""
wfh: synchronize files as you edit.

Watches local root directories and mirrors each changed immediate
subdirectory ("sync unit") to the same place under the home directory
of a remote host with rsync.

Features:
- Recursive watching of every root
- Debouncing of bursts of changes into one batch of units
- Per-unit .gitignore filtering of change events
- git-aware transfers: ignored files excluded, .git mirrored exactly
"""

from .models import (
    EventKind,
    RawChangeEvent,
    SyncUnit,
    UnitResult,
    BatchResult,
)

from .config import SyncConfig

from .exceptions import (
    WfhError,
    DiscoveryError,
    RemoteHomeError,
    WatchError,
    WatchRegistrationError,
    TransientWatchError,
    WatchChannelClosed,
    SyncUnitError,
    MetadataSyncFailed,
)

from .remote import remote_path_for, remote_getenv, resolve_remote_home
from .unit_resolver import UnitResolver, discover, canonicalize
from .ignore_filter import IgnoreFilter
from .fs_watcher import WatchChannel, FSWatcherPool, FSEventHandler
from .process_runner import ProcessRunner
from .dispatcher import SyncDispatcher
from .debouncer import SyncDebouncer
from .progress import ProgressReporter
from .app import SyncApp


__all__ = [
    # Models
    "EventKind",
    "RawChangeEvent",
    "SyncUnit",
    "UnitResult",
    "BatchResult",
    # Config
    "SyncConfig",
    # Exceptions
    "WfhError",
    "DiscoveryError",
    "RemoteHomeError",
    "WatchError",
    "WatchRegistrationError",
    "TransientWatchError",
    "WatchChannelClosed",
    "SyncUnitError",
    "MetadataSyncFailed",
    # Components
    "remote_path_for",
    "remote_getenv",
    "resolve_remote_home",
    "UnitResolver",
    "discover",
    "canonicalize",
    "IgnoreFilter",
    "WatchChannel",
    "FSWatcherPool",
    "FSEventHandler",
    "ProcessRunner",
    "SyncDispatcher",
    "SyncDebouncer",
    "ProgressReporter",
    # Main
    "SyncApp",
]

__version__ = "0.1.0"
