"""Custom exceptions for the wfh package."""

from typing import Optional


class WfhError(Exception):
    """Base exception for all wfh errors."""
    pass


class DiscoveryError(WfhError):
    """A root tree could not be listed at startup."""
    pass


class RemoteHomeError(WfhError):
    """The remote home directory could not be determined."""
    pass


class WatchError(WfhError):
    """Error related to the filesystem watch subsystem."""
    pass


class WatchRegistrationError(WatchError):
    """A root tree could not be registered for watching."""
    pass


class TransientWatchError(WatchError):
    """A recoverable error reported by the watch subsystem."""
    pass


class WatchChannelClosed(WatchError):
    """The watch subsystem has permanently stopped delivering events."""
    pass


class SyncUnitError(WfhError):
    """Synchronizing a single unit failed."""
    def __init__(self, message: str, unit=None, returncode: Optional[int] = None):
        super().__init__(message)
        self.unit = unit
        self.returncode = returncode


class MetadataSyncFailed(SyncUnitError):
    """The version-control metadata transfer of a unit failed."""
    pass
