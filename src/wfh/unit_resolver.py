"""Discovery of sync units and mapping of changed paths onto them."""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from .config import SyncConfig
from .exceptions import DiscoveryError
from .models import SyncUnit
from .remote import remote_path_for

logger = logging.getLogger(__name__)


def canonicalize(path: Union[str, Path]) -> Path:
    """
    Resolve symlinks in a path.

    A path that no longer exists (or cannot be resolved) is returned as an
    absolute, unresolved path instead.
    """
    path = Path(path)
    try:
        return path.resolve(strict=True)
    except (FileNotFoundError, NotADirectoryError):
        return Path(os.path.abspath(path))
    except (OSError, RuntimeError) as e:
        logger.debug(f"Cannot canonicalize {path}: {e}")
        return Path(os.path.abspath(path))


def discover(
    roots: Iterable[Path],
    local_home: str = "",
    remote_home: str = "",
) -> List[SyncUnit]:
    """
    List the immediate subdirectories of each root tree.

    Symlinks and plain files directly under a root are not units.

    Args:
        roots: Root trees to scan
        local_home: Home prefix on this machine
        remote_home: Home prefix on the remote host

    Returns:
        Sync units ordered by root, then by name

    Raises:
        DiscoveryError: If a root cannot be read
    """
    units: List[SyncUnit] = []
    seen = set()

    for root in roots:
        root = Path(os.path.abspath(root))
        try:
            with os.scandir(root) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise DiscoveryError(f"Cannot read root {root}: {e}") from e

        for entry in entries:
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False
            if not is_dir:
                continue

            path = root / entry.name
            if path in seen:
                continue
            seen.add(path)
            units.append(SyncUnit(
                path=path,
                root=root,
                remote_path=remote_path_for(path, local_home, remote_home),
            ))

        logger.debug(f"Discovered units under {root}: {[u.name for u in units if u.root == root]}")

    return units


class UnitResolver:
    """
    Fixed set of sync units with lookup of the unit owning a path.

    The unit set never changes after construction; directories created
    under a root later are not picked up.
    """

    def __init__(self, units: Iterable[SyncUnit]):
        """
        Initialize the resolver.

        Args:
            units: The units discovered at startup
        """
        self._units: Tuple[SyncUnit, ...] = tuple(units)
        canonical = [(canonicalize(unit.path), unit) for unit in self._units]
        # Deepest first, so nested roots resolve to the most specific unit
        canonical.sort(key=lambda item: len(item[0].parts), reverse=True)
        self._canonical: Tuple[Tuple[Path, SyncUnit], ...] = tuple(canonical)

    @classmethod
    def from_config(cls, config: SyncConfig) -> "UnitResolver":
        """Discover the units of every configured root."""
        units = discover(config.roots, config.local_home, config.remote_home)
        logger.info(f"Discovered {len(units)} unit(s) under {len(config.roots)} root(s)")
        return cls(units)

    @property
    def units(self) -> Tuple[SyncUnit, ...]:
        return self._units

    def resolve(self, changed_path: Union[str, Path]) -> Optional[SyncUnit]:
        """
        Find the unit that contains the given path.

        Both sides are compared component by component after resolving
        symlinks, so ``/root/abc`` does not own ``/root/abcdef/file``.

        Args:
            changed_path: Path reported by the watch subsystem

        Returns:
            The owning unit, or None if the path is outside every unit
        """
        path = canonicalize(changed_path)

        for unit_path, unit in self._canonical:
            try:
                path.relative_to(unit_path)
                return unit
            except ValueError:
                continue
        return None

    def __len__(self) -> int:
        return len(self._units)

    def __iter__(self):
        return iter(self._units)

    def __contains__(self, unit: SyncUnit) -> bool:
        return unit in self._units
