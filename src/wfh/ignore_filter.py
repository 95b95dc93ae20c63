"""Per-unit ignore rules built from the unit's ignore-pattern file."""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from pathspec import GitIgnoreSpec

from .models import SyncUnit
from .unit_resolver import canonicalize

logger = logging.getLogger(__name__)


class IgnoreFilter:
    """
    Answers whether a changed path is ignored by its unit's ignore file.

    Only the ignore file at the unit root is consulted; nested ignore files
    further down the tree are not. Compiled rules are cached per unit and
    rebuilt whenever the file's mtime or size changes, so an edited ignore
    file takes effect on the next lookup.
    """

    def __init__(self, ignore_file_name: str = ".gitignore"):
        """
        Initialize the filter.

        Args:
            ignore_file_name: Name of the ignore file at each unit's root
        """
        self.ignore_file_name = ignore_file_name
        self._specs: Dict[Path, Tuple[Tuple[int, int], GitIgnoreSpec]] = {}
        self._lock = threading.Lock()

    def ignore_file(self, unit: SyncUnit) -> Path:
        return unit.path / self.ignore_file_name

    def _spec_for(self, unit: SyncUnit) -> Optional[GitIgnoreSpec]:
        """Load (or reuse) the compiled rules for a unit."""
        ignore_path = self.ignore_file(unit)

        try:
            st = ignore_path.stat()
        except OSError:
            with self._lock:
                self._specs.pop(unit.path, None)
            return None

        key = (st.st_mtime_ns, st.st_size)
        with self._lock:
            cached = self._specs.get(unit.path)
            if cached is not None and cached[0] == key:
                return cached[1]

        try:
            lines = ignore_path.read_text(errors="replace").splitlines()
        except OSError as e:
            logger.warning(f"Cannot read {ignore_path}: {e}")
            return None

        spec = GitIgnoreSpec.from_lines(lines)
        with self._lock:
            self._specs[unit.path] = (key, spec)
        logger.debug(f"Loaded {len(lines)} ignore line(s) from {ignore_path}")
        return spec

    def _relative(self, unit: SyncUnit, path: Path) -> Optional[Path]:
        try:
            return path.relative_to(unit.path)
        except ValueError:
            pass
        try:
            return canonicalize(path).relative_to(canonicalize(unit.path))
        except ValueError:
            return None

    def is_ignored(
        self,
        unit: SyncUnit,
        path: Union[str, Path],
        is_directory: Optional[bool] = None,
    ) -> bool:
        """
        Check a path and each of its parent directories against the unit's
        ignore file.

        Args:
            unit: The unit owning the path
            path: Absolute path of the changed file or directory
            is_directory: Whether the path is a directory; probed if None

        Returns:
            True if the path or one of its parents is ignored
        """
        spec = self._spec_for(unit)
        if spec is None:
            return False

        path = Path(path)
        rel = self._relative(unit, path)
        if rel is None or not rel.parts:
            return False

        parts = rel.parts
        for i in range(1, len(parts)):
            parent = "/".join(parts[:i]) + "/"
            if spec.match_file(parent):
                logger.debug(f"ignore {path} due to {self.ignore_file(unit)} ({parent})")
                return True

        if is_directory is None:
            is_directory = path.is_dir()
        candidate = "/".join(parts) + ("/" if is_directory else "")
        if spec.match_file(candidate):
            logger.debug(f"ignore {path} due to {self.ignore_file(unit)}")
            return True
        return False

    def clear(self) -> None:
        """Drop all cached rules."""
        with self._lock:
            self._specs.clear()
