"""Terminal display of which units are waiting to be synced."""

import shutil
import sys
from typing import FrozenSet, IO, Iterable, Optional

from .models import SyncUnit

CSI = "\x1b["


class ProgressReporter:
    """
    Redraws one status line per unit in place.

    Each line reads ``[sync] <path>`` while the unit is pending and
    ``[    ] <path>`` otherwise. After drawing, the cursor is moved back to
    the first line so the next render overwrites the block.
    """

    def __init__(
        self,
        units: Iterable[SyncUnit],
        stream: Optional[IO[str]] = None,
        width: Optional[int] = None,
    ):
        self.units = tuple(units)
        self.stream = stream or sys.stdout
        self.width = width

    def _columns(self) -> int:
        if self.width is not None:
            return self.width
        return shutil.get_terminal_size().columns

    def format_lines(self, pending: FrozenSet[SyncUnit]):
        columns = self._columns()
        lines = []
        for unit in self.units:
            status = "sync" if unit in pending else "    "
            line = f"[{status}] {unit.path}"
            if columns > 1 and len(line) >= columns:
                line = line[:columns - 1]
            lines.append(line)
        return lines

    def render(self, pending: FrozenSet[SyncUnit]) -> None:
        """Draw the block for the given pending snapshot."""
        if not self.units:
            return
        for line in self.format_lines(pending):
            self.stream.write(f"{CSI}2K{line}\n")
        self.stream.write(f"{CSI}{len(self.units)}F")
        self.stream.flush()

    def finish(self) -> None:
        """Move the cursor below the block."""
        if self.units:
            self.stream.write("\n" * len(self.units))
            self.stream.flush()

    __call__ = render
