"""Spawning of external tools with their output forwarded to the log."""

import logging
import subprocess
import threading
from typing import Callable, IO, List, Optional, Sequence

logger = logging.getLogger(__name__)

LineCallback = Callable[[str], None]


def _log_stdout(line: str) -> None:
    logger.debug(f"out: {line}")


def _log_stderr(line: str) -> None:
    logger.error(f"err: {line}")


class _StreamDrainer(threading.Thread):
    """Reads a child's pipe line by line until EOF."""

    def __init__(self, stream: IO[str], callback: LineCallback, name: str):
        super().__init__(name=name, daemon=True)
        self.stream = stream
        self.callback = callback
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            for line in self.stream:
                if self.error is not None:
                    # Keep reading so the child never blocks on a full pipe
                    continue
                try:
                    self.callback(line.rstrip("\r\n"))
                except Exception as e:
                    self.error = e
        finally:
            self.stream.close()


class ProcessRunner:
    """
    Runs external commands to completion.

    Standard output and standard error are drained by two short-lived
    threads while the caller waits for the exit status, so a chatty child
    can never fill a pipe and stall. There is no timeout: a hung child
    blocks the caller.
    """

    def run(
        self,
        args: Sequence[str],
        on_stdout: Optional[LineCallback] = None,
        on_stderr: Optional[LineCallback] = None,
    ) -> int:
        """
        Run a command and wait for it.

        Args:
            args: Command line
            on_stdout: Called for each stdout line (default: debug log)
            on_stderr: Called for each stderr line (default: error log)

        Returns:
            The exit status of the command

        Raises:
            OSError: If the command cannot be spawned
            Exception: Whatever a line callback raised, after the child exits
        """
        args = [str(a) for a in args]
        logger.debug(f"spawn {args}")

        proc = subprocess.Popen(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
        )

        drainers: List[_StreamDrainer] = [
            _StreamDrainer(proc.stdout, on_stdout or _log_stdout, f"{args[0]}-stdout"),
            _StreamDrainer(proc.stderr, on_stderr or _log_stderr, f"{args[0]}-stderr"),
        ]
        for drainer in drainers:
            drainer.start()

        returncode = proc.wait()
        for drainer in drainers:
            drainer.join()

        logger.debug(f"{args[0]} exited with {returncode}")

        for drainer in drainers:
            if drainer.error is not None:
                raise drainer.error
        return returncode
