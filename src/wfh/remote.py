"""Remote host helpers: home-prefix substitution and environment lookup."""

import logging
from pathlib import Path
from typing import List, Optional, Union

from .exceptions import RemoteHomeError
from .process_runner import ProcessRunner

logger = logging.getLogger(__name__)


def remote_path_for(local_path: Union[str, Path], local_home: str, remote_home: str) -> str:
    """
    Map a local path onto the remote host by swapping the home prefix.

    ``/home/alice/project`` with local home ``/home/alice`` and remote home
    ``/home/alice-on-moon`` becomes ``/home/alice-on-moon/project``. Paths
    outside the local home are returned unchanged.

    Args:
        local_path: Absolute local path
        local_home: Home directory on this machine
        remote_home: Home directory on the remote host

    Returns:
        The remote path as a string
    """
    path = str(local_path)
    home = local_home.rstrip("/")
    if not home:
        return path
    if path == home:
        return remote_home
    if path.startswith(home + "/"):
        return remote_home.rstrip("/") + path[len(home):]
    return path


def remote_getenv(
    host: str,
    key: str,
    ssh_command: str = "ssh",
    runner: Optional[ProcessRunner] = None,
) -> str:
    """
    Read an environment variable on the remote host.

    Runs ``ssh HOST echo -n $KEY`` and returns its standard output. The
    remote side's standard error is forwarded to the log.

    Raises:
        RemoteHomeError: If ssh cannot be run or exits non-zero
    """
    runner = runner or ProcessRunner()
    lines: List[str] = []
    try:
        code = runner.run([ssh_command, host, "echo", "-n", f"${key}"], on_stdout=lines.append)
    except OSError as e:
        raise RemoteHomeError(f"Cannot run {ssh_command}: {e}") from e

    if code != 0:
        raise RemoteHomeError(f"{ssh_command} {host} exited with {code}")
    return "\n".join(lines)


def resolve_remote_home(
    host: str,
    ssh_command: str = "ssh",
    runner: Optional[ProcessRunner] = None,
) -> str:
    """Return ``$HOME`` of the remote host."""
    home = remote_getenv(host, "HOME", ssh_command, runner).strip()
    if not home:
        raise RemoteHomeError(f"Remote $HOME is empty on {host}")
    logger.info(f"Remote home on {host}: {home}")
    return home
