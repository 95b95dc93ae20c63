"""Configuration for wfh."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple


ENV_SSH = "WFH_SSH"
ENV_RSYNC = "WFH_RSYNC"
ENV_GIT = "WFH_GIT"
ENV_IDLE_MS = "WFH_IDLE_MS"


@dataclass(frozen=True)
class SyncConfig:
    """
    Immutable configuration shared by every component of a run.

    Attributes:
        host: ssh/rsync host identifier, e.g. ``user@moon``
        roots: Root trees whose immediate subdirectories are synced
        local_home: Home directory prefix on this machine
        remote_home: Home directory prefix on the remote host
        idle_timeout_ms: Quiet period after which pending units are flushed
        ssh_command: Executable used for remote commands
        rsync_command: Executable used for transfers
        git_command: Executable used for version-control queries
        ignore_file_name: Ignore-pattern file consulted at each unit's root
        vcs_dir_name: Version-control metadata directory inside a unit
        rsync_options: Options passed to every transfer
    """
    host: str
    roots: Tuple[Path, ...] = ()
    local_home: str = ""
    remote_home: str = ""
    idle_timeout_ms: int = 500
    ssh_command: str = "ssh"
    rsync_command: str = "rsync"
    git_command: str = "git"
    ignore_file_name: str = ".gitignore"
    vcs_dir_name: str = ".git"
    rsync_options: Tuple[str, ...] = field(default_factory=lambda: ("--archive", "--verbose"))

    def __post_init__(self):
        if not self.host:
            raise ValueError("host must not be empty")
        if self.idle_timeout_ms <= 0:
            raise ValueError(f"idle_timeout_ms must be positive: {self.idle_timeout_ms}")
        roots = tuple(Path(r) for r in self.roots)
        for root in roots:
            if not root.is_absolute():
                raise ValueError(f"root must be absolute: {root}")
        object.__setattr__(self, "roots", roots)
        object.__setattr__(self, "rsync_options", tuple(self.rsync_options))

    @property
    def idle_timeout(self) -> float:
        """Idle timeout in seconds."""
        return self.idle_timeout_ms / 1000.0

    @classmethod
    def from_env(
        cls,
        host: str,
        roots: Sequence[Path],
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "SyncConfig":
        """
        Build a config, taking command names and the idle timeout from the
        environment unless given explicitly.

        Args:
            host: Remote host identifier
            roots: Root trees to watch
            environ: Environment mapping (defaults to os.environ)
            **overrides: Explicit field values, which win over the environment

        Returns:
            A new SyncConfig
        """
        env = os.environ if environ is None else environ
        values = {}
        if env.get(ENV_SSH):
            values["ssh_command"] = env[ENV_SSH]
        if env.get(ENV_RSYNC):
            values["rsync_command"] = env[ENV_RSYNC]
        if env.get(ENV_GIT):
            values["git_command"] = env[ENV_GIT]
        if env.get(ENV_IDLE_MS):
            try:
                values["idle_timeout_ms"] = int(env[ENV_IDLE_MS])
            except ValueError:
                raise ValueError(f"{ENV_IDLE_MS} must be an integer: {env[ENV_IDLE_MS]!r}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(host=host, roots=tuple(roots), **values)

    def with_homes(self, local_home: str, remote_home: str) -> "SyncConfig":
        """Return a copy with the home prefixes filled in."""
        return replace(self, local_home=local_home, remote_home=remote_home)
