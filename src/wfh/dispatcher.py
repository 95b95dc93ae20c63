"""Synchronization of sync units to the remote host."""

import logging
import shlex
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .config import SyncConfig
from .exceptions import MetadataSyncFailed, SyncUnitError
from .models import BatchResult, SyncUnit, UnitResult
from .process_runner import ProcessRunner

logger = logging.getLogger(__name__)


class SyncDispatcher:
    """
    Mirrors sync units to the remote host with rsync.

    For each unit: build a transient exclude list from git (if the unit is
    a repository), create the remote directory, transfer the contents, and
    mirror the repository metadata with deletion enabled.
    """

    def __init__(self, config: SyncConfig, runner: Optional[ProcessRunner] = None):
        """
        Initialize the dispatcher.

        Args:
            config: Run configuration
            runner: Runner for external commands
        """
        self.config = config
        self.runner = runner or ProcessRunner()

    def vcs_dir(self, unit: SyncUnit) -> Path:
        return unit.path / self.config.vcs_dir_name

    def has_vcs(self, unit: SyncUnit) -> bool:
        return self.vcs_dir(unit).is_dir()

    def remote_target(self, remote_path: str) -> str:
        """rsync destination for a remote directory (contents, not the dir)."""
        return f"{self.config.host}:{remote_path.rstrip('/')}/"

    def build_exclude_query(self, unit: SyncUnit) -> List[str]:
        return [
            self.config.git_command, "-C", str(unit.path),
            # Unquoted, so non-ASCII names match as rsync patterns
            "-c", "core.quotePath=false",
            "ls-files", "--exclude-standard", "-oi", "--directory",
        ]

    def build_mkdir_command(self, unit: SyncUnit) -> List[str]:
        return [
            self.config.ssh_command, self.config.host,
            "mkdir", "-p", shlex.quote(unit.remote_path),
        ]

    def build_sync_command(self, unit: SyncUnit, exclude_from: Optional[Path] = None) -> List[str]:
        """
        Build the bulk transfer command for a unit.

        The trailing separator on the source copies the unit's contents
        into the remote directory rather than nesting the directory.
        """
        args = [self.config.rsync_command, *self.config.rsync_options]
        if exclude_from is not None:
            args += ["--exclude-from", str(exclude_from)]
        args.append(f"{unit.path}/")
        args.append(self.remote_target(unit.remote_path))
        return args

    def build_metadata_command(self, unit: SyncUnit) -> List[str]:
        """Build the mirroring transfer of the unit's metadata directory."""
        name = self.config.vcs_dir_name
        return [
            self.config.rsync_command, *self.config.rsync_options, "--delete",
            f"{self.vcs_dir(unit)}/",
            self.remote_target(f"{unit.remote_path.rstrip('/')}/{name}"),
        ]

    @contextmanager
    def exclude_list(self, unit: SyncUnit) -> Iterator[Optional[Path]]:
        """
        Materialize git's ignored-but-present paths as an rsync exclude file.

        Yields None for units that are not repositories. The file is
        removed when the block exits, whether or not it raised.
        """
        if not self.has_vcs(unit):
            yield None
            return

        try:
            tmp = tempfile.NamedTemporaryFile(
                "w", prefix="wfh-exclude-", suffix=".txt", delete=False,
                encoding="utf-8", errors="surrogateescape",
            )
        except OSError as e:
            raise SyncUnitError(f"Cannot create exclude list for {unit}: {e}", unit) from e

        path = Path(tmp.name)
        try:
            with tmp:
                try:
                    code = self.runner.run(
                        self.build_exclude_query(unit),
                        on_stdout=lambda line: tmp.write(line + "\n"),
                    )
                except OSError as e:
                    raise SyncUnitError(f"Cannot query ignored files of {unit}: {e}", unit) from e
            if code != 0:
                logger.warning(f"{self.config.git_command} exited with {code} for {unit}; syncing without excludes")
            yield path
        finally:
            path.unlink(missing_ok=True)

    def _make_remote_dir(self, unit: SyncUnit) -> None:
        """Best effort: a real failure resurfaces in the transfer."""
        try:
            code = self.runner.run(self.build_mkdir_command(unit))
        except OSError as e:
            logger.warning(f"Cannot create {unit.remote_path} on {self.config.host}: {e}")
            return
        if code != 0:
            logger.warning(f"mkdir {unit.remote_path} on {self.config.host} exited with {code}")

    def _transfer(self, unit: SyncUnit, exclude_from: Optional[Path]) -> None:
        try:
            code = self.runner.run(self.build_sync_command(unit, exclude_from))
        except OSError as e:
            raise SyncUnitError(f"Cannot run {self.config.rsync_command} for {unit}: {e}", unit) from e
        if code != 0:
            raise SyncUnitError(f"Transfer of {unit} exited with {code}", unit, code)

    def _transfer_metadata(self, unit: SyncUnit) -> None:
        try:
            code = self.runner.run(self.build_metadata_command(unit))
        except OSError as e:
            raise MetadataSyncFailed(
                f"Cannot run {self.config.rsync_command} for {self.vcs_dir(unit)}: {e}", unit,
            ) from e
        if code != 0:
            raise MetadataSyncFailed(f"Metadata transfer of {unit} exited with {code}", unit, code)

    def sync_one(self, unit: SyncUnit) -> UnitResult:
        """
        Synchronize one unit.

        Args:
            unit: The unit to sync

        Returns:
            The successful result

        Raises:
            SyncUnitError: If the bulk transfer failed
            MetadataSyncFailed: If the metadata transfer failed
        """
        started = time.time()
        logger.info(f"sync {unit} -> {self.remote_target(unit.remote_path)}")

        with self.exclude_list(unit) as exclude_from:
            self._make_remote_dir(unit)
            self._transfer(unit, exclude_from)

        if self.has_vcs(unit):
            self._transfer_metadata(unit)

        return UnitResult(unit=unit, duration=time.time() - started)

    def sync_all(self, units: Iterable[SyncUnit]) -> BatchResult:
        """
        Synchronize a batch of units.

        Every unit is attempted even if an earlier one fails; failures are
        collected in the returned result.

        Args:
            units: Units to sync, in any order

        Returns:
            Per-unit results ordered by unit path
        """
        batch = BatchResult()

        for unit in sorted(units, key=lambda u: str(u.path)):
            started = time.time()
            try:
                result = self.sync_one(unit)
            except MetadataSyncFailed as e:
                logger.error(f"Metadata sync failed for {unit}: {e}")
                result = UnitResult(unit=unit, error=e, duration=time.time() - started)
            except SyncUnitError as e:
                logger.error(f"Sync failed for {unit}: {e}")
                result = UnitResult(unit=unit, error=e, duration=time.time() - started)
            batch.results.append(result)

        if batch.ok:
            logger.info(f"Synced {len(batch)} unit(s)")
        else:
            logger.error(f"{len(batch.failed)} of {len(batch)} unit(s) failed to sync")
        return batch
