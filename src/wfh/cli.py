#!/usr/bin/env python3
"""
Command line entry point.

Usage:
    wfh user@moon ~/src ~/work
    python -m wfh --idle-ms 1000 -v user@moon ~/src
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional

from dotenv import load_dotenv

from .app import SyncApp
from .config import SyncConfig
from .exceptions import WfhError
from .remote import resolve_remote_home

logger = logging.getLogger("wfh")


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self, on_exit: Callable[[], None]):
        self.should_exit = False
        self.on_exit = on_exit
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True
        self.on_exit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wfh",
        description="synchronize files as you edit",
    )
    parser.add_argument("host", help="Remote host, e.g. user@moon")
    parser.add_argument("dirs", nargs="+", help="Root directories whose subdirectories are synced")
    parser.add_argument("--idle-ms", type=int, default=None,
                        help="Quiet period before changes are synced (default: 500)")
    parser.add_argument("--remote-home", default=None,
                        help="Home directory on the remote host (default: ask the host)")
    parser.add_argument("--ssh", default=None, help="ssh executable")
    parser.add_argument("--rsync", default=None, help="rsync executable")
    parser.add_argument("--git", default=None, help="git executable")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    verbosity.add_argument("-q", "--quiet", action="store_true",
                           help="Log errors only and show per-unit progress")
    return parser


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run wfh; returns the process exit status."""
    load_dotenv()

    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    roots = [Path(os.path.abspath(os.path.expanduser(d))) for d in args.dirs]
    for root in roots:
        if not root.exists():
            logger.error(f"Root path does not exist: {root}")
            return 1
        if not root.is_dir():
            logger.error(f"Root path is not a directory: {root}")
            return 1

    try:
        config = SyncConfig.from_env(
            args.host,
            roots,
            idle_timeout_ms=args.idle_ms,
            ssh_command=args.ssh,
            rsync_command=args.rsync,
            git_command=args.git,
        )
        remote_home = args.remote_home or resolve_remote_home(config.host, config.ssh_command)
        config = config.with_homes(str(Path.home()), remote_home)
        app = SyncApp(config, progress=args.quiet)
    except (WfhError, ValueError) as e:
        logger.error(str(e))
        return 1

    shutdown = GracefulShutdown(app.stop)

    try:
        app.run()
    except WfhError as e:
        logger.error(str(e))
        return 1

    if shutdown.should_exit:
        logger.info("Stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
