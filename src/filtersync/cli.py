"""Command-line entry point: sync filters, then exec the wrapped command.

Usage:
    filtersync [--game-dir DIR] [--jobs N] [SOURCE ...] -- COMMAND [ARGS ...]

Sources are builtin names (``cdrg``, ``neversink-lite``, optionally with
``/branch``) or ``github:owner/repo[/branch]``. Everything after ``--`` is
executed unchanged once syncing finishes, whether or not it succeeded.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import NoReturn

import httpx

from filtersync.config import Settings, resolve_game_directory
from filtersync.errors import ConfigError, LaunchFailed, ParseError
from filtersync.fetch import ContentFetcher
from filtersync.github import GitHubResolver, create_client
from filtersync.install import Installer
from filtersync.launcher import LAUNCH_FAILED_EXIT_CODE, launch
from filtersync.logs import configure_logging
from filtersync.models import SourceDescriptor, SyncReport
from filtersync.orchestrator import MAX_WORKERS_LIMIT, SyncOrchestrator, failed_report
from filtersync.sources import parse_sources

logger = logging.getLogger(__name__)

SEPARATOR = "--"
PARSE_ERROR_EXIT_CODE = 2
INTERRUPTED_EXIT_CODE = 130


def split_command_line(argv: Sequence[str]) -> tuple[list[str], list[str]]:
    """Split arguments at the first ``--`` into (filtersync args, wrapped command)."""
    args = list(argv)
    if SEPARATOR not in args:
        raise ParseError(
            "Missing `--` before the wrapped command.",
            hint="Use: filtersync [SOURCE ...] -- COMMAND [ARGS ...]",
        )
    index = args.index(SEPARATOR)
    return args[:index], args[index + 1 :]


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise ParseError(
            f"Invalid arguments: {message}.",
            hint="Use: filtersync [--game-dir DIR] [--jobs N] [SOURCE ...] -- COMMAND [ARGS ...]",
        )


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="filtersync",
        description="Update item filters from GitHub, then run the wrapped command.",
        epilog="Everything after -- is executed unchanged.",
    )
    parser.add_argument("sources", nargs="*", metavar="SOURCE")
    parser.add_argument("--game-dir", type=Path, help="install filters into this directory")
    parser.add_argument("--jobs", type=int, help="number of concurrent downloads (1-8)")
    return parser


def sync(
    descriptors: Sequence[SourceDescriptor],
    *,
    settings: Settings,
    transport: httpx.BaseTransport | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncReport:
    """Resolve, fetch and install every source into the game directory."""
    if not descriptors:
        return SyncReport()
    try:
        game_dir = resolve_game_directory(settings)
    except ConfigError as exc:
        return failed_report(descriptors, exc)

    installer = Installer(game_dir)
    with create_client(token=settings.github_token, transport=transport) as client:
        orchestrator = SyncOrchestrator(
            GitHubResolver(client, sleep=sleep),
            ContentFetcher(client, max_bytes=settings.max_bytes, sleep=sleep),
            installer,
            max_workers=settings.max_workers,
        )
        return orchestrator.run(descriptors)


def main(
    argv: Sequence[str] | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
    sleep: Callable[[float], None] = time.sleep,
    replace_process: bool | None = None,
) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    logger.debug("args are %s", args)

    try:
        own_args, command = split_command_line(args)
        options = build_parser().parse_intermixed_args(own_args)
        descriptors = parse_sources(options.sources)
    except ParseError as exc:
        print(f"filtersync: {exc}", file=sys.stderr)
        return PARSE_ERROR_EXIT_CODE

    if options.game_dir is not None:
        settings = dataclasses.replace(settings, game_dir=options.game_dir.expanduser())
    if options.jobs is not None:
        jobs = max(1, min(options.jobs, MAX_WORKERS_LIMIT))
        settings = dataclasses.replace(settings, max_workers=jobs)

    try:
        with _terminate_as_interrupt():
            report = sync(descriptors, settings=settings, transport=transport, sleep=sleep)
    except KeyboardInterrupt:
        logger.warning("interrupted before launch; nothing was started")
        return INTERRUPTED_EXIT_CODE

    print_release_notes(report)
    if report.hard_failures:
        names = ", ".join(result.descriptor.display for result in report.hard_failures)
        logger.warning("!!! filters could not be installed: %s; starting anyway !!!", names)

    if not command:
        logger.info("nothing to execute provided")
        return 0

    try:
        return launch(command, replace_process=replace_process)
    except LaunchFailed as exc:
        print(f"filtersync: {exc}", file=sys.stderr)
        return LAUNCH_FAILED_EXIT_CODE


def print_release_notes(report: SyncReport) -> None:
    for result in report.fresh:
        print(f"# {result.descriptor.display}: {result.version_id}", file=sys.stderr)
        if result.notes:
            print(result.notes, file=sys.stderr)
        print(file=sys.stderr)


@contextmanager
def _terminate_as_interrupt() -> Iterator[None]:
    """Turn SIGTERM into KeyboardInterrupt so pending downloads are abandoned."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: object) -> None:
        raise KeyboardInterrupt

    previous = signal.signal(signal.SIGTERM, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


__all__ = ["build_parser", "main", "split_command_line", "sync"]
