"""Hand the process over to the wrapped command."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from collections.abc import Sequence

from filtersync.errors import LaunchFailed

logger = logging.getLogger(__name__)

LAUNCH_FAILED_EXIT_CODE = 127


def launch(command: Sequence[str], *, replace_process: bool | None = None) -> int:
    """Run ``command`` with inherited stdio and return its exit code.

    On POSIX the current process image is replaced by default, so this only
    returns when exec fails. Elsewhere the command is spawned and awaited.
    A child killed by a signal maps to ``128 + signal``.
    """
    if not command:
        raise LaunchFailed("No command to launch.")
    if replace_process is None:
        replace_process = os.name == "posix"

    argv = list(command)
    logger.info("starting %s", argv)
    if replace_process:
        _flush_streams()
        try:
            os.execvp(argv[0], argv)
        except OSError as exc:
            raise _launch_failed(argv, exc) from exc

    try:
        completed = subprocess.run(argv, check=False)
    except OSError as exc:
        raise _launch_failed(argv, exc) from exc
    if completed.returncode < 0:
        return 128 - completed.returncode
    return completed.returncode


def _launch_failed(argv: list[str], exc: OSError) -> LaunchFailed:
    return LaunchFailed(
        f"Could not start `{argv[0]}`.",
        hint="Check that the wrapped command exists and is executable.",
        context={"command": " ".join(argv), "error": exc.strerror or str(exc)},
    )


def _flush_streams() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()
    sys.stdout.flush()
    sys.stderr.flush()


__all__ = ["LAUNCH_FAILED_EXIT_CODE", "launch"]
