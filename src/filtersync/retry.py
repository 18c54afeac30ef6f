"""Bounded exponential backoff for transient failures."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from filtersync.errors import FilterSyncError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.5
DEFAULT_MAX_DELAY = 4.0


def call_with_retries(
    operation: Callable[[], T],
    *,
    description: str,
    attempts: int = DEFAULT_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying only errors flagged as transient.

    Permanent errors and the last transient error propagate unchanged.
    """
    attempt = 1
    while True:
        try:
            return operation()
        except FilterSyncError as exc:
            if not exc.transient or attempt >= attempts:
                raise
            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            logger.info(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                description,
                attempt,
                attempts,
                delay,
                exc.args[0] if exc.args else exc,
            )
            sleep(delay)
            attempt += 1


__all__ = ["DEFAULT_ATTEMPTS", "call_with_retries"]
