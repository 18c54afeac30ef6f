"""Stderr logging configured from FILTERSYNC_LOG."""

from __future__ import annotations

import logging
import sys

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def parse_log_level(value: str | None) -> int:
    if not value:
        return logging.WARNING
    text = value.strip().lower()
    if text.isdigit():
        return int(text)
    return _LEVELS.get(text, logging.WARNING)


def configure_logging(value: str | None) -> int:
    level = parse_log_level(value)
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT)
    logging.getLogger("filtersync").setLevel(level)
    # httpx and httpcore are only interesting at trace level.
    library_level = logging.DEBUG if (value or "").strip().lower() == "trace" else logging.WARNING
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(level, library_level))
    return level


__all__ = ["configure_logging", "parse_log_level"]
