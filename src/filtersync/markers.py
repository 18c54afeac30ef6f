"""Installed marker store: the last installed version of every source."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from filtersync.atomic import atomic_write
from filtersync.errors import InstallError

logger = logging.getLogger(__name__)

MARKER_FILENAME = "filter_watermarks.json"
MARKER_FORMAT_VERSION = 1


@dataclass(frozen=True, slots=True)
class InstalledMarker:
    key: str
    version_id: str
    files: tuple[str, ...] = ()


def serialize_markers(markers: Mapping[str, InstalledMarker]) -> str:
    payload = {
        "version": MARKER_FORMAT_VERSION,
        "sources": {
            key: {"version_id": marker.version_id, "files": list(marker.files)}
            for key, marker in markers.items()
        },
    }
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"


def parse_markers(raw: str) -> dict[str, InstalledMarker]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InstallError("Invalid marker JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise InstallError("Invalid marker payload type.")
    if payload.get("version") != MARKER_FORMAT_VERSION:
        raise InstallError(
            "Unsupported marker format version.",
            context={"version": str(payload.get("version"))},
        )
    sources = payload.get("sources")
    if not isinstance(sources, dict):
        raise InstallError("Invalid marker `sources` value.")
    return {key: _parse_marker(key, item) for key, item in sources.items()}


class MarkerStore:
    """JSON-backed marker store written with the same atomic discipline as filters."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._markers: dict[str, InstalledMarker] = {}

    @classmethod
    def open(cls, path: str | Path) -> MarkerStore:
        store = cls(path)
        store.load()
        return store

    def load(self) -> dict[str, InstalledMarker]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            self._markers = {}
            return {}
        except OSError as exc:
            logger.error("could not read %s, starting from scratch: %s", self.path, exc)
            self._markers = {}
            return {}
        try:
            self._markers = parse_markers(raw)
        except InstallError as exc:
            logger.error("could not read existing markers, starting from scratch: %s", exc)
            self._markers = {}
        return dict(self._markers)

    def get(self, key: str) -> InstalledMarker | None:
        return self._markers.get(key)

    def set(self, marker: InstalledMarker) -> None:
        self._markers[marker.key] = marker

    def all(self) -> dict[str, InstalledMarker]:
        return dict(self._markers)

    def save(self) -> Path:
        try:
            return atomic_write(self.path, serialize_markers(self._markers).encode("utf-8"))
        except OSError as exc:
            raise InstallError(
                "Could not write marker store.",
                context={"path": str(self.path), "error": str(exc)},
            ) from exc


def _parse_marker(key: Any, item: Any) -> InstalledMarker:
    if not isinstance(key, str) or not key or not isinstance(item, dict):
        raise InstallError("Invalid marker entry.")
    version_id = item.get("version_id")
    if not isinstance(version_id, str) or not version_id:
        raise InstallError("Invalid marker `version_id` value.", context={"source": key})
    files = item.get("files", [])
    if not isinstance(files, list) or not all(isinstance(name, str) for name in files):
        raise InstallError("Invalid marker `files` value.", context={"source": key})
    return InstalledMarker(key=key, version_id=version_id, files=tuple(files))


__all__ = [
    "InstalledMarker",
    "MARKER_FILENAME",
    "MarkerStore",
    "parse_markers",
    "serialize_markers",
]
