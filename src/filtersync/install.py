"""Merge fetched filters into the game directory and maintain installed markers."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from filtersync.atomic import atomic_write
from filtersync.errors import InstallError
from filtersync.markers import MARKER_FILENAME, InstalledMarker, MarkerStore

logger = logging.getLogger(__name__)

STORE_DIRNAME = ".filtersync"


@dataclass(frozen=True, slots=True)
class Contribution:
    """One source's share of an install run.

    ``files`` holds freshly fetched content. ``None`` means "reuse what is
    installed for this source", which covers both cache hits and failed
    sources falling back to stale content.
    """

    key: str
    version_id: str | None = None
    files: Mapping[str, bytes] | None = None

    @property
    def fresh(self) -> bool:
        return self.files is not None


class Installer:
    """Atomic installer for one game directory.

    Every source keeps a private copy of its last installed files under
    ``.filtersync/sources``. Destinations shared by several sources are rebuilt
    from those copies (or from fresh content) in contribution order.
    """

    def __init__(self, game_dir: str | Path, *, markers: MarkerStore | None = None) -> None:
        self.game_dir = Path(game_dir)
        self.markers = markers or MarkerStore.open(self.game_dir / MARKER_FILENAME)
        self.store_root = self.game_dir / STORE_DIRNAME / "sources"

    def is_current(self, key: str, version_id: str) -> bool:
        marker = self.markers.get(key)
        if marker is None or marker.version_id != version_id:
            return False
        return self._read_stored(marker) is not None

    def has_installed(self, key: str) -> bool:
        marker = self.markers.get(key)
        if marker is None or self._read_stored(marker) is None:
            return False
        return all((self.game_dir / name).is_file() for name in marker.files)

    def installed_version(self, key: str) -> str | None:
        marker = self.markers.get(key)
        return marker.version_id if marker is not None else None

    def install(self, contributions: Sequence[Contribution]) -> dict[str, InstallError]:
        """Write merged destinations, then record markers for fresh sources.

        Returns the install error of every source with a destination that could
        not be written, whether its content was fresh or reused. Other sources
        are unaffected by those failures.
        """
        errors: dict[str, InstallError] = {}
        merged: dict[str, list[tuple[str, bytes]]] = {}
        pending: dict[str, Contribution] = {}

        for contribution in contributions:
            if contribution.fresh:
                files = dict(contribution.files or {})
                pending[contribution.key] = contribution
            else:
                marker = self.markers.get(contribution.key)
                stored = self._read_stored(marker) if marker is not None else None
                if stored is None:
                    continue
                files = stored
            for name, data in files.items():
                merged.setdefault(name, []).append((contribution.key, data))

        for name, parts in merged.items():
            try:
                self._write_destination(name, b"".join(data for _, data in parts))
            except InstallError as exc:
                logger.warning("could not install %s: %s", name, exc)
                for key, _ in parts:
                    errors.setdefault(key, exc)
                    pending.pop(key, None)

        for key, contribution in list(pending.items()):
            try:
                self._store_source(key, contribution.files or {})
            except InstallError as exc:
                errors[key] = exc
                del pending[key]
                continue
            self.markers.set(
                InstalledMarker(
                    key=key,
                    version_id=contribution.version_id or "",
                    files=tuple(contribution.files or {}),
                )
            )

        if pending:
            try:
                self.markers.save()
            except InstallError as exc:
                for key in pending:
                    errors.setdefault(key, exc)
        return errors

    def source_dir(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        return self.store_root / digest

    def _write_destination(self, name: str, data: bytes) -> None:
        path = self.game_dir / name
        try:
            if path.is_file() and path.read_bytes() == data:
                logger.info("%s is already up to date", path)
                return
            logger.info("writing %s", path)
            atomic_write(path, data)
        except OSError as exc:
            raise InstallError(
                "Could not write filter file.",
                hint="Check free disk space and permissions on the game directory.",
                context={"path": str(path), "error": str(exc)},
            ) from exc

    def _store_source(self, key: str, files: Mapping[str, bytes]) -> None:
        directory = self.source_dir(key)
        try:
            for name, data in files.items():
                atomic_write(directory / name, data)
            for leftover in directory.iterdir():
                if leftover.name not in files:
                    leftover.unlink(missing_ok=True)
        except OSError as exc:
            raise InstallError(
                "Could not record installed source content.",
                context={"source": key, "path": str(directory), "error": str(exc)},
            ) from exc

    def _read_stored(self, marker: InstalledMarker) -> dict[str, bytes] | None:
        directory = self.source_dir(marker.key)
        files: dict[str, bytes] = {}
        for name in marker.files:
            try:
                files[name] = (directory / name).read_bytes()
            except OSError:
                return None
        return files if files else None


__all__ = ["Contribution", "Installer", "STORE_DIRNAME"]
