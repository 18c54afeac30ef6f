"""Environment-driven settings and game directory discovery."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from filtersync.errors import ConfigError
from filtersync.fetch import DEFAULT_MAX_BYTES
from filtersync.orchestrator import DEFAULT_MAX_WORKERS, MAX_WORKERS_LIMIT

logger = logging.getLogger(__name__)

LOG_ENV = "FILTERSYNC_LOG"
GAME_DIR_ENV = "FILTERSYNC_GAME_DIR"
JOBS_ENV = "FILTERSYNC_JOBS"
MAX_BYTES_ENV = "FILTERSYNC_MAX_BYTES"
TOKEN_ENV = "GITHUB_TOKEN"

DEFAULT_APP_ID = "2694490"
GAME_DIRNAME = "Path of Exile 2"
_PREFIX_DOCUMENTS = Path("pfx/drive_c/users/steamuser/My Documents/My Games")


@dataclass(frozen=True, slots=True)
class Settings:
    log_level: str | None = None
    game_dir: Path | None = None
    github_token: str | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    max_bytes: int = DEFAULT_MAX_BYTES

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        game_dir = env.get(GAME_DIR_ENV)
        return cls(
            log_level=env.get(LOG_ENV) or None,
            game_dir=Path(game_dir).expanduser() if game_dir else None,
            github_token=env.get(TOKEN_ENV) or None,
            max_workers=_clamp_workers(_positive_int(env, JOBS_ENV, DEFAULT_MAX_WORKERS)),
            max_bytes=_positive_int(env, MAX_BYTES_ENV, DEFAULT_MAX_BYTES),
        )


def candidate_prefixes(environ: Mapping[str, str]) -> list[Path]:
    """Steam compatdata prefixes to probe, in priority order, without duplicates."""
    paths: list[Path] = []
    if compat_path := environ.get("STEAM_COMPAT_DATA_PATH"):
        paths.append(Path(compat_path))

    app_id = environ.get("STEAM_COMPAT_APP_ID") or environ.get("SteamGameId") or DEFAULT_APP_ID

    for library in _split_paths(environ.get("STEAM_COMPAT_LIBRARY_PATHS", "")):
        paths.append(library / "compatdata" / app_id)

    if base_path := environ.get("STEAM_BASE_FOLDER"):
        paths.append(Path(base_path) / "steamapps/compatdata" / app_id)

    for data_dir in _split_paths(environ.get("XDG_DATA_DIRS", "")):
        paths.append(data_dir / "Steam/steamapps/compatdata" / app_id)

    if home := environ.get("HOME"):
        paths.append(Path(home) / ".local/share/Steam/steamapps/compatdata" / app_id)

    seen: set[Path] = set()
    unique: list[Path] = []
    for path in paths:
        if path not in seen:
            seen.add(path)
            unique.append(path)
    return unique


def locate_game_directory(environ: Mapping[str, str] | None = None) -> Path:
    """Find (and create) the game's document directory inside a Proton prefix."""
    env = os.environ if environ is None else environ
    checked: list[str] = []
    for prefix in candidate_prefixes(env):
        documents = prefix / _PREFIX_DOCUMENTS
        logger.info("checking %s...", documents)
        checked.append(str(documents))
        if not documents.is_dir():
            continue
        game_dir = documents / GAME_DIRNAME
        logger.info("attempting to create game data directory at %s", game_dir)
        try:
            game_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("failed to create directory: %s", exc)
            continue
        logger.info("found game directory")
        return game_dir

    raise ConfigError(
        "No Steam game directory could be located.",
        hint=f"Set {GAME_DIR_ENV} or pass --game-dir.",
        context={"checked": ", ".join(checked)},
    )


def resolve_game_directory(settings: Settings, environ: Mapping[str, str] | None = None) -> Path:
    if settings.game_dir is not None:
        try:
            settings.game_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(
                "Configured game directory cannot be created.",
                context={"path": str(settings.game_dir), "error": str(exc)},
            ) from exc
        return settings.game_dir
    return locate_game_directory(environ)


def _split_paths(raw: str) -> list[Path]:
    return [Path(item) for item in raw.split(":") if item]


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("ignoring invalid %s=%r", name, raw)
        return default
    if value <= 0:
        logger.warning("ignoring non-positive %s=%r", name, raw)
        return default
    return value


def _clamp_workers(value: int) -> int:
    return max(1, min(value, MAX_WORKERS_LIMIT))


__all__ = [
    "Settings",
    "candidate_prefixes",
    "locate_game_directory",
    "resolve_game_directory",
]
