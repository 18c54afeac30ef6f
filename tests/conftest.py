"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import httpx
import pytest
from fake_github import FakeGitHub

from filtersync.fetch import ContentFetcher
from filtersync.github import GitHubResolver, create_client
from filtersync.install import Installer
from filtersync.orchestrator import SyncOrchestrator


def _skip_sleep(_: float) -> None:
    return None


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    return _skip_sleep


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def client(github: FakeGitHub) -> Iterator[httpx.Client]:
    with create_client(transport=github.transport()) as http_client:
        yield http_client


@pytest.fixture
def game_dir(tmp_path: Path) -> Path:
    path = tmp_path / "My Games" / "Path of Exile 2"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def make_orchestrator(
    client: httpx.Client, game_dir: Path, no_sleep: Callable[[float], None]
):
    def _build(*, max_workers: int = 4, max_bytes: int = 1024 * 1024) -> SyncOrchestrator:
        return SyncOrchestrator(
            GitHubResolver(client, sleep=no_sleep),
            ContentFetcher(client, max_bytes=max_bytes, sleep=no_sleep),
            Installer(game_dir),
            max_workers=max_workers,
        )

    return _build
