import json
import os
import threading
from pathlib import Path

import pytest

from filtersync import atomic as atomic_module
from filtersync.atomic import atomic_write
from filtersync.install import STORE_DIRNAME, Contribution, Installer
from filtersync.markers import MARKER_FILENAME


def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "a.filter"
    target.write_bytes(b"old")

    atomic_write(target, b"new")

    assert target.read_bytes() == b"new"
    assert [path.name for path in tmp_path.iterdir()] == ["a.filter"]


def test_failed_replace_keeps_prior_content(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "a.filter"
    target.write_bytes(b"complete old content")

    def torn_replace(src: str | os.PathLike[str], dst: str | os.PathLike[str]) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(atomic_module.os, "replace", torn_replace)

    with pytest.raises(OSError):
        atomic_write(target, b"new content that never lands")

    assert target.read_bytes() == b"complete old content"
    assert [path.name for path in tmp_path.iterdir()] == ["a.filter"]


def test_install_fresh_writes_destination_marker_and_store(game_dir: Path) -> None:
    installer = Installer(game_dir)

    errors = installer.install(
        [Contribution(key="github:a/b", version_id="v1", files={"a.filter": b"alpha"})]
    )

    assert errors == {}
    assert (game_dir / "a.filter").read_bytes() == b"alpha"
    marker = json.loads((game_dir / MARKER_FILENAME).read_text(encoding="utf-8"))
    assert marker["sources"]["github:a/b"] == {"version_id": "v1", "files": ["a.filter"]}
    assert (installer.source_dir("github:a/b") / "a.filter").read_bytes() == b"alpha"
    assert installer.source_dir("github:a/b").is_relative_to(game_dir / STORE_DIRNAME)


def test_marker_survives_a_new_installer(game_dir: Path) -> None:
    Installer(game_dir).install(
        [Contribution(key="github:a/b", version_id="v1", files={"a.filter": b"alpha"})]
    )

    reopened = Installer(game_dir)

    assert reopened.is_current("github:a/b", "v1") is True
    assert reopened.is_current("github:a/b", "v2") is False
    assert reopened.has_installed("github:a/b") is True
    assert reopened.has_installed("github:c/d") is False


def test_shared_destination_is_merged_in_contribution_order(game_dir: Path) -> None:
    installer = Installer(game_dir)

    installer.install(
        [
            Contribution(key="github:z/last", version_id="1", files={"shared.filter": b"1\n"}),
            Contribution(key="github:a/first", version_id="1", files={"shared.filter": b"2\n"}),
        ]
    )

    assert (game_dir / "shared.filter").read_bytes() == b"1\n2\n"


def test_cached_contribution_is_merged_from_store(game_dir: Path) -> None:
    installer = Installer(game_dir)
    installer.install(
        [
            Contribution(key="github:a/b", version_id="v1", files={"shared.filter": b"A"}),
            Contribution(key="github:c/d", version_id="v1", files={"shared.filter": b"C1"}),
        ]
    )

    installer.install(
        [
            Contribution(key="github:a/b", version_id="v1"),
            Contribution(key="github:c/d", version_id="v2", files={"shared.filter": b"C2"}),
        ]
    )

    assert (game_dir / "shared.filter").read_bytes() == b"AC2"
    assert installer.markers.get("github:c/d").version_id == "v2"


def test_failed_source_without_history_is_left_out(game_dir: Path) -> None:
    installer = Installer(game_dir)

    installer.install(
        [
            Contribution(key="github:broken/src"),
            Contribution(key="github:a/b", version_id="v1", files={"shared.filter": b"A"}),
        ]
    )

    assert (game_dir / "shared.filter").read_bytes() == b"A"
    assert installer.markers.get("github:broken/src") is None


def test_unwritable_destination_keeps_marker_unchanged(game_dir: Path) -> None:
    installer = Installer(game_dir)
    installer.install([Contribution(key="github:a/b", version_id="v1", files={"ok.filter": b"1"})])
    (game_dir / "blocked.filter").mkdir()

    errors = installer.install(
        [
            Contribution(
                key="github:a/b",
                version_id="v2",
                files={"ok.filter": b"2", "blocked.filter": b"2"},
            )
        ]
    )

    assert set(errors) == {"github:a/b"}
    assert errors["github:a/b"].code == "E_INSTALL"
    assert Installer(game_dir).markers.get("github:a/b").version_id == "v1"


def test_install_error_only_affects_its_own_source(game_dir: Path) -> None:
    installer = Installer(game_dir)
    (game_dir / "blocked.filter").mkdir()

    errors = installer.install(
        [
            Contribution(key="github:bad/src", version_id="v1", files={"blocked.filter": b"x"}),
            Contribution(key="github:good/src", version_id="v1", files={"good.filter": b"y"}),
        ]
    )

    assert set(errors) == {"github:bad/src"}
    assert (game_dir / "good.filter").read_bytes() == b"y"
    assert installer.markers.get("github:good/src").version_id == "v1"


def test_reused_content_that_cannot_be_written_is_an_error(game_dir: Path) -> None:
    installer = Installer(game_dir)
    installer.install([Contribution(key="github:a/b", version_id="v1", files={"a.filter": b"x"})])
    (game_dir / "a.filter").unlink()
    (game_dir / "a.filter").mkdir()

    errors = installer.install([Contribution(key="github:a/b", version_id="v1")])

    assert set(errors) == {"github:a/b"}
    assert errors["github:a/b"].code == "E_INSTALL"
    assert not installer.has_installed("github:a/b")


def test_unchanged_destination_is_not_rewritten(game_dir: Path) -> None:
    installer = Installer(game_dir)
    installer.install([Contribution(key="github:a/b", version_id="v1", files={"a.filter": b"x"})])
    before = (game_dir / "a.filter").stat().st_mtime_ns

    installer.install([Contribution(key="github:a/b", version_id="v1")])

    assert (game_dir / "a.filter").stat().st_mtime_ns == before


def test_concurrent_reader_never_sees_partial_content(game_dir: Path) -> None:
    installer = Installer(game_dir)
    versions = [bytes([ord("a") + index]) * 256 * 1024 for index in range(6)]
    installer.install(
        [Contribution(key="github:a/b", version_id="0", files={"a.filter": versions[0]})]
    )
    observed: list[bool] = []
    done = threading.Event()

    def reader() -> None:
        while True:
            observed.append((game_dir / "a.filter").read_bytes() in versions)
            if done.is_set():
                return

    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for index, payload in enumerate(versions[1:], start=1):
            contribution = Contribution(
                key="github:a/b", version_id=str(index), files={"a.filter": payload}
            )
            installer.install([contribution])
    finally:
        done.set()
        thread.join()

    assert observed
    assert all(observed)
