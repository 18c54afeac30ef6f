import logging
from pathlib import Path

import pytest

from filtersync.errors import InstallError
from filtersync.markers import InstalledMarker, MarkerStore, parse_markers, serialize_markers


def test_marker_store_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "filter_watermarks.json"
    store = MarkerStore.open(path)
    store.set(InstalledMarker(key="github:a/b", version_id="v3", files=("a.filter",)))
    store.save()

    reopened = MarkerStore.open(path)

    assert reopened.get("github:a/b") == InstalledMarker(
        key="github:a/b", version_id="v3", files=("a.filter",)
    )


def test_serialized_markers_are_stable(tmp_path: Path) -> None:
    markers = {
        "github:b/b": InstalledMarker(key="github:b/b", version_id="2"),
        "github:a/a": InstalledMarker(key="github:a/a", version_id="1", files=("x.filter",)),
    }

    assert serialize_markers(markers) == serialize_markers(dict(reversed(markers.items())))
    assert parse_markers(serialize_markers(markers)) == markers


def test_corrupt_marker_file_starts_from_scratch(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "filter_watermarks.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.ERROR, logger="filtersync.markers"):
        store = MarkerStore.open(path)

    assert store.all() == {}
    assert "starting from scratch" in caplog.text


def test_legacy_flat_marker_format_is_rejected() -> None:
    with pytest.raises(InstallError):
        parse_markers('{"github:a/b": "v1"}')


@pytest.mark.parametrize(
    "raw",
    [
        "[]",
        '{"version": 1, "sources": []}',
        '{"version": 1, "sources": {"k": {"version_id": ""}}}',
        '{"version": 1, "sources": {"k": {"version_id": "v", "files": "a.filter"}}}',
    ],
)
def test_invalid_marker_payloads(raw: str) -> None:
    with pytest.raises(InstallError):
        parse_markers(raw)
