"""Tests for the dated event store scanner."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from conftest import make_event
from motion_archive.store import EventStore, iter_days, normalise_day_path

UTC = timezone.utc


def _window(first: str, last: str) -> tuple[datetime, datetime]:
    start = datetime.fromisoformat(first).replace(tzinfo=UTC)
    end = datetime.fromisoformat(last).replace(tzinfo=UTC)
    return start, end


def test_iter_days_is_inclusive() -> None:
    days = list(iter_days(date(2024, 2, 28), date(2024, 3, 1)))
    assert days == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
    assert list(iter_days(date(2024, 3, 2), date(2024, 3, 1))) == []


def test_scan_reads_every_day_in_window(write_event, media_root: Path) -> None:
    write_event("2024-03-01", "a.json", make_event("a", "2024-03-01T23:00:00Z"))
    write_event("2024-03-02", "b.json", make_event("b", "2024-03-02T01:00:00Z"))
    write_event("2024-03-04", "c.json", make_event("c", "2024-03-04T01:00:00Z"))

    store = EventStore(media_root)
    records = store.scan(*_window("2024-03-01T22:00:00", "2024-03-02T09:00:00"))
    assert sorted(record.id for record in records) == ["a", "b"]

    # The end day is included even when its time of day precedes the start's.
    records = store.scan(*_window("2024-03-01T12:00:00", "2024-03-04T06:00:00"))
    assert sorted(record.id for record in records) == ["a", "b", "c"]


def test_scan_without_matching_days_returns_empty_list(write_event, media_root: Path) -> None:
    write_event("2024-03-01", "a.json", make_event("a", "2024-03-01T10:00:00Z"))
    store = EventStore(media_root)
    assert store.scan(*_window("2024-05-01T00:00:00", "2024-05-03T00:00:00")) == []


def test_scan_missing_root_returns_empty_list(tmp_path: Path) -> None:
    store = EventStore(tmp_path / "missing")
    assert store.scan(*_window("2024-03-01T00:00:00", "2024-03-02T00:00:00")) == []


def test_scan_reversed_window_is_empty(write_event, media_root: Path) -> None:
    write_event("2024-03-01", "a.json", make_event("a", "2024-03-01T10:00:00Z"))
    store = EventStore(media_root)
    assert store.scan(*_window("2024-03-02T00:00:00", "2024-03-01T00:00:00")) == []


def test_invalid_metadata_is_skipped(
    write_event, media_root: Path, caplog: pytest.LogCaptureFixture
) -> None:
    write_event("2024-03-01", "a.json", make_event("a", "2024-03-01T10:00:00Z"))
    write_event("2024-03-01", "b.json", "{not json")
    write_event("2024-03-01", "c.json", '{"Objects": "car"}')
    write_event("2024-03-01", "d.json", make_event("d", "2024-03-01T11:00:00Z"))

    store = EventStore(media_root)
    with caplog.at_level(logging.ERROR, logger="motion_archive.store"):
        records = store.scan(*_window("2024-03-01T00:00:00", "2024-03-01T23:59:59"))

    assert [record.id for record in records] == ["a", "d"]
    assert "b.json" in caplog.text
    assert "c.json" in caplog.text


def test_only_top_level_json_files_are_read(write_event, media_root: Path) -> None:
    write_event("2024-03-01", "a.json", make_event("a", "2024-03-01T10:00:00Z"))
    write_event("2024-03-01", "notes.txt", make_event("txt", "2024-03-01T10:00:00Z"))
    write_event("2024-03-01", ".hidden.json", make_event("hidden", "2024-03-01T10:00:00Z"))
    write_event("2024-03-01/nested", "n.json", make_event("nested", "2024-03-01T10:00:00Z"))
    (media_root / "2024-03-01" / "dir.json").mkdir()

    store = EventStore(media_root)
    records = store.scan(*_window("2024-03-01T00:00:00", "2024-03-01T23:59:59"))
    assert [record.id for record in records] == ["a"]


def test_day_path_that_is_a_file_is_skipped(media_root: Path) -> None:
    (media_root / "2024-03-01").write_text("oops", encoding="utf-8")
    store = EventStore(media_root)
    assert store.scan(*_window("2024-03-01T00:00:00", "2024-03-01T23:59:59")) == []


def test_media_paths_are_prefixed_with_day(write_event, media_root: Path) -> None:
    write_event(
        "2024-03-01",
        "a.json",
        make_event(
            "a",
            "2024-03-01T10:00:00Z",
            video="clip-a.ts",
            snapshots=("snap-1.jpg", "2024-03-01/snap-2.jpg"),
        ),
    )
    store = EventStore(media_root)
    (record,) = store.scan(*_window("2024-03-01T00:00:00", "2024-03-01T23:59:59"))

    assert record.video_file == "2024-03-01/clip-a.ts"
    assert record.snapshots == ["2024-03-01/snap-1.jpg", "2024-03-01/snap-2.jpg"]


def test_transcoded_mp4_replaces_recorded_extension(write_event, media_root: Path) -> None:
    write_event("2024-03-01", "a.json", make_event("a", "2024-03-01T10:00:00Z", video="clip-a.ts"))
    write_event("2024-03-01", "b.json", make_event("b", "2024-03-01T11:00:00Z", video="2024-03-01/clip-b.ts"))
    day = media_root / "2024-03-01"
    (day / "clip-a.ts").write_bytes(b"ts")
    (day / "clip-b.ts").write_bytes(b"ts")
    (day / "clip-b.mp4").write_bytes(b"mp4")

    store = EventStore(media_root)
    records = {
        record.id: record
        for record in store.scan(*_window("2024-03-01T00:00:00", "2024-03-01T23:59:59"))
    }
    assert records["a"].video_file == "2024-03-01/clip-a.ts"
    assert records["b"].video_file == "2024-03-01/clip-b.mp4"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("clip.ts", "2024-03-01/clip.ts"),
        ("./clip.ts", "2024-03-01/clip.ts"),
        ("2024-03-01/clip.ts", "2024-03-01/clip.ts"),
        ("sub/clip.ts", "2024-03-01/sub/clip.ts"),
        ("2024-03-01\\clip.ts", "2024-03-01/clip.ts"),
        ("/elsewhere/clip.ts", "2024-03-01/clip.ts"),
        ("", ""),
    ],
)
def test_normalise_day_path(tmp_path: Path, value: str, expected: str) -> None:
    assert normalise_day_path(tmp_path, "2024-03-01", value) == expected


def test_normalise_day_path_keeps_absolute_paths_under_root(tmp_path: Path) -> None:
    absolute = (tmp_path / "2024-03-01" / "clip.ts").as_posix()
    assert normalise_day_path(tmp_path, "2024-03-01", absolute) == "2024-03-01/clip.ts"


def test_naive_window_uses_local_time(write_event, media_root: Path) -> None:
    local_now = datetime.now().astimezone()
    day = local_now.strftime("%Y-%m-%d")
    stamp = local_now.replace(hour=12, minute=0, second=0, microsecond=0).isoformat()
    write_event(day, "a.json", make_event("a", stamp))

    store = EventStore(media_root)
    naive_start = datetime.combine(local_now.date(), datetime.min.time())
    records = store.scan(naive_start, naive_start + timedelta(hours=23))
    assert [record.id for record in records] == ["a"]
