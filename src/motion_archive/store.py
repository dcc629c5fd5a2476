"""Filesystem scanner for the date-sharded event metadata store."""
from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import Iterator

from .events import EventDecodeError, EventRecord
from .media import resolve_relative_media

logger = logging.getLogger(__name__)

DAY_FORMAT = "%Y-%m-%d"
METADATA_SUFFIX = ".json"


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every calendar day from ``start`` to ``end`` inclusive."""

    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def _localise(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.astimezone()


def normalise_day_path(root: Path, day_name: str, value: str) -> str:
    """Return ``value`` as a path relative to the media root.

    Recorders write either bare file names or paths that already start with
    the day folder; both end up as ``<day>/<file>``.
    """

    if not value:
        return value
    text = value.replace("\\", "/")
    path = PurePosixPath(text)
    if path.is_absolute():
        try:
            return Path(text).relative_to(root).as_posix()
        except ValueError:
            return (PurePosixPath(day_name) / path.name).as_posix()
    parts = [part for part in path.parts if part not in ("", ".")]
    if parts and parts[0] == day_name:
        return PurePosixPath(*parts).as_posix()
    return PurePosixPath(day_name, *parts).as_posix()


class EventStore:
    """Reads event records for a time window from ``root/<YYYY-MM-DD>/*.json``."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def day_directory(self, day: date) -> Path:
        return self._root / day.strftime(DAY_FORMAT)

    def scan(self, start: datetime, end: datetime) -> list[EventRecord]:
        """Return every decodable record stored in a day folder of the window."""

        start = _localise(start)
        end = _localise(end)
        if start > end:
            return []
        if not self._root.is_dir():
            logger.warning("Media root %s does not exist", self._root)
            return []
        end_day = end.astimezone(start.tzinfo).date()
        records: list[EventRecord] = []
        for day in iter_days(start.date(), end_day):
            records.extend(self.load_day(day))
        return records

    def load_day(self, day: date) -> list[EventRecord]:
        folder = self.day_directory(day)
        try:
            entries = sorted(folder.iterdir(), key=lambda item: item.name)
        except FileNotFoundError:
            return []
        except NotADirectoryError:
            logger.warning("Skipping %s: not a directory", folder)
            return []
        except OSError as exc:
            logger.error("Unable to list day folder %s: %s", folder, exc)
            return []

        records: list[EventRecord] = []
        for path in entries:
            if not self._is_metadata_file(path):
                continue
            record = self.load_file(path, folder.name)
            if record is not None:
                records.append(record)
        logger.debug("Loaded %d events from %s", len(records), folder)
        return records

    def load_file(self, path: Path, day_name: str) -> EventRecord | None:
        """Decode one metadata file, returning ``None`` when it is unusable."""

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            record = EventRecord.from_dict(payload)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Unable to read event metadata %s: %s", path, exc)
            return None
        except (json.JSONDecodeError, EventDecodeError) as exc:
            logger.error("Invalid event metadata in %s: %s", path, exc)
            return None

        record.snapshots = [
            normalise_day_path(self._root, day_name, item) for item in record.snapshots
        ]
        video_file = normalise_day_path(self._root, day_name, record.video_file)
        record.video_file = resolve_relative_media(self._root, video_file)
        return record

    @staticmethod
    def _is_metadata_file(path: Path) -> bool:
        if path.name.startswith("."):
            return False
        if path.suffix.lower() != METADATA_SUFFIX:
            return False
        try:
            return path.is_file()
        except OSError:
            return False


__all__ = ["DAY_FORMAT", "EventStore", "iter_days", "normalise_day_path"]
