"""Time window and keyword filtering over scanned event records."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, time
from typing import Iterable, Sequence

from .events import EventRecord
from .store import EventStore

logger = logging.getLogger(__name__)

IRREGULAR_PLURALS: dict[str, str] = {
    "people": "person",
    "mice": "mouse",
    "men": "man",
    "women": "woman",
    "feet": "foot",
    "teeth": "tooth",
    "children": "child",
    "geese": "goose",
}

# Words of this length or shorter keep their trailing "s".
MIN_SINGULAR_LENGTH = 2

_WINDOW_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
)


def singularize(word: str) -> str:
    """Return a lower-cased singular form of ``word``.

    Heuristic only: ``bus`` becomes ``bu``.
    """

    lowered = word.strip().lower()
    irregular = IRREGULAR_PLURALS.get(lowered)
    if irregular is not None:
        return irregular
    if len(lowered) > MIN_SINGULAR_LENGTH and lowered.endswith("s") and not lowered.endswith("ss"):
        return lowered[:-1]
    return lowered


def extract_keywords(text: str | None) -> list[str]:
    """Split ``text`` on whitespace into unique singular keywords."""

    if not text:
        return []
    keywords: list[str] = []
    for token in text.split():
        keyword = singularize(token)
        if keyword and keyword not in keywords:
            keywords.append(keyword)
    return keywords


def default_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return today's window, 00:00:00 to 23:59:59 local time."""

    current = now if now is not None else datetime.now().astimezone()
    if current.tzinfo is None:
        current = current.astimezone()
    start = datetime.combine(current.date(), time(0, 0, 0), tzinfo=current.tzinfo)
    end = datetime.combine(current.date(), time(23, 59, 59), tzinfo=current.tzinfo)
    return start, end


def parse_window_bound(value: str | None, default: datetime) -> datetime:
    """Parse a local date/time query parameter, falling back to ``default``."""

    if value is None or not value.strip():
        return default
    text = value.strip()
    parsed: datetime | None = None
    for fmt in _WINDOW_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        break
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparsable window bound %r; using %s", value, default)
            return default
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default.tzinfo) if default.tzinfo else parsed.astimezone()
    return parsed


@dataclass(slots=True)
class EventQuery:
    """Query parameters for event searches.

    With ``exact`` set, keywords must name a camera or an object class
    outright; words that name neither are dropped instead of filtering.
    """

    start: datetime
    end: datetime
    keywords: list[str] = field(default_factory=list)
    exact: bool = False

    @classmethod
    def from_text(cls, start: datetime, end: datetime, text: str | None) -> "EventQuery":
        return cls(start=start, end=end, keywords=extract_keywords(text))


@dataclass(slots=True)
class QueryResult:
    query: EventQuery
    events: list[EventRecord] = field(default_factory=list)
    tags: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "success": True,
            "timeStart": self.query.start.isoformat(),
            "timeEnd": self.query.end.isoformat(),
            "tags": [dict(tag) for tag in self.tags],
            "data": [record.to_dict() for record in self.events],
        }


def _camera_matches(keyword: str, record: EventRecord) -> bool:
    camera = record.camera_name.lower()
    return bool(camera) and keyword in camera


def _class_matches(keyword: str, record: EventRecord) -> bool:
    for detected in record.objects:
        label = detected.class_name.lower()
        if not label:
            continue
        if keyword in label or keyword in singularize(label):
            return True
    return False


def matches_keywords(record: EventRecord, keywords: Sequence[str]) -> bool:
    """Return ``True`` when any keyword hits the camera name or an object class."""

    if not keywords:
        return True
    return any(
        _camera_matches(keyword, record) or _class_matches(keyword, record)
        for keyword in keywords
    )


def derive_tags(records: Iterable[EventRecord], keywords: Sequence[str]) -> list[dict[str, str]]:
    """Describe which keywords matched a camera or an object class."""

    records = list(records)
    tags: list[dict[str, str]] = []
    seen: set[str] = set()
    for keyword in keywords:
        if keyword in seen:
            continue
        if any(_camera_matches(keyword, record) for record in records):
            tags.append({"tag": keyword, "type": "camera"})
            seen.add(keyword)
        elif any(_class_matches(keyword, record) for record in records):
            tags.append({"tag": keyword, "type": "class"})
            seen.add(keyword)
    return tags


def _camera_is(keyword: str, record: EventRecord) -> bool:
    camera = record.camera_name.lower()
    return bool(camera) and keyword in (camera, singularize(camera))


def _class_is(keyword: str, record: EventRecord) -> bool:
    return any(
        detected.class_name and singularize(detected.class_name) == keyword
        for detected in record.objects
    )


def matches_tags(record: EventRecord, keywords: Sequence[str]) -> bool:
    """Like :func:`matches_keywords` but without substring matching."""

    if not keywords:
        return True
    return any(_camera_is(keyword, record) or _class_is(keyword, record) for keyword in keywords)


def resolve_tags(records: Iterable[EventRecord], keywords: Sequence[str]) -> list[dict[str, str]]:
    """Keep the keywords that name a loaded camera or object class exactly."""

    records = list(records)
    tags: list[dict[str, str]] = []
    for keyword in dict.fromkeys(keywords):
        if any(_camera_is(keyword, record) for record in records):
            tags.append({"tag": keyword, "type": "camera"})
        elif any(_class_is(keyword, record) for record in records):
            tags.append({"tag": keyword, "type": "class"})
    return tags


def filter_events(
    records: Iterable[EventRecord],
    query: EventQuery,
) -> list[EventRecord]:
    """Apply the inclusive time window and keyword filter, newest first."""

    matcher = matches_tags if query.exact else matches_keywords
    timed: list[tuple[datetime, EventRecord]] = []
    for record in records:
        started = record.motion_start_time
        if started is None:
            logger.debug("Skipping event %r with unparsable start %r", record.id, record.motion_start)
            continue
        if not (query.start <= started <= query.end):
            continue
        if not matcher(record, query.keywords):
            continue
        timed.append((started, record))
    timed.sort(key=lambda item: item[0], reverse=True)
    return [record for _, record in timed]


def run_query(store: EventStore, query: EventQuery) -> QueryResult:
    """Scan ``store`` for the query window and return the filtered events."""

    loaded = store.scan(query.start, query.end)
    logger.debug("Loaded %d events between %s and %s", len(loaded), query.start, query.end)
    if query.exact:
        tags = resolve_tags(loaded, query.keywords)
        query = replace(query, keywords=[tag["tag"] for tag in tags])
    else:
        tags = derive_tags(loaded, query.keywords)
    events = filter_events(loaded, query)
    logger.info("Returning %d of %d events", len(events), len(loaded))
    return QueryResult(query=query, events=events, tags=tags)


__all__ = [
    "EventQuery",
    "IRREGULAR_PLURALS",
    "QueryResult",
    "default_window",
    "derive_tags",
    "extract_keywords",
    "filter_events",
    "matches_keywords",
    "matches_tags",
    "parse_window_bound",
    "resolve_tags",
    "run_query",
    "singularize",
]
