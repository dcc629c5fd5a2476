"""Event record model shared by the store scanner and the query engine."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Sequence


class EventDecodeError(ValueError):
    """Raised when a metadata payload does not have the event record shape."""


_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: object) -> datetime | None:
    """Return an aware datetime for an RFC 3339 string or ``None``.

    Timestamps without a UTC offset are rejected so every parsed value can be
    compared against the others.
    """

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in {"Z", "z"}:
        text = text[:-1] + "+00:00"
    text = _FRACTION_PATTERN.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None or parsed.utcoffset() is None:
        return None
    return parsed


def _pick(payload: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in payload:
            return payload[name]
    return None


def _as_int(value: Any, label: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise EventDecodeError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise EventDecodeError(f"{label} must be an integer")


def _as_float(value: Any, label: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EventDecodeError(f"{label} must be a number")
    return float(value)


def _as_str(value: Any, label: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise EventDecodeError(f"{label} must be a string")
    return value


def _as_mapping(value: Any, label: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise EventDecodeError(f"{label} must be an object")
    return value


def _as_list(value: Any, label: str) -> Sequence[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise EventDecodeError(f"{label} must be a list")
    return value


@dataclass(frozen=True, slots=True)
class Point:
    """Integer pixel coordinate."""

    x: int = 0
    y: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"X": self.x, "Y": self.y}

    @classmethod
    def from_dict(cls, payload: Any, label: str = "point") -> "Point":
        data = _as_mapping(payload, label)
        return cls(
            x=_as_int(_pick(data, "X", "x"), f"{label}.X"),
            y=_as_int(_pick(data, "Y", "y"), f"{label}.Y"),
        )


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis aligned box expressed by its minimum and maximum corners."""

    min: Point = field(default_factory=Point)
    max: Point = field(default_factory=Point)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {"Min": self.min.to_dict(), "Max": self.max.to_dict()}

    @classmethod
    def from_dict(cls, payload: Any) -> "BoundingBox":
        data = _as_mapping(payload, "BBox")
        return cls(
            min=Point.from_dict(_pick(data, "Min", "min"), "BBox.Min"),
            max=Point.from_dict(_pick(data, "Max", "max"), "BBox.Max"),
        )


@dataclass(frozen=True, slots=True)
class DetectedObject:
    """A single classified detection inside a motion event."""

    bbox: BoundingBox = field(default_factory=BoundingBox)
    center: Point = field(default_factory=Point)
    area: int = 0
    last_moved: str = ""
    class_name: str = ""
    confidence: float = 0.0

    def to_dict(self) -> dict[str, object]:
        return {
            "BBox": self.bbox.to_dict(),
            "Center": self.center.to_dict(),
            "Area": self.area,
            "LastMoved": self.last_moved,
            "Class": self.class_name,
            "Confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "DetectedObject":
        data = _as_mapping(payload, "Objects[]")
        return cls(
            bbox=BoundingBox.from_dict(_pick(data, "BBox", "bbox")),
            center=Point.from_dict(_pick(data, "Center", "center"), "Center"),
            area=_as_int(_pick(data, "Area", "area"), "Area"),
            last_moved=_as_str(_pick(data, "LastMoved", "lastMoved"), "LastMoved"),
            class_name=_as_str(_pick(data, "Class", "class"), "Class"),
            confidence=_as_float(_pick(data, "Confidence", "confidence"), "Confidence"),
        )


@dataclass(slots=True)
class EventRecord:
    """One recorded motion episode as written by the recorder."""

    id: str = ""
    motion_start: str = ""
    motion_end: str = ""
    objects: list[DetectedObject] = field(default_factory=list)
    snapshots: list[str] = field(default_factory=list)
    video_file: str = ""
    camera_name: str = ""

    @property
    def motion_start_time(self) -> datetime | None:
        return parse_timestamp(self.motion_start)

    def to_dict(self) -> dict[str, object]:
        return {
            "ID": self.id,
            "MotionStart": self.motion_start,
            "MotionEnd": self.motion_end,
            "Objects": [item.to_dict() for item in self.objects],
            "Snapshots": list(self.snapshots),
            "VideoFile": self.video_file,
            "CameraName": self.camera_name,
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "EventRecord":
        if not isinstance(payload, Mapping):
            raise EventDecodeError("Event metadata must be a JSON object")
        identifier = _pick(payload, "ID", "id")
        if isinstance(identifier, (int, float)) and not isinstance(identifier, bool):
            identifier = str(identifier)
        snapshots = [
            _as_str(item, "Snapshots[]")
            for item in _as_list(_pick(payload, "Snapshots", "snapshots"), "Snapshots")
        ]
        objects = [
            DetectedObject.from_dict(item)
            for item in _as_list(_pick(payload, "Objects", "objects"), "Objects")
        ]
        return cls(
            id=_as_str(identifier, "ID"),
            motion_start=_as_str(_pick(payload, "MotionStart", "motionStart"), "MotionStart"),
            motion_end=_as_str(_pick(payload, "MotionEnd", "motionEnd"), "MotionEnd"),
            objects=objects,
            snapshots=snapshots,
            video_file=_as_str(_pick(payload, "VideoFile", "videoFile"), "VideoFile"),
            camera_name=_as_str(_pick(payload, "CameraName", "cameraName"), "CameraName"),
        )


__all__ = [
    "BoundingBox",
    "DetectedObject",
    "EventDecodeError",
    "EventRecord",
    "Point",
    "parse_timestamp",
]
