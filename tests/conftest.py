from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import pytest


def make_event(
    identifier: str,
    motion_start: str,
    *,
    camera: str = "driveway",
    classes: tuple[str, ...] = ("car",),
    video: str = "clip.ts",
    snapshots: tuple[str, ...] = ("snap.jpg",),
    **overrides: Any,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "ID": identifier,
        "MotionStart": motion_start,
        "MotionEnd": motion_start,
        "Objects": [
            {
                "BBox": {"Min": {"X": 10, "Y": 20}, "Max": {"X": 110, "Y": 220}},
                "Center": {"X": 60, "Y": 120},
                "Area": 20000,
                "LastMoved": motion_start,
                "Class": label,
                "Confidence": 0.87,
            }
            for label in classes
        ],
        "Snapshots": list(snapshots),
        "VideoFile": video,
        "CameraName": camera,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def write_event(tmp_path: Path) -> Callable[..., Path]:
    """Write an event metadata file into ``tmp_path/media/<day>/``."""

    root = tmp_path / "media"

    def _write(day: str, name: str, payload: dict[str, Any] | str) -> Path:
        folder = root / day
        folder.mkdir(parents=True, exist_ok=True)
        path = folder / name
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "media"
    root.mkdir(exist_ok=True)
    return root
