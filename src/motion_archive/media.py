"""Helpers for locating recorded media and serving byte ranges."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator

MP4_SUFFIX = ".mp4"

CONTENT_TYPES: dict[str, str] = {
    ".ts": "video/MP2T",
    ".mp4": "video/mp4",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

DEFAULT_CHUNK_SIZE = 64 * 1024


class RangeError(ValueError):
    """Raised when a ``Range`` header cannot be parsed."""


class RangeNotSatisfiableError(RangeError):
    """Raised when a ``Range`` header lies outside of the file."""


def prefer_mp4(path: Path) -> Path:
    """Return the ``.mp4`` sibling of ``path`` when one exists on disk.

    The background transcoder writes ``clip.mp4`` next to ``clip.ts`` without
    touching the event metadata.
    """

    candidate = path.with_suffix(MP4_SUFFIX)
    if candidate != path and candidate.is_file():
        return candidate
    return path


def resolve_relative_media(root: Path, relative: str) -> str:
    """Apply :func:`prefer_mp4` to a root-relative media path string."""

    if not relative:
        return relative
    resolved = prefer_mp4(root / relative)
    if resolved.suffix == Path(relative).suffix:
        return relative
    return PurePosixPath(relative).with_suffix(MP4_SUFFIX).as_posix()


def safe_join(root: Path, relative: str) -> Path:
    """Join ``relative`` onto ``root`` refusing paths that escape the root."""

    cleaned = relative.replace("\\", "/").lstrip("/")
    if not cleaned:
        raise FileNotFoundError("Media not found")
    candidate = (root / cleaned).resolve()
    try:
        candidate.relative_to(root.resolve())
    except ValueError:
        raise FileNotFoundError("Media not found") from None
    return candidate


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)


@dataclass(frozen=True, slots=True)
class ByteRange:
    """Inclusive byte slice of a file."""

    start: int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length - 1

    def content_range(self, size: int) -> str:
        if self.length <= 0:
            return f"bytes */{size}"
        return f"bytes {self.start}-{self.end}/{size}"


def parse_range_header(header: str | None, size: int) -> ByteRange:
    """Return the slice requested by ``header`` for a file of ``size`` bytes.

    Only the single ``bytes=<start>-[<end>]`` form is understood. A missing
    header selects the whole file and an ``end`` past the last byte is clamped.
    """

    if size < 0:
        raise ValueError("size must not be negative")
    if header is None or not header.strip():
        return ByteRange(start=0, length=size)

    unit, sep, ranges = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise RangeError(f"Unsupported range unit in {header!r}")
    start_text, sep, end_text = ranges.strip().partition("-")
    start_text = start_text.strip()
    end_text = end_text.strip()
    if not sep or not start_text.isdigit():
        raise RangeError(f"Malformed range {header!r}")
    if end_text and not end_text.isdigit():
        raise RangeError(f"Malformed range {header!r}")

    start = int(start_text)
    if start >= size:
        raise RangeNotSatisfiableError(f"Range start {start} beyond file size {size}")
    end = int(end_text) if end_text else size - 1
    if end < start:
        raise RangeError(f"Range end {end} precedes start {start}")
    end = min(end, size - 1)
    return ByteRange(start=start, length=end - start + 1)


def iter_file_range(
    path: Path,
    byte_range: ByteRange,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Iterator[bytes]:
    """Yield ``byte_range`` of ``path`` in chunks, closing the file on exit."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    remaining = byte_range.length
    with path.open("rb") as handle:
        handle.seek(byte_range.start)
        while remaining > 0:
            chunk = handle.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


__all__ = [
    "ByteRange",
    "CONTENT_TYPES",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_CONTENT_TYPE",
    "MP4_SUFFIX",
    "RangeError",
    "RangeNotSatisfiableError",
    "content_type_for",
    "iter_file_range",
    "parse_range_header",
    "prefer_mp4",
    "resolve_relative_media",
    "safe_join",
]
