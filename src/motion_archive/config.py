"""Configuration management for the event archive server."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from threading import Lock
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_ROOT = "media"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
DEFAULT_LOG_LEVEL = "info"
DEFAULT_IMAGE_CACHE_SECONDS = 365 * 24 * 60 * 60
DEFAULT_STREAM_CHUNK_SIZE = 64 * 1024

LOG_LEVELS = ("critical", "error", "warning", "info", "debug")

ENVIRONMENT_OVERRIDES: dict[str, str] = {
    "MOTION_ARCHIVE_MEDIA_DIR": "media_root",
    "MOTION_ARCHIVE_HOST": "host",
    "MOTION_ARCHIVE_PORT": "port",
    "MOTION_ARCHIVE_LOG_LEVEL": "log_level",
}


@dataclass(frozen=True, slots=True)
class ServerSettings:
    """Runtime options for the HTTP server."""

    media_root: str = DEFAULT_MEDIA_ROOT
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    image_cache_seconds: int = DEFAULT_IMAGE_CACHE_SECONDS
    stream_chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE

    def __post_init__(self) -> None:
        if not isinstance(self.media_root, str) or not self.media_root.strip():
            raise ValueError("Media root must be a non-empty path")
        if not isinstance(self.host, str) or not self.host.strip():
            raise ValueError("Host must be a non-empty string")
        port = _parse_int(self.port, "Port")
        if not (0 < port < 65536):
            raise ValueError("Port must be between 1 and 65535")
        level = str(self.log_level).strip().lower()
        if level not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of {', '.join(LOG_LEVELS)}")
        cache_seconds = _parse_int(self.image_cache_seconds, "Image cache duration")
        if cache_seconds < 0:
            raise ValueError("Image cache duration must not be negative")
        chunk_size = _parse_int(self.stream_chunk_size, "Stream chunk size")
        if chunk_size <= 0:
            raise ValueError("Stream chunk size must be positive")
        object.__setattr__(self, "media_root", self.media_root.strip())
        object.__setattr__(self, "host", self.host.strip())
        object.__setattr__(self, "port", port)
        object.__setattr__(self, "log_level", level)
        object.__setattr__(self, "image_cache_seconds", cache_seconds)
        object.__setattr__(self, "stream_chunk_size", chunk_size)

    @property
    def media_path(self) -> Path:
        return Path(self.media_root).expanduser()

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


def _parse_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValueError(f"{label} must be an integer")


DEFAULT_SERVER_SETTINGS = ServerSettings()


def _parse_settings(payload: Mapping[str, Any], *, default: ServerSettings) -> ServerSettings:
    known = set(default.to_dict())
    unknown = sorted(set(payload) - known)
    if unknown:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(unknown))
    values = {key: payload[key] for key in known if key in payload and payload[key] is not None}
    return replace(default, **values)


def _apply_environment(
    settings: ServerSettings, environ: Mapping[str, str]
) -> ServerSettings:
    for variable, field_name in ENVIRONMENT_OVERRIDES.items():
        raw = environ.get(variable)
        if raw is None or not raw.strip():
            continue
        try:
            settings = replace(settings, **{field_name: raw.strip()})
        except ValueError as exc:
            logger.warning("Invalid %s value %r; ignoring (%s)", variable, raw, exc)
    return settings


class ConfigManager:
    """Loads server settings from a JSON file with environment overrides."""

    def __init__(
        self,
        config_path: Path | str,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._path = Path(config_path)
        self._lock = Lock()
        self._environ = os.environ if environ is None else environ
        self._settings = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> ServerSettings:
        settings = DEFAULT_SERVER_SETTINGS
        if self._path.exists():
            try:
                payload = json.loads(self._path.read_text(encoding="utf-8"))
                if not isinstance(payload, dict):
                    raise ValueError("Configuration file must contain a JSON object")
                settings = _parse_settings(payload, default=settings)
            except (OSError, ValueError, TypeError) as exc:
                raise RuntimeError(f"Failed to load configuration: {exc}") from exc
        return _apply_environment(settings, self._environ)

    def get_settings(self) -> ServerSettings:
        with self._lock:
            return self._settings

    def override(self, **values: Any) -> ServerSettings:
        """Apply explicit overrides, such as command-line arguments."""

        cleaned = {key: value for key, value in values.items() if value is not None}
        with self._lock:
            if cleaned:
                self._settings = replace(self._settings, **cleaned)
            return self._settings


__all__ = [
    "ConfigManager",
    "DEFAULT_SERVER_SETTINGS",
    "ENVIRONMENT_OVERRIDES",
    "ServerSettings",
]
