"""Command-line entry point for the motion archive server."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

import uvicorn

from .app import create_app
from .config import LOG_LEVELS, ConfigManager
from .version import APP_VERSION

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the server CLI."""

    parser = argparse.ArgumentParser(
        prog="python -m motion_archive",
        description="Serve recorded motion events, snapshots and clips over HTTP",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("data/config.json"),
        help="Path to the JSON configuration file.",
    )
    parser.add_argument("--media", help="Media root holding the YYYY-MM-DD folders.")
    parser.add_argument("--host", help="Interface to bind.")
    parser.add_argument("--port", type=int, help="TCP port to listen on.")
    parser.add_argument("--log-level", choices=LOG_LEVELS, help="Logging verbosity.")
    parser.add_argument("--version", action="version", version=APP_VERSION)
    return parser


def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        manager = ConfigManager(args.config)
        settings = manager.override(
            media_root=args.media,
            host=args.host,
            port=args.port,
            log_level=args.log_level,
        )
    except (RuntimeError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    logger = logging.getLogger(__name__)
    logger.info("Serving files from %s at %s:%d", settings.media_path, settings.host, settings.port)

    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by `python -m motion_archive`."""

    return run(argv)


__all__ = ["build_parser", "main", "run"]
