"""FastAPI application serving recorded motion events."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, StreamingResponse

from .config import ConfigManager, ServerSettings
from .media import (
    RangeError,
    RangeNotSatisfiableError,
    content_type_for,
    iter_file_range,
    parse_range_header,
    prefer_mp4,
    safe_join,
)
from .prompt import build_prompt_query
from .query import EventQuery, default_window, parse_window_bound, run_query
from .store import EventStore
from .version import APP_VERSION

IMAGE_CONTENT_TYPE = "image/jpeg"


def create_app(
    config_path: Path | str = Path("data/config.json"),
    *,
    media_root: Path | str | None = None,
    settings: ServerSettings | None = None,
) -> FastAPI:
    app = FastAPI(title="Motion Archive", version=APP_VERSION)

    logger = logging.getLogger(__name__)

    if settings is None:
        settings = ConfigManager(Path(config_path)).get_settings()
    root = Path(media_root).expanduser() if media_root is not None else settings.media_path
    store = EventStore(root)

    app.state.settings = settings
    app.state.store = store

    if not root.is_dir():
        logger.warning("Media root %s does not exist yet; queries will be empty", root)
    logger.info("Serving events from %s", root)

    async def _execute(query: EventQuery) -> dict[str, object]:
        result = await run_in_threadpool(run_query, store, query)
        return result.to_dict()

    @app.get("/api")
    async def query_events(
        start: str | None = None,
        end: str | None = None,
        q: str | None = None,
    ) -> dict[str, object]:
        default_start, default_end = default_window()
        query = EventQuery.from_text(
            parse_window_bound(start, default_start),
            parse_window_bound(end, default_end),
            q,
        )
        logger.info(
            "Query %s - %s keywords=%s", query.start, query.end, query.keywords or "-"
        )
        return await _execute(query)

    @app.get("/api/prompt")
    async def query_prompt(prompt: str | None = None) -> dict[str, object]:
        if prompt is None or not prompt.strip():
            raise HTTPException(status_code=400, detail="prompt parameter is required")
        logger.info("Prompt: %s", prompt)
        query = build_prompt_query(prompt)
        return await _execute(query)

    @app.api_route("/rec/{media_path:path}", methods=["GET", "HEAD"])
    async def stream_recording(media_path: str, request: Request) -> Response:
        try:
            path = prefer_mp4(safe_join(root, media_path))
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Recording not found") from exc
        if not path.is_file():
            raise HTTPException(status_code=404, detail="Recording not found")

        try:
            size = path.stat().st_size
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Recording not found") from exc
        except OSError as exc:
            logger.error("Unable to get file info for %s: %s", path, exc)
            raise HTTPException(status_code=500, detail="Unable to read recording") from exc

        try:
            byte_range = parse_range_header(request.headers.get("range"), size)
        except RangeNotSatisfiableError as exc:
            raise HTTPException(
                status_code=416,
                detail=str(exc),
                headers={"Content-Range": f"bytes */{size}"},
            ) from exc
        except RangeError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        content_type = content_type_for(path)
        headers = {
            "Accept-Ranges": "bytes",
            "Content-Length": str(byte_range.length),
            "Content-Range": byte_range.content_range(size),
        }
        if request.method == "HEAD":
            return Response(status_code=206, headers=headers, media_type=content_type)
        return StreamingResponse(
            iter_file_range(path, byte_range, chunk_size=settings.stream_chunk_size),
            status_code=206,
            headers=headers,
            media_type=content_type,
        )

    @app.get("/images/{image_path:path}")
    async def get_image(image_path: str) -> FileResponse:
        try:
            path = safe_join(root, image_path)
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Image not found") from exc
        if not path.is_file():
            raise HTTPException(status_code=404, detail="Image not found")
        return FileResponse(
            path,
            media_type=IMAGE_CONTENT_TYPE,
            headers={"Cache-Control": f"public, max-age={settings.image_cache_seconds}"},
        )

    return app


__all__ = ["create_app"]
