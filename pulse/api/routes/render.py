"""PULSE API — render routes (full mix and stems)."""

from __future__ import annotations

import asyncio
import io
import zipfile
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel

from pulse.api.websocket import manager
from pulse.console.renderer import OfflineRenderer, ProgressSink, RenderProgress
from pulse.errors import RenderError
from pulse.grid.project import Project, validate_project

logger = structlog.get_logger()

router = APIRouter(prefix="/render", tags=["render"])

_renderer: OfflineRenderer | None = None


def get_renderer() -> OfflineRenderer:
    """Shared renderer; each call still builds its own graph and context."""
    global _renderer
    if _renderer is None:
        _renderer = OfflineRenderer()
    return _renderer


# ── Models ───────────────────────────────────────────────


class RenderRequest(BaseModel):
    """Render a project document (studio JSON, camelCase keys)."""

    project: dict[str, Any]
    only_track_id: str | None = None
    job_id: str | None = None


# ── Helpers ──────────────────────────────────────────────


def _parse_project(raw: dict[str, Any]) -> Project:
    try:
        project = Project.from_dict(raw)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=f"Malformed project: {e}") from e
    problems = validate_project(project)
    if problems:
        raise HTTPException(status_code=422, detail=problems)
    return project


def _progress_forwarder(job_id: str | None) -> ProgressSink | None:
    """Forward progress from the worker thread to WebSocket listeners."""
    if job_id is None or not manager.has_listeners(job_id):
        return None
    loop = asyncio.get_running_loop()

    def forward(event: RenderProgress) -> None:
        asyncio.run_coroutine_threadsafe(manager.send_progress(job_id, event), loop)

    return forward


async def _fail(job_id: str | None, error: RenderError) -> HTTPException:
    if job_id is not None:
        await manager.send_error(job_id, error.message)
    logger.error("api.render_failed", job_id=job_id, phase=error.phase, error=error.message)
    return HTTPException(status_code=500, detail=error.message)


# ── Endpoints ────────────────────────────────────────────


@router.post("")
async def render_project(
    req: RenderRequest,
    renderer: OfflineRenderer = Depends(get_renderer),
) -> Response:
    """Render the full mix (or one isolated track) and return WAV bytes."""
    project = _parse_project(req.project)
    on_progress = _progress_forwarder(req.job_id)

    try:
        result = await asyncio.to_thread(
            renderer.render,
            project,
            only_track_id=req.only_track_id,
            on_progress=on_progress,
        )
    except RenderError as e:
        raise await _fail(req.job_id, e) from e

    meta = {
        "duration_seconds": result.duration_seconds,
        "sample_rate": result.sample_rate,
        "channels": result.channels,
        "track_id": result.track_id,
        "bytes": len(result.wav),
    }
    if req.job_id is not None:
        await manager.send_complete(req.job_id, meta)

    filename = f"{project.name or project.id or 'render'}.wav"
    return Response(
        content=result.wav,
        media_type="audio/wav",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Duration-Seconds": f"{result.duration_seconds:.6f}",
            "X-Sample-Rate": str(result.sample_rate),
            "X-Channels": str(result.channels),
        },
    )


@router.post("/stems")
async def render_stems(
    req: RenderRequest,
    renderer: OfflineRenderer = Depends(get_renderer),
) -> Response:
    """Render every non-master track in isolation and return them zipped."""
    project = _parse_project(req.project)
    on_progress = _progress_forwarder(req.job_id)

    try:
        stems = await asyncio.to_thread(renderer.render_stems, project, on_progress=on_progress)
    except RenderError as e:
        raise await _fail(req.job_id, e) from e

    archive = io.BytesIO()
    with zipfile.ZipFile(archive, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for track_id, result in stems.items():
            track = project.mixer.track(track_id)
            index = track.index if track else 0
            zf.writestr(f"{index:02d}_{track_id}.wav", result.wav)

    if req.job_id is not None:
        await manager.send_complete(req.job_id, {"stems": list(stems)})

    return Response(
        content=archive.getvalue(),
        media_type="application/zip",
        headers={
            "Content-Disposition": 'attachment; filename="stems.zip"',
            "X-Stem-Count": str(len(stems)),
        },
    )
