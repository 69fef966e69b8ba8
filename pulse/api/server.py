"""PULSE FastAPI server — main application."""

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from pulse.api.routes.render import router as render_router
from pulse.api.websocket import websocket_endpoint
from pulse.config import settings

app = FastAPI(
    title="PULSE",
    description="Offline timeline renderer — project JSON in, WAV out.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(render_router, prefix="/api")


# WebSocket endpoint
@app.websocket("/ws/{job_id}")
async def ws_endpoint(websocket: WebSocket, job_id: str) -> None:
    """WebSocket for live render progress."""
    await websocket_endpoint(websocket, job_id)


# ── Public routes ──
@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "service": "pulse"}


@app.get("/api/info")
async def info() -> dict[str, object]:
    """System information and capabilities."""
    from pulse import __version__

    return {
        "name": "PULSE",
        "version": __version__,
        "sample_rate": settings.sample_rate,
        "channels": settings.channels,
        "layers": {
            "grid": "Timing, Project Model & Arrangement",
            "hands": "Signal Nodes, Voices & Effects",
            "console": "Mixing Graph, Scheduling & Rendering",
        },
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "render": "POST /api/render",
            "render_stems": "POST /api/render/stems",
            "websocket": "WS /ws/{job_id}",
        },
    }
