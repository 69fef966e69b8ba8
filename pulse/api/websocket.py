"""WebSocket handler for render progress.

Clients connect to /ws/{job_id} before posting a render with the same
``job_id`` and receive each phase as it happens.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from pulse.console.renderer import RenderProgress

logger = structlog.get_logger()


class ConnectionManager:
    """Manages WebSocket connections per render job."""

    def __init__(self) -> None:
        self._connections: dict[str, list[WebSocket]] = {}

    def has_listeners(self, job_id: str) -> bool:
        return bool(self._connections.get(job_id))

    async def connect(self, job_id: str, websocket: WebSocket) -> None:
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        self._connections.setdefault(job_id, []).append(websocket)
        logger.info("ws.connected", job_id=job_id)

    def disconnect(self, job_id: str, websocket: WebSocket) -> None:
        """Remove a disconnected WebSocket."""
        if job_id in self._connections:
            self._connections[job_id] = [ws for ws in self._connections[job_id] if ws != websocket]
            if not self._connections[job_id]:
                del self._connections[job_id]
        logger.info("ws.disconnected", job_id=job_id)

    async def _broadcast(self, job_id: str, payload: dict[str, Any]) -> None:
        text = json.dumps(payload)
        dead: list[WebSocket] = []
        for ws in list(self._connections.get(job_id, [])):
            try:
                if ws.client_state == WebSocketState.CONNECTED:
                    await ws.send_text(text)
            except Exception as e:
                logger.debug("ws.send_failed", job_id=job_id, error=str(e))
                dead.append(ws)
        for ws in dead:
            self.disconnect(job_id, ws)

    async def send_progress(self, job_id: str, event: RenderProgress) -> None:
        """Send one render phase update to every listener of ``job_id``."""
        await self._broadcast(
            job_id,
            {
                "type": "progress",
                "phase": event.phase,
                "progress": event.progress,
                "message": event.message,
            },
        )

    async def send_complete(self, job_id: str, result: dict[str, Any]) -> None:
        """Send completion message with the render metadata."""
        await self._broadcast(job_id, {"type": "complete", "result": result})

    async def send_error(self, job_id: str, error: str) -> None:
        """Send error message."""
        await self._broadcast(job_id, {"type": "error", "error": error})


# Global connection manager
manager = ConnectionManager()


async def websocket_endpoint(websocket: WebSocket, job_id: str) -> None:
    """WebSocket endpoint for live render progress.

    Usage from frontend:
        const ws = new WebSocket('ws://host:8000/ws/job-id')
        ws.onmessage = (event) => {
            const data = JSON.parse(event.data)
            // data.type: 'progress' | 'complete' | 'error'
            // data.phase: 'preparing' | 'rendering' | 'encoding' | 'complete' | 'error'
            // data.progress: 0-100
        }
    """
    await manager.connect(job_id, websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("action") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        manager.disconnect(job_id, websocket)
