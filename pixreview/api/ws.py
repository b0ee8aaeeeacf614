"""WebSocket endpoint for live transcode progress."""

import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.auth import COOKIE_NAME, authenticate, authorize
from ..services.transcoder import transcode_manager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


class ConnectionManager:
    def __init__(self):
        self.active: list[WebSocket] = []

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)


manager = ConnectionManager()


def _progress_listener(ws: WebSocket, path: str):
    """Forward job updates for ``path`` to ``ws`` until sending fails."""

    async def transcode_cb(job):
        try:
            await ws.send_json({
                "type": "transcode_progress",
                "path": job.path,
                "status": job.status.value,
                "progress": job.progress,
                "error": job.error,
            })
        except Exception as e:
            logger.debug(f"Dropping progress subscription for {path}: {e}")
            manager.disconnect(ws)
            transcode_manager.remove_progress_listener(path, transcode_cb)

    return transcode_cb


@router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    user = authenticate(ws.cookies.get(COOKIE_NAME))
    if not user:
        await ws.close(code=4401)
        return

    await manager.connect(ws)
    subscriptions = []

    try:
        while True:
            data = await ws.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue

            if msg.get("action") != "subscribe_transcode":
                continue
            path = msg.get("path")
            if not isinstance(path, str) or not path or not authorize(user, path):
                continue

            transcode_cb = _progress_listener(ws, path)
            transcode_manager.add_progress_listener(path, transcode_cb)
            subscriptions.append((path, transcode_cb))

    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(ws)
        for path, cb in subscriptions:
            transcode_manager.remove_progress_listener(path, cb)
