"""
Change feed - tells connected canvases when the mesh has a new version.

Events carry only the version number; a canvas that receives
{"type": "mesh_updated", "version": n} fetches GET /api/mesh itself.
Each client is sent a given version at most once, and a client that joins
is immediately told the current version.
"""
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def mesh_updated(version: int) -> str:
    return json.dumps({"type": "mesh_updated", "version": version})


class MeshChangeFeed:
    """Tracks open canvas sockets and the last version each one was sent."""

    def __init__(self):
        self._clients: dict[WebSocket, int] = {}
        self._lock = asyncio.Lock()

    async def join(self, websocket: WebSocket, version: int):
        """Accept a canvas and send it the current version."""
        await websocket.accept()
        async with self._lock:
            await websocket.send_text(mesh_updated(version))
            self._clients[websocket] = version
        logger.info("Canvas connected (%d open)", len(self._clients))

    async def leave(self, websocket: WebSocket):
        async with self._lock:
            self._clients.pop(websocket, None)
        logger.info("Canvas disconnected (%d open)", len(self._clients))

    async def publish(self, version: int):
        """
        Send mesh_updated to every client still behind `version`.

        Clients whose send fails are dropped.
        """
        async with self._lock:
            behind = [ws for ws, seen in self._clients.items() if seen < version]
            if not behind:
                return

            message = mesh_updated(version)
            for websocket in behind:
                try:
                    await websocket.send_text(message)
                    self._clients[websocket] = version
                except Exception:
                    logger.debug("Dropping canvas after failed send", exc_info=True)
                    del self._clients[websocket]

    @property
    def client_count(self) -> int:
        return len(self._clients)
