from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionHub:
    """In-process registry of live player WebSockets keyed by connection id.

    Contract:
      - `connect(websocket)` accepts the socket and returns its new connection id.
      - `send(connection_id, payload)` delivers a JSON-serializable dict.
      - `live_connection_ids()` is what the stale-session sweep compares against.

    Note: this only knows about sockets held by this process. With several API
    replicas the sweep must run against the union of every replica's ids.
    """

    def __init__(self) -> None:
        self._by_connection: dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = uuid4().hex
        async with self._lock:
            self._by_connection[connection_id] = websocket
        logger.info("connection %s opened", connection_id)
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            self._by_connection.pop(connection_id, None)
        logger.info("connection %s closed", connection_id)

    async def live_connection_ids(self) -> set[str]:
        async with self._lock:
            return set(self._by_connection)

    async def send(self, connection_id: str, payload: dict[str, object]) -> bool:
        """Returns False if the connection is gone or the write failed."""

        async with self._lock:
            ws = self._by_connection.get(connection_id)

        if ws is None:
            return False

        try:
            await ws.send_json(payload)
        except Exception:
            logger.warning("dropping connection %s after failed send", connection_id, exc_info=True)
            async with self._lock:
                self._by_connection.pop(connection_id, None)
            return False
        return True


hub = ConnectionHub()
