"""Connection management helpers for live feed websockets."""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class FeedConnectionManager:
    """Track the browser websocket attached to each live feed session."""

    def __init__(self) -> None:
        self._connections: Dict[str, WebSocket] = {}

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        """Accept the websocket connection and register it for ``session_id``."""

        await websocket.accept()
        self._connections[session_id] = websocket

    def disconnect(self, session_id: str, websocket: WebSocket | None = None) -> None:
        """Forget ``session_id``; ignores stale websockets when one is given."""

        current = self._connections.get(session_id)
        if current is None:
            return
        if websocket is not None and current is not websocket:
            return
        self._connections.pop(session_id, None)

    async def send_to_session(self, session_id: str, message: dict[str, Any]) -> None:
        """Send ``message`` to the websocket of ``session_id`` if it is still open."""

        connection = self._connections.get(session_id)
        if connection is None:
            return
        try:
            await connection.send_json(message)
        except Exception:
            logger.debug("Dropping live feed session %s after failed send", session_id)
            self.disconnect(session_id, connection)


feed_manager = FeedConnectionManager()


__all__ = ["FeedConnectionManager", "feed_manager"]
