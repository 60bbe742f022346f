"""Channel backends the transport connection can talk to."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Mapping, Protocol

import aiohttp

from .errors import RealtimeError

logger = logging.getLogger(__name__)

FrameCallback = Callable[[str, Mapping[str, Any]], None]
DropCallback = Callable[[str], None]


class ChannelBackend(Protocol):
    """Contract between :class:`TransportConnection` and the event stream.

    ``open`` must either complete the handshake or raise. After it returns the
    backend reports every change frame through ``on_frame`` and a lost
    connection, once, through ``on_drop``.
    """

    async def open(self, on_frame: FrameCallback, on_drop: DropCallback) -> None:
        ...

    async def close(self) -> None:
        ...

    async def join(self, topic: str) -> None:
        ...

    async def leave(self, topic: str) -> None:
        ...


class UnconfiguredBackend:
    """Backend used when no realtime URL is configured."""

    message = "REALTIME_URL is not configured; live updates are unavailable"

    async def open(self, on_frame: FrameCallback, on_drop: DropCallback) -> None:
        raise RealtimeError(self.message)

    async def close(self) -> None:
        return None

    async def join(self, topic: str) -> None:
        raise RealtimeError(self.message)

    async def leave(self, topic: str) -> None:
        raise RealtimeError(self.message)


class WebSocketChannelBackend:
    """Topic-style change stream carried over a single websocket.

    Outbound frames are ``{"type": "subscribe" | "unsubscribe", "topic": ...}``.
    Inbound ``{"type": "change", "topic": ..., "payload": {...}}`` frames are
    handed to ``on_frame``; ``{"type": "ping"}`` is answered with a pong.
    """

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        heartbeat: float = 20.0,
        session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession,
    ) -> None:
        self._url = url
        self._api_key = api_key
        self._heartbeat = heartbeat
        self._session_factory = session_factory
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._closing = False

    async def open(self, on_frame: FrameCallback, on_drop: DropCallback) -> None:
        await self.close()
        self._closing = False
        params = {"apikey": self._api_key} if self._api_key else None
        session = self._session_factory()
        try:
            ws = await session.ws_connect(self._url, params=params, heartbeat=self._heartbeat)
        except BaseException:
            await session.close()
            raise
        self._session = session
        self._ws = ws
        self._reader = asyncio.get_running_loop().create_task(
            self._read_frames(ws, on_frame, on_drop)
        )

    async def close(self) -> None:
        self._closing = True
        reader, self._reader = self._reader, None
        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
        if ws is not None and not ws.closed:
            await ws.close()
        if session is not None and not session.closed:
            await session.close()

    async def join(self, topic: str) -> None:
        await self._send({"type": "subscribe", "topic": topic})

    async def leave(self, topic: str) -> None:
        await self._send({"type": "unsubscribe", "topic": topic})

    async def _send(self, frame: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            raise RealtimeError(f"Cannot send {frame['type']} frame: websocket is closed")
        await ws.send_json(frame)

    async def _read_frames(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        on_frame: FrameCallback,
        on_drop: DropCallback,
    ) -> None:
        reason = "Connection to the realtime backend was closed"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self._handle_text(ws, msg.data, on_frame)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"Realtime websocket error: {ws.exception()}"
                    break
                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            reason = f"Realtime websocket failed: {exc}"
        if not self._closing:
            logger.warning("%s", reason)
            await self.close()
            on_drop(reason)

    async def _handle_text(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        data: str,
        on_frame: FrameCallback,
    ) -> None:
        try:
            frame = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Ignoring non-JSON realtime frame: %.200s", data)
            return
        if not isinstance(frame, dict):
            return

        frame_type = frame.get("type")
        if frame_type == "ping":
            await ws.send_json({"type": "pong"})
            return
        if frame_type != "change":
            return

        topic = frame.get("topic")
        payload = frame.get("payload")
        if not isinstance(topic, str) or not isinstance(payload, dict):
            logger.debug("Ignoring change frame without topic or payload")
            return
        on_frame(topic, payload)


def build_backend(
    url: str | None, *, api_key: str | None = None
) -> "ChannelBackend":
    """Return the backend matching the configured realtime ``url``."""

    if not url:
        return UnconfiguredBackend()
    return WebSocketChannelBackend(url, api_key=api_key)


__all__ = [
    "ChannelBackend",
    "DropCallback",
    "FrameCallback",
    "UnconfiguredBackend",
    "WebSocketChannelBackend",
    "build_backend",
]
