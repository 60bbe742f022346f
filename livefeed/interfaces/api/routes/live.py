"""Endpoints and websocket handler for live forum updates."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Any, Callable
from uuid import uuid4

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from livefeed.application.use_cases.notifications import LiveFeed
from livefeed.infrastructure.notifications import feed_manager, feed_publisher
from livefeed.infrastructure.realtime import (
    BufferListener,
    ConnectionStatus,
    NotificationBuffer,
    RealtimeService,
    SoundCue,
)
from livefeed.interfaces.api.dependencies import get_realtime_service
from livefeed.interfaces.api.schemas import (
    ConnectionStatusRead,
    FeedSnapshotRead,
    NotificationMarkReadRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live", tags=["live"])

_TRUTHY = {"1", "true", "yes", "on"}


@router.get("/status", response_model=ConnectionStatusRead)
def live_status(
    service: RealtimeService = Depends(get_realtime_service),
) -> ConnectionStatusRead:
    """Return the connectivity of the shared realtime transport."""

    return ConnectionStatusRead(**service.status())


@router.post("/reconnect", response_model=ConnectionStatusRead)
async def live_reconnect(
    service: RealtimeService = Depends(get_realtime_service),
) -> ConnectionStatusRead:
    """Retry the realtime connection after a failure."""

    if service.is_started:
        await service.connect()
    return ConnectionStatusRead(**service.status())


@router.websocket("/ws")
async def live_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint streaming one live feed to the browser."""

    service: RealtimeService | None = getattr(websocket.app.state, "realtime_service", None)
    if service is None or not service.is_started:
        await websocket.close(code=1011)
        return

    params = websocket.query_params
    sound_enabled = params.get("sound", "").lower() in _TRUTHY
    session_id = uuid4().hex
    settings = service.settings
    cue = SoundCue(
        lambda payload: feed_publisher.dispatch(session_id, event_type="sound", payload=payload),
        url=settings.notification_sound_url,
        volume=settings.notification_sound_volume,
    )
    try:
        feed = LiveFeed(
            service,
            thread_id=params.get("thread"),
            category_id=params.get("category"),
            sound_enabled=sound_enabled,
            cue=cue,
        )
    except ValueError:
        await websocket.close(code=1008)
        return

    await feed_manager.connect(session_id, websocket)
    with ExitStack() as stack:
        stack.enter_context(feed)
        stack.callback(feed.buffer.on_change(_buffer_listener(session_id, feed)))
        stack.callback(service.transport.on_status_change(_status_listener(session_id)))
        try:
            await websocket.send_json({"type": "init", "data": _snapshot(feed)})
            while True:
                try:
                    message = await websocket.receive_json()
                except WebSocketDisconnect:
                    raise
                except (ValueError, KeyError):
                    continue

                if not isinstance(message, dict):
                    continue
                await _handle_command(websocket, feed, message)
        except WebSocketDisconnect:
            feed_manager.disconnect(session_id, websocket)
        except Exception:
            feed_manager.disconnect(session_id, websocket)
            raise


async def _handle_command(websocket: WebSocket, feed: LiveFeed, message: dict[str, Any]) -> None:
    message_type = message.get("type")
    if message_type == "ping":
        await websocket.send_json({"type": "pong"})
        return

    if message_type == "ack":
        try:
            request = NotificationMarkReadRequest.model_validate(message)
        except ValidationError:
            return
        for notification_id in request.unique_ids():
            feed.mark_read(notification_id)
        return

    if message_type == "mark_all_read":
        feed.mark_all_read()
        return

    if message_type == "clear":
        feed.clear()
        return

    if message_type == "sound":
        enabled = message.get("enabled")
        if isinstance(enabled, bool):
            feed.set_sound_enabled(enabled)
        else:
            feed.toggle_sound()
        await websocket.send_json({"type": "feed", "data": _snapshot(feed)})
        return

    if message_type == "expand":
        expanded = message.get("expanded")
        if isinstance(expanded, bool):
            feed.set_expanded(expanded)
        else:
            feed.toggle_expanded()
        await websocket.send_json({"type": "feed", "data": _snapshot(feed)})
        return

    if message_type == "retry":
        await feed.retry()
        return

    logger.debug("Ignoring unknown live feed command %r", message_type)


def _buffer_listener(session_id: str, feed: LiveFeed) -> BufferListener:
    def listener(buffer: NotificationBuffer, operation: str) -> None:
        if operation == "add" and buffer.records:
            feed_publisher.dispatch_notification(
                session_id, buffer.records[0], unread_count=buffer.unread_count
            )
            return
        feed_publisher.dispatch(session_id, event_type="feed", payload=_snapshot(feed))

    return listener


def _status_listener(session_id: str) -> Callable[[ConnectionStatus], None]:
    def listener(status: ConnectionStatus) -> None:
        feed_publisher.dispatch(
            session_id,
            event_type="status",
            payload={"is_connected": status.is_connected, "error": status.error},
        )

    return listener


def _snapshot(feed: LiveFeed) -> dict[str, Any]:
    return FeedSnapshotRead.model_validate(feed.snapshot()).model_dump(mode="json")
