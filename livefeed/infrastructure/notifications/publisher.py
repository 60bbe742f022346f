"""Utility helpers to push live feed updates to websocket subscribers."""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from anyio import from_thread

from livefeed.domain.entities import NotificationRecord

from .manager import FeedConnectionManager, feed_manager


class FeedPublisher:
    """Serialize feed updates and schedule their delivery."""

    def __init__(self, manager: FeedConnectionManager) -> None:
        self._manager = manager

    def dispatch(self, session_id: str, *, event_type: str, payload: Any) -> None:
        """Schedule an ``event_type`` message for the live feed ``session_id``."""

        if not session_id:
            return

        message = {"type": event_type, "data": copy.deepcopy(payload)}
        self._schedule_send(session_id, message)

    def dispatch_notification(
        self, session_id: str, notification: NotificationRecord, *, unread_count: int
    ) -> None:
        """Schedule delivery of a freshly buffered ``notification``."""

        payload = {
            "notification": self._serialize(notification),
            "unread_count": unread_count,
        }
        self.dispatch(session_id, event_type="notification", payload=payload)

    def _schedule_send(self, session_id: str, message: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            from_thread.run(self._manager.send_to_session, session_id, message)
        else:
            loop.create_task(self._manager.send_to_session(session_id, message))

    @staticmethod
    def _serialize(notification: NotificationRecord) -> dict[str, Any]:
        target = notification.target
        actor = notification.actor
        return {
            "id": notification.id,
            "kind": notification.kind.value,
            "title": notification.title,
            "message": notification.message,
            "timestamp": notification.timestamp.isoformat(),
            "target": {
                "entity_type": target.entity_type,
                "entity_id": target.entity_id,
                "url": target.url,
            }
            if target
            else None,
            "actor": {
                "display_name": actor.display_name,
                "avatar_ref": actor.avatar_ref,
            }
            if actor
            else None,
            "is_read": notification.is_read,
        }


feed_publisher = FeedPublisher(feed_manager)


def serialize_notification(notification: NotificationRecord) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return FeedPublisher._serialize(notification)


__all__ = [
    "FeedPublisher",
    "feed_publisher",
    "serialize_notification",
]
